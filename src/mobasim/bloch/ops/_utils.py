"""
Utilities related to MR simulation.
"""
__all__ = ["M0", "rf_field"]

import torch

# equilibrium magnetization
M0 = 1.0


def cast(*inputs, dtype=None, device=None):
    """
    Cast inputs to tensors sharing dtype and device.

    Dtype is the promotion of the floating point tensor inputs
    (``torch.float32`` if there are none); device is the one of
    the first tensor input.

    """
    tensors = [x for x in inputs if isinstance(x, torch.Tensor)]

    if dtype is None:
        dtype = torch.float32
        for x in tensors:
            if x.is_floating_point():
                dtype = torch.promote_types(dtype, x.dtype)

    if device is None and tensors:
        device = tensors[0].device

    out = []
    for x in inputs:
        if isinstance(x, torch.Tensor):
            out.append(x.to(dtype=dtype, device=device))
        else:
            out.append(torch.as_tensor(x, dtype=dtype, device=device))

    return out


def check_vector(x, name):
    if x.ndim == 0 or x.shape[-1] != 3:
        raise ValueError(f"{name} must have a trailing dimension of size 3, got {tuple(x.shape)}")


def stack_matrix(rows):
    """Assemble a (..., n, m) matrix from nested lists of (...) tensors."""
    return torch.stack([torch.stack(row, dim=-1) for row in rows], dim=-2)


def rf_field(b1, phase=0.0, off_resonance=0.0, b1_scale=1.0):
    """
    Effective field of an RF pulse in the rotating frame.

    Parameters
    ----------
    b1 : float | torch.Tensor
        Nominal RF amplitude in ``[rad / s]``.
    phase : float | torch.Tensor, optional
        RF phase in ``[rad]``. Defaults to ``0.0``.
    off_resonance : float | torch.Tensor, optional
        Off-resonance (B0, chemical shift, gradients) in ``[rad / s]``.
        Defaults to ``0.0``.
    b1_scale : float | torch.Tensor, optional
        Transmit field scaling (``1.0 := nominal amplitude``).
        Defaults to ``1.0``.

    Returns
    -------
    field : torch.Tensor
        Effective field ``(b1_scale * b1 * cos(phase), -b1_scale * b1 * sin(phase), off_resonance)``
        of shape ``(..., 3)``. With this convention the RF coupling of the
        B1-sensitive operators is the derivative with respect to ``b1_scale``.

    """
    b1, phase, off_resonance, b1_scale = cast(b1, phase, off_resonance, b1_scale)
    b1, phase, off_resonance, b1_scale = torch.broadcast_tensors(
        b1, phase, off_resonance, b1_scale
    )
    amp = b1_scale * b1

    return torch.stack(
        (amp * torch.cos(phase), -amp * torch.sin(phase), off_resonance), dim=-1
    )
