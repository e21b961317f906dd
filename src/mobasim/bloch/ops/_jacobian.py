"""
Partial derivatives of the Bloch equation.

The state Jacobian governs the propagation of small perturbations of the
magnetization, while the parameter Jacobians act as sources for the
sensitivity equations of R1, R2 and B1.
"""
__all__ = ["state_jacobian", "param_jacobian", "rf_param_jacobian"]

import torch

from ._rotation import vec_rot
from ._utils import M0, cast, check_vector


def state_jacobian(state, r1, r2, field):
    """
    Derivative of the Bloch equation with respect to the magnetization.

    Parameters
    ----------
    state : torch.Tensor
        Magnetization of shape ``(..., 3)``. The Bloch equation is affine,
        so the value only sets dtype, device and batch shape.
    r1 : float | torch.Tensor
        Longitudinal relaxation rate.
    r2 : float | torch.Tensor
        Transverse relaxation rate.
    field : torch.Tensor
        Effective field of shape ``(..., 3)``.

    Returns
    -------
    jac : torch.Tensor
        Matrix of shape ``(..., 3, 3)`` with ``jac[..., j, i] = d(dMj/dt) / dMi``.

    """
    state, r1, r2, field = cast(state, r1, r2, field)
    check_vector(state, "state")
    check_vector(field, "field")

    eye = torch.eye(3, dtype=state.dtype, device=state.device)

    # row i is e_i x B
    rot = vec_rot(eye, field[..., None, :])
    relax = torch.stack(torch.broadcast_tensors(r2, r2, r1), dim=-1)

    jac = rot.transpose(-1, -2) - torch.diag_embed(relax)
    batch = torch.broadcast_shapes(state.shape[:-1], jac.shape[:-2])

    return jac.expand(*batch, 3, 3)


def param_jacobian(state, r1, r2, field):
    """
    Derivative of the Bloch equation with respect to (R1, R2).

    Returns
    -------
    jac : torch.Tensor
        Matrix of shape ``(..., 2, 3)``. Row 0 is ``d(dM/dt) / dR1``,
        row 1 is ``d(dM/dt) / dR2``.

    """
    state, r1, r2, field = cast(state, r1, r2, field)
    check_vector(state, "state")
    check_vector(field, "field")
    mx, my, mz = state.unbind(-1)
    zero = torch.zeros_like(mx)

    jac = torch.stack(
        (
            torch.stack((zero, zero, -(mz - M0)), dim=-1),
            torch.stack((-mx, -my, zero), dim=-1),
        ),
        dim=-2,
    )
    batch = torch.broadcast_shapes(state.shape[:-1], r1.shape, r2.shape, field.shape[:-1])

    return jac.expand(*batch, 2, 3)


def rf_param_jacobian(state, r1, r2, field, phase, b1):
    """
    Derivative of the Bloch equation with respect to (R1, R2, B1).

    Parameters
    ----------
    state : torch.Tensor
        Magnetization of shape ``(..., 3)``.
    r1, r2 : float | torch.Tensor
        Relaxation rates.
    field : torch.Tensor
        Effective field of shape ``(..., 3)``.
    phase : float | torch.Tensor
        RF phase in ``[rad]``.
    b1 : float | torch.Tensor
        Nominal RF amplitude in ``[rad / s]``.

    Returns
    -------
    jac : torch.Tensor
        Matrix of shape ``(..., 3, 3)``. Rows 0-1 as in :func:`param_jacobian`,
        row 2 is ``d(dM/dt) / dB1`` for a field built by :func:`rf_field`.

    """
    state, r1, r2, field, phase, b1 = cast(state, r1, r2, field, phase, b1)
    mx, my, mz = state.unbind(-1)
    sin, cos = torch.sin(phase), torch.cos(phase)

    rows = torch.broadcast_tensors(
        sin * mz * b1, cos * mz * b1, (-sin * mx - cos * my) * b1
    )
    db1 = torch.stack(rows, dim=-1)
    drelax = param_jacobian(state, r1, r2, field)
    batch = torch.broadcast_shapes(db1.shape[:-1], drelax.shape[:-2])
    db1 = db1.expand(*batch, 3)
    drelax = drelax.expand(*batch, 2, 3)

    return torch.cat((drelax, db1[..., None, :]), dim=-2)
