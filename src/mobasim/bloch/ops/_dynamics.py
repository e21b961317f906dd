"""
Bloch equation right-hand side and closed form propagators.

Can be used to evaluate dM/dt for a given effective field, and to
propagate magnetization exactly in the special cases of free precession
(no RF) and instantaneous (short) RF pulses.
"""
__all__ = ["ode", "relaxation", "excitation", "excitation2"]

import torch

from ._rotation import rotx, rotz, vec_rot
from ._utils import M0, cast, check_vector


def ode(state, r1, r2, field):
    """
    Bloch equation in the rotating frame.

    dM/dt = M x B - (R2 * Mx, R2 * My, R1 * (Mz - M0))

    Parameters
    ----------
    state : torch.Tensor
        Magnetization ``(Mx, My, Mz)`` of shape ``(..., 3)``.
    r1 : float | torch.Tensor
        Longitudinal relaxation rate.
    r2 : float | torch.Tensor
        Transverse relaxation rate.
    field : torch.Tensor
        Effective field of shape ``(..., 3)`` in ``[rad / s]``.

    Returns
    -------
    torch.Tensor
        Time derivative of the magnetization of shape ``(..., 3)``.

    """
    state, r1, r2, field = cast(state, r1, r2, field)
    check_vector(state, "state")

    rot = vec_rot(state, field)
    mx, my, mz = state.unbind(-1)
    relax = torch.stack(torch.broadcast_tensors(r2 * mx, r2 * my, r1 * (mz - M0)), dim=-1)

    return rot - relax


def relaxation(state, t, r1, r2, field):
    """
    Free precession and relaxation in absence of RF.

    Only valid if the transverse components of the field are zero. The
    precondition is checked on the values of ``field``, so this function
    can not be vectorized with ``torch.func.vmap``; pass batched inputs instead.

    Parameters
    ----------
    state : torch.Tensor
        Magnetization of shape ``(..., 3)``.
    t : float | torch.Tensor
        Interval duration.
    r1 : float | torch.Tensor
        Longitudinal relaxation rate.
    r2 : float | torch.Tensor
        Transverse relaxation rate.
    field : torch.Tensor
        Effective field ``(0, 0, wz)`` of shape ``(..., 3)``.

    Returns
    -------
    torch.Tensor
        Magnetization after ``t``.

    """
    state, t, r1, r2, field = cast(state, t, r1, r2, field)
    check_vector(field, "field")
    assert torch.all(field[..., :2] == 0), "Free precession requires zero transverse field (no B1)!"

    out = rotz(state, field[..., 2] * t)
    e2 = torch.exp(-t * r2)
    e1 = torch.exp(-t * r1)
    mx, my, mz = out.unbind(-1)

    return torch.stack(
        torch.broadcast_tensors(mx * e2, my * e2, mz + (M0 - state[..., 2]) * (1 - e1)),
        dim=-1,
    )


def excitation(state, t, r1, r2, field):
    """
    Hard RF pulse along x neglecting relaxation.

    Only valid on resonance (zero longitudinal field). As for
    :func:`relaxation`, the value-dependent check prevents ``torch.func.vmap``.
    ``r1`` and ``r2`` are accepted for signature compatibility and ignored.

    """
    state, t, field = cast(state, t, field)
    check_vector(field, "field")
    assert torch.all(field[..., 2] == 0), "Excitation requires zero longitudinal field (no gradient)!"

    return rotx(state, field[..., 0] * t)


def excitation2(state, angle, phase):
    """
    Instantaneous RF rotation with arbitrary phase.

    Parameters
    ----------
    state : torch.Tensor
        Magnetization of shape ``(..., 3)``.
    angle : float | torch.Tensor
        Flip angle in ``[rad]``.
    phase : float | torch.Tensor
        RF phase in ``[rad]``.

    Returns
    -------
    torch.Tensor
        Rotated magnetization.

    """
    tmp = rotz(state, -phase)
    tmp = rotx(tmp, angle)

    return rotz(tmp, phase)
