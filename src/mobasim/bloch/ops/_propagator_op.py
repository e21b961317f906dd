"""
Interval propagation operators.

Each operator describes the evolution over one interval with constant
relaxation rates and effective field, acting on augmented state vectors
``[M, (dM/dp)..., 1]``.
"""

__all__ = [
    "augment",
    "observe",
    "Propagator",
    "BlochPropagator",
    "SensitivityPropagator",
    "McConnellPropagator",
    "FreePrecession",
]

import torch

from ._abstract_op import Operator
from ._dynamics import relaxation
from ._linear_system import build_base, build_sensitivity10, build_sensitivity13, integrate
from ._mcconnell import build_mcconnell
from ._utils import cast


def augment(m, nblocks=1):
    """
    Build augmented state vector.

    Parameters
    ----------
    m : torch.Tensor
        Magnetization of shape ``(..., 3)``, or flattened pools
        ``(..., 3 * npools)`` for exchange models.
    nblocks : int, optional
        Total number of 3-component blocks of the state. Blocks beyond
        the magnetization (sensitivities) are initialized to zero.
        Defaults to ``1``.

    Returns
    -------
    torch.Tensor
        Augmented state of shape ``(..., 3 * nblocks + 1)``.

    """
    (m,) = cast(m)
    if m.ndim == 0 or m.shape[-1] % 3 != 0:
        raise ValueError(f"m must have a trailing dimension multiple of 3, got {tuple(m.shape)}")
    nblocks = max(nblocks, m.shape[-1] // 3)
    batch = m.shape[:-1]
    sens = m.new_zeros(*batch, 3 * nblocks - m.shape[-1])
    one = m.new_ones(*batch, 1)

    return torch.cat((m, sens, one), dim=-1)


def observe(state, nblocks=1):
    """
    Split augmented state into 3-component blocks.

    Parameters
    ----------
    state : torch.Tensor
        Augmented state of shape ``(..., 3 * nblocks + 1)``.
    nblocks : int, optional
        Number of 3-component blocks. Defaults to ``1``.

    Returns
    -------
    torch.Tensor
        Blocks of shape ``(..., nblocks, 3)``.

    """
    if state.shape[-1] != 3 * nblocks + 1:
        raise ValueError(f"Expected state of size {3 * nblocks + 1}, got {state.shape[-1]}")

    return state[..., :-1].reshape(*state.shape[:-1], nblocks, 3)


class Propagator(Operator):
    """
    Exponential propagator of a homogeneous linear system.

    Parameters
    ----------
    matrix : torch.Tensor
        System matrix of shape ``(..., n, n)``.
    time : float | torch.Tensor
        Interval duration.

    Other Parameters
    ----------------
    name : str
        Name of the operator.

    """

    def __init__(self, matrix, time, **kwargs):  # noqa
        super().__init__(**kwargs)
        self.P = integrate(matrix, time)

    def apply(self, state):
        """
        Propagate augmented state.

        Parameters
        ----------
        state : torch.Tensor
            Augmented state of shape ``(..., n)``.

        Returns
        -------
        torch.Tensor
            Propagated state of shape ``(..., n)``.

        """
        state = state.to(self.P.dtype)
        return torch.einsum("...ij,...j->...i", self.P, state)


class BlochPropagator(Propagator):
    """Single pool propagator acting on ``[M, 1]``."""

    def __init__(self, time, r1, r2, field, **kwargs):  # noqa
        super().__init__(build_base(r1, r2, field), time, **kwargs)


class SensitivityPropagator(Propagator):
    """
    Single pool propagator including parameter sensitivities.

    Acts on ``[M, dM/dR1, dM/dR2, 1]`` or, if RF ``phase`` and ``b1``
    amplitude are provided, on ``[M, dM/dR1, dM/dR2, dM/dB1, 1]``.

    """

    def __init__(self, time, r1, r2, field, phase=None, b1=None, **kwargs):  # noqa
        if phase is None and b1 is None:
            matrix = build_sensitivity10(r1, r2, field)
        else:
            phase = 0.0 if phase is None else phase
            b1 = 0.0 if b1 is None else b1
            matrix = build_sensitivity13(r1, r2, field, phase, b1)

        super().__init__(matrix, time, **kwargs)


class McConnellPropagator(Propagator):
    """Multi pool propagator acting on ``[M_0, ..., M_{P-1}, 1]``."""

    def __init__(self, time, r1, r2, k, weight, chemshift, field, **kwargs):  # noqa
        super().__init__(build_mcconnell(r1, r2, k, weight, chemshift, field), time, **kwargs)


class FreePrecession(Operator):
    """
    Closed form free precession acting on ``[M, 1]``.

    Only valid in absence of RF (zero transverse field).

    """

    def __init__(self, time, r1, r2, field, **kwargs):  # noqa
        super().__init__(**kwargs)
        self.time = time
        self.r1 = r1
        self.r2 = r2
        self.field = field

    def apply(self, state):  # noqa
        m = relaxation(state[..., :3], self.time, self.r1, self.r2, self.field)
        return torch.cat((m, state[..., 3:].to(m.dtype)), dim=-1)
