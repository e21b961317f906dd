"""
Linear system formulation of the Bloch equations.

The affine Bloch equation is made homogeneous by appending a constant
coordinate equal to 1 to the magnetization, so that the evolution over
an interval with constant parameters is a single matrix exponential.

Sensitivity-augmented systems stack the magnetization together with its
derivatives with respect to R1, R2 (and B1). Differentiating the Bloch
equation with respect to a parameter p gives

    d/dt (dM/dp) = A (dM/dp) + d(A M + b)/dp

i.e. the same Bloch block driven by the current magnetization, so a single
exponential yields the magnetization and its exact first-order
sensitivities.
"""
__all__ = [
    "build_base",
    "build_sensitivity10",
    "build_sensitivity13",
    "integrate",
    "propagator",
    "propagator_sa",
    "propagator_sa2",
]

import torch

from ._utils import M0, cast, check_vector, stack_matrix


def _prepare(r1, r2, field, *other):
    inputs = cast(r1, r2, field, *other)
    check_vector(inputs[2], "field")
    gx, gy, gz = inputs[2].unbind(-1)

    return torch.broadcast_tensors(inputs[0], inputs[1], gx, gy, gz, *inputs[3:])


def _bloch_block(r1, r2, gx, gy, gz):
    return [
        [-r2, gz, -gy],
        [-gz, -r2, gx],
        [gy, -gx, -r1],
    ]


def _assemble(block, nblocks, couplings):
    # block repeated on the diagonal, couplings {(row, col): value}, last row zero
    zero = torch.zeros_like(block[0][0])
    size = 3 * nblocks + 1
    rows = [[zero] * size for _ in range(size)]

    for n in range(nblocks):
        for i in range(3):
            for j in range(3):
                rows[3 * n + i][3 * n + j] = block[i][j]

    for (i, j), value in couplings.items():
        rows[i][j] = value

    return stack_matrix(rows)


def build_base(r1, r2, field):
    """
    Homogeneous Bloch matrix.

    d/dt [Mx, My, Mz, 1] = A [Mx, My, Mz, 1]

    Parameters
    ----------
    r1 : float | torch.Tensor
        Longitudinal relaxation rate of shape ``(...)``.
    r2 : float | torch.Tensor
        Transverse relaxation rate of shape ``(...)``.
    field : torch.Tensor
        Effective field of shape ``(..., 3)`` in ``[rad / s]``.

    Returns
    -------
    torch.Tensor
        Matrix ``A`` of shape ``(..., 4, 4)``.

    """
    r1, r2, gx, gy, gz = _prepare(r1, r2, field)
    block = _bloch_block(r1, r2, gx, gy, gz)

    return _assemble(block, 1, {(2, 3): M0 * r1})


def build_sensitivity10(r1, r2, field):
    """
    Bloch matrix augmented with R1 and R2 sensitivities.

    The state is ``[M, dM/dR1, dM/dR2, 1]``.

    Parameters
    ----------
    r1 : float | torch.Tensor
        Longitudinal relaxation rate of shape ``(...)``.
    r2 : float | torch.Tensor
        Transverse relaxation rate of shape ``(...)``.
    field : torch.Tensor
        Effective field of shape ``(..., 3)`` in ``[rad / s]``.

    Returns
    -------
    torch.Tensor
        Matrix of shape ``(..., 10, 10)``.

    """
    r1, r2, gx, gy, gz = _prepare(r1, r2, field)
    block = _bloch_block(r1, r2, gx, gy, gz)
    one = torch.ones_like(r1)

    couplings = {
        (2, 9): M0 * r1,
        # dR1: -(Mz - M0)
        (5, 2): -one,
        (5, 9): M0 * one,
        # dR2: -(Mx, My)
        (6, 0): -one,
        (7, 1): -one,
    }

    return _assemble(block, 3, couplings)


def build_sensitivity13(r1, r2, field, phase, b1):
    """
    Bloch matrix augmented with R1, R2 and B1 sensitivities.

    The state is ``[M, dM/dR1, dM/dR2, dM/dB1, 1]``, where B1 is the
    transmit scaling of a field built with :func:`rf_field`.

    Parameters
    ----------
    r1 : float | torch.Tensor
        Longitudinal relaxation rate of shape ``(...)``.
    r2 : float | torch.Tensor
        Transverse relaxation rate of shape ``(...)``.
    field : torch.Tensor
        Effective field of shape ``(..., 3)`` in ``[rad / s]``.
    phase : float | torch.Tensor
        RF phase in ``[rad]``.
    b1 : float | torch.Tensor
        Nominal RF amplitude in ``[rad / s]``.

    Returns
    -------
    torch.Tensor
        Matrix of shape ``(..., 13, 13)``.

    """
    r1, r2, gx, gy, gz, phase, b1 = _prepare(r1, r2, field, phase, b1)
    block = _bloch_block(r1, r2, gx, gy, gz)
    one = torch.ones_like(r1)
    sin, cos = torch.sin(phase), torch.cos(phase)

    couplings = {
        (2, 12): M0 * r1,
        # dR1
        (5, 2): -one,
        (5, 12): M0 * one,
        # dR2
        (6, 0): -one,
        (7, 1): -one,
        # dB1
        (9, 2): sin * b1,
        (10, 2): cos * b1,
        (11, 0): -sin * b1,
        (11, 1): -cos * b1,
    }

    return _assemble(block, 4, couplings)


def integrate(matrix, t):
    """
    Propagator of a homogeneous linear system over an interval.

    Parameters
    ----------
    matrix : torch.Tensor
        System matrix of shape ``(..., n, n)``.
    t : float | torch.Tensor
        Interval duration of shape ``(...)``.

    Returns
    -------
    torch.Tensor
        ``exp(t * matrix)`` of shape ``(..., n, n)``.

    """
    matrix, t = cast(matrix, t)

    return torch.linalg.matrix_exp(t[..., None, None] * matrix)


def propagator(t, r1, r2, field):
    """Propagator of the homogeneous Bloch system (see :func:`build_base`)."""
    return integrate(build_base(r1, r2, field), t)


def propagator_sa(t, r1, r2, field):
    """Propagator of the R1 / R2 sensitivity system (see :func:`build_sensitivity10`)."""
    return integrate(build_sensitivity10(r1, r2, field), t)


def propagator_sa2(t, r1, r2, field, phase, b1):
    """Propagator of the R1 / R2 / B1 sensitivity system (see :func:`build_sensitivity13`)."""
    return integrate(build_sensitivity13(r1, r2, field, phase, b1), t)
