"""
Bloch-McConnell operator for chemically exchanging pools.

The magnetization of P pools is stacked as ``[M_0, ..., M_{P-1}, 1]``.
Each pool evolves under its own Bloch block (with its own chemical shift
and equilibrium fraction) and exchanges magnetization with the others
component-wise at first order.
"""
__all__ = ["build_mcconnell"]

import torch

from ._linear_system import _bloch_block
from ._utils import M0, cast, check_vector, stack_matrix


def build_mcconnell(r1, r2, k, weight, chemshift, field):
    """
    Homogeneous Bloch-McConnell matrix.

    Parameters
    ----------
    r1 : torch.Tensor
        Longitudinal relaxation rates of shape ``(..., npools)``.
    r2 : torch.Tensor
        Transverse relaxation rates of shape ``(..., npools)``.
    k : torch.Tensor
        Exchange matrix of shape ``(..., npools, npools)``. ``k[p, q]`` is the
        rate at which magnetization of pool ``q`` feeds pool ``p``; the diagonal
        must hold the (negative) outflow, i.e. ``k[p, p] = -sum_{q != p} k[q, p]``
        for the model to conserve magnetization. This is not checked.
    weight : torch.Tensor
        Equilibrium fraction of each pool of shape ``(..., npools)``.
    chemshift : torch.Tensor
        Frequency offset of each pool of shape ``(..., npools)`` in ``[rad / s]``.
    field : torch.Tensor
        Effective field of shape ``(..., 3)`` in ``[rad / s]``.

    Returns
    -------
    torch.Tensor
        Matrix of shape ``(..., 1 + 3 * npools, 1 + 3 * npools)``.

    """
    r1, r2, k, weight, chemshift, field = cast(r1, r2, k, weight, chemshift, field)
    r1, r2, weight, chemshift = [torch.atleast_1d(x) for x in (r1, r2, weight, chemshift)]
    check_vector(field, "field")

    # check pools
    npools = r1.shape[-1]
    for name, x in zip(("r2", "weight", "chemshift"), (r2, weight, chemshift)):
        if x.shape[-1] != npools:
            raise ValueError(f"{name} has {x.shape[-1]} pools, expected {npools}")
    if k.ndim < 2 or k.shape[-2:] != (npools, npools):
        raise ValueError(f"k must have shape (..., {npools}, {npools}), got {tuple(k.shape)}")

    # broadcast
    batch = torch.broadcast_shapes(
        r1.shape[:-1],
        r2.shape[:-1],
        weight.shape[:-1],
        chemshift.shape[:-1],
        k.shape[:-2],
        field.shape[:-1],
    )
    r1 = r1.expand(*batch, npools)
    r2 = r2.expand(*batch, npools)
    weight = weight.expand(*batch, npools)
    chemshift = chemshift.expand(*batch, npools)
    k = k.expand(*batch, npools, npools)
    gx, gy, gz = field.expand(*batch, 3).unbind(-1)

    # pool blocks
    blocks = [
        _bloch_block(r1[..., p], r2[..., p], gx, gy, gz + chemshift[..., p]) for p in range(npools)
    ]

    zero = torch.zeros_like(gx)
    size = 1 + 3 * npools
    rows = []
    for p in range(npools):
        for i in range(3):
            row = []
            for q in range(npools):
                for j in range(3):
                    value = blocks[p][i][j] if p == q else zero
                    # exchange: (3p + i, 3q + i) += k[p, q]
                    if i == j:
                        value = value + k[..., p, q]
                    row.append(value)

            # equilibrium
            row.append(M0 * weight[..., p] * r1[..., p] if i == 2 else zero)
            rows.append(row)
    rows.append([zero] * size)

    return stack_matrix(rows)
