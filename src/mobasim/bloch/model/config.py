"""Simulation configuration."""

__all__ = ["SimulationModel", "Pool", "SimulationConfig", "from_dict"]

import warnings

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import dacite
import numpy as np

from dacite import Config


class SimulationModel(str, Enum):
    """
    Signal model selector.

    BLOCH
        Single pool, magnetization only.
    BLOCH_SA
        Single pool with R1 and R2 sensitivities.
    BLOCH_SA_B1
        Single pool with R1, R2 and B1 sensitivities.
    MCCONNELL
        Multiple pools with chemical exchange.

    """

    BLOCH = "bloch"
    BLOCH_SA = "bloch_sa"
    BLOCH_SA_B1 = "bloch_sa_b1"
    MCCONNELL = "mcconnell"


@dataclass(frozen=True)
class Pool:
    """
    Spin pool properties.

    Parameters
    ----------
    R1 : float
        Longitudinal relaxation rate in ``[1 / s]``.
    R2 : float
        Transverse relaxation rate in ``[1 / s]``.
    weight : float, optional
        Equilibrium fraction. Defaults to ``1.0``.
    chemshift : float, optional
        Chemical shift in ``[rad / s]``. Defaults to ``0.0``.

    """

    R1: float
    R2: float
    weight: float = 1.0
    chemshift: float = 0.0


@dataclass(frozen=True)
class SimulationConfig:
    """
    Immutable simulation configuration.

    Parameters
    ----------
    pools : tuple[Pool]
        Spin pools. Single pool models require exactly one and ignore
        its ``weight`` (a warning is issued if it is not ``1.0``).
    model : SimulationModel, optional
        Signal model. Defaults to ``SimulationModel.BLOCH``.
    k : tuple[tuple[float]], optional
        Exchange matrix ``(npools, npools)`` in ``[1 / s]``, with ``k[p][q]``
        the rate from pool ``q`` into pool ``p``. Defaults to ``None`` (no exchange).
        Only used by ``SimulationModel.MCCONNELL``; a non-zero ``k`` warns otherwise.
    B0 : float, optional
        Bulk off-resonance in ``[rad / s]``. Defaults to ``0.0``.
    B1 : float, optional
        Transmit field scaling (``1.0 := nominal``). Defaults to ``1.0``.
    closed_form : bool, optional
        Use the closed form free precession for single pool
        segments without RF. Defaults to ``True``.
    device : str, optional
        Computational device (e.g., ``cpu`` or ``cuda:n``, with ``n=0,1,2...``).
        Defaults to ``cpu``.
    dtype : str, optional
        Floating point precision (``float32`` or ``float64``).
        Defaults to ``float32``.

    """

    pools: Tuple[Pool, ...]
    model: SimulationModel = SimulationModel.BLOCH
    k: Optional[Tuple[Tuple[float, ...], ...]] = None
    B0: float = 0.0
    B1: float = 1.0
    closed_form: bool = True
    device: str = "cpu"
    dtype: str = "float32"

    def __post_init__(self):  # noqa
        object.__setattr__(self, "model", SimulationModel(self.model))
        object.__setattr__(self, "pools", tuple(self.pools))

        npools = len(self.pools)
        if npools == 0:
            raise ValueError("At least one pool is required!")
        if self.model != SimulationModel.MCCONNELL and npools != 1:
            raise ValueError(f"Model {self.model.value} requires exactly one pool, got {npools}")
        if self.dtype not in ("float32", "float64"):
            raise ValueError(f"dtype must be 'float32' or 'float64', got {self.dtype!r}")

        # exchange
        if self.k is None:
            k = np.zeros((npools, npools))
        else:
            k = np.asarray(self.k, dtype=float)
        if k.shape != (npools, npools):
            raise ValueError(f"k must have shape ({npools}, {npools}), got {k.shape}")
        if not np.allclose(k.sum(axis=0), 0.0):
            warnings.warn(
                "Exchange matrix columns do not sum to zero - magnetization is not conserved."
            )
        object.__setattr__(self, "k", tuple(tuple(row) for row in k.tolist()))

        # single pool models
        if self.model != SimulationModel.MCCONNELL:
            if self.pools[0].weight != 1.0:
                warnings.warn(
                    f"Model {self.model.value} has no equilibrium fraction - ignoring pool weight."
                )
            if np.any(k != 0.0):
                warnings.warn(f"Model {self.model.value} has no exchange - ignoring k.")

    @property
    def npools(self):  # noqa
        return len(self.pools)


def from_dict(data):
    """
    Build simulation configuration from a (nested) dictionary.

    Examples
    --------
    >>> from mobasim.bloch import from_dict
    >>> config = from_dict({"model": "bloch_sa", "pools": [{"R1": 1.0, "R2": 10.0}]})

    """
    return dacite.from_dict(
        SimulationConfig,
        data,
        config=Config(cast=[SimulationModel, tuple], check_types=False),
    )
