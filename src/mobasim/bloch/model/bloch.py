"""Piecewise-constant Bloch simulation driver."""

__all__ = ["Segment", "BlochSimulator"]

import logging
import time

from dataclasses import dataclass

import torch

from .. import ops
from .config import SimulationConfig, SimulationModel

log = logging.getLogger(__name__)

# number of 3-component blocks in the augmented state
nblocks = {
    SimulationModel.BLOCH: 1,
    SimulationModel.BLOCH_SA: 3,
    SimulationModel.BLOCH_SA_B1: 4,
}


@dataclass(frozen=True)
class Segment:
    """
    Sequence interval with constant fields.

    Parameters
    ----------
    duration : float
        Interval duration in ``[s]``.
    b1 : float, optional
        Nominal RF amplitude in ``[rad / s]``. Defaults to ``0.0``.
    phase : float, optional
        RF phase in ``[rad]``. Defaults to ``0.0``.
    off_resonance : float, optional
        Additional off-resonance (e.g., gradients) in ``[rad / s]``.
        Defaults to ``0.0``.

    """

    duration: float
    b1: float = 0.0
    phase: float = 0.0
    off_resonance: float = 0.0


class BlochSimulator:
    """
    Simulate magnetization (and sensitivities) over piecewise-constant segments.

    The outer reconstruction discretizes the sequence into segments with
    constant RF and off-resonance; for each segment the simulator builds the
    operator matching ``config.model`` and propagates the augmented state.

    Examples
    --------
    >>> from mobasim import bloch
    >>> config = bloch.from_dict({"model": "bloch_sa", "pools": [{"R1": 1.0, "R2": 10.0}]})
    >>> sim = bloch.BlochSimulator(config)
    >>> segments = [bloch.Segment(1e-3, b1=500.0), bloch.Segment(10e-3)]
    >>> m, dm = sim(segments)

    ``dm[0]`` and ``dm[1]`` are the derivatives of ``m`` with respect to R1 and R2.

    Parameters
    ----------
    config : SimulationConfig
        Simulation configuration.

    """

    def __init__(self, config: SimulationConfig):  # noqa
        self.config = config
        self.device = config.device
        self.dtype = getattr(torch, config.dtype)
        self.trun = None

        # tissue
        pools = config.pools
        self.R1 = self._tensor([p.R1 for p in pools])
        self.R2 = self._tensor([p.R2 for p in pools])
        self.weight = self._tensor([p.weight for p in pools])
        self.chemshift = self._tensor([p.chemshift for p in pools])
        self.k = self._tensor(config.k)

    def _tensor(self, value):
        return torch.as_tensor(value, dtype=self.dtype, device=self.device)

    def field(self, segment, chemshift=0.0):
        """Effective field during a segment."""
        off_resonance = segment.off_resonance + self.config.B0 + chemshift
        return ops.rf_field(
            self._tensor(segment.b1),
            self._tensor(segment.phase),
            self._tensor(off_resonance),
            self._tensor(self.config.B1),
        )

    def initial_state(self, m_init=None):
        """
        Augmented initial state.

        Parameters
        ----------
        m_init : torch.Tensor, optional
            Initial magnetization of shape ``(3,)``, or ``(npools, 3)``
            for exchange models. Defaults to equilibrium.

        """
        model = self.config.model

        if m_init is None:
            m_init = torch.zeros((self.config.npools, 3), dtype=self.dtype, device=self.device)
            if model == SimulationModel.MCCONNELL:
                m_init[:, 2] = self.weight
            else:
                m_init[:, 2] = 1.0
        m_init = self._tensor(m_init).reshape(-1, 3)

        if model == SimulationModel.MCCONNELL:
            if m_init.shape[0] != self.config.npools:
                raise ValueError(
                    f"Initial magnetization has {m_init.shape[0]} pools, expected {self.config.npools}"
                )
            return ops.augment(m_init.reshape(-1))

        return ops.augment(m_init[0], nblocks[model])

    def step(self, segment):
        """
        Build the operator propagating one segment.

        Parameters
        ----------
        segment : Segment
            Sequence interval.

        Returns
        -------
        Operator
            Propagation operator for the augmented state.

        """
        model = self.config.model
        duration = self._tensor(segment.duration)

        if model == SimulationModel.MCCONNELL:
            return ops.McConnellPropagator(
                duration,
                self.R1,
                self.R2,
                self.k,
                self.weight,
                self.chemshift,
                self.field(segment),
            )

        r1, r2 = self.R1[0], self.R2[0]
        field = self.field(segment, self.chemshift[0])

        if model == SimulationModel.BLOCH:
            if self.config.closed_form and segment.b1 == 0.0:
                return ops.FreePrecession(duration, r1, r2, field)
            return ops.BlochPropagator(duration, r1, r2, field)
        if model == SimulationModel.BLOCH_SA:
            return ops.SensitivityPropagator(duration, r1, r2, field)
        if model == SimulationModel.BLOCH_SA_B1:
            return ops.SensitivityPropagator(
                duration, r1, r2, field, self._tensor(segment.phase), self._tensor(segment.b1)
            )

        raise ValueError(f"Unknown model {model}")

    def sequence(self, segments):
        """
        Chain segment operators.

        Returns
        -------
        CompositeOperator
            Operator propagating the whole sequence (first segment applied first).

        """
        ops_list = [self.step(segment) for segment in segments]
        return ops.CompositeOperator(*reversed(ops_list), name="Sequence Propagator")

    def output(self, state):
        """Split augmented state into magnetization and (optionally) sensitivities."""
        model = self.config.model

        if model == SimulationModel.MCCONNELL:
            return ops.observe(state, self.config.npools)

        blocks = ops.observe(state, nblocks[model])
        if model == SimulationModel.BLOCH:
            return blocks[..., 0, :]

        return blocks[..., 0, :], blocks[..., 1:, :]

    def __call__(self, segments, m_init=None, return_all=False):
        """
        Run simulation.

        Parameters
        ----------
        segments : list[Segment]
            Sequence intervals.
        m_init : torch.Tensor, optional
            Initial magnetization. Defaults to equilibrium.
        return_all : bool, optional
            If ``True``, return the result after each segment stacked
            along a new leading axis. Defaults to ``False``.

        Returns
        -------
        m : torch.Tensor
            Magnetization of shape ``(3,)`` (``(npools, 3)`` for exchange models).
        dm : torch.Tensor
            Sensitivities of shape ``(nparams, 3)`` (R1, R2 and, optionally, B1).
            Only returned by sensitivity models.

        """
        log.debug("simulating %d segments with model %s", len(segments), self.config.model.value)

        state = self.initial_state(m_init)

        t0 = time.time()
        with torch.no_grad():
            if return_all:
                states = []
                for segment in segments:
                    state = self.step(segment)(state)
                    states.append(state)
                if states:
                    state = torch.stack(states, dim=0)
                else:
                    state = state[None, ...]
            else:
                state = self.sequence(segments)(state)
        self.trun = time.time() - t0

        log.debug("simulation done in %.3f s", self.trun)

        return self.output(state)
