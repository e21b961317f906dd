"""
Test simulation configuration and driver.

Tested classes and functions:
    - from_dict, SimulationConfig, Pool
    - BlochSimulator (Bloch, sensitivity and Bloch-McConnell models)

"""
import dataclasses
import itertools
import logging
import math

import pytest
import torch

from mobasim import bloch

# test values
device = ["cpu"]

if torch.cuda.is_available():
    device += ["cuda:0"]

R1, R2 = 1.0, 12.0
eps = 1e-6

# inversion, excitation, readout
segments = [
    bloch.Segment(1e-3, b1=1000.0 * math.pi),
    bloch.Segment(20e-3, off_resonance=30.0),
    bloch.Segment(0.5e-3, b1=500.0 * math.pi, phase=0.7, off_resonance=-15.0),
    bloch.Segment(5e-3),
]


def _config(device, model="bloch", **kwargs):
    data = {
        "model": model,
        "pools": [{"R1": R1, "R2": R2}],
        "device": device,
        "dtype": "float64",
    }
    data.update(kwargs)
    return bloch.from_dict(data)


def test_from_dict():
    """
    Test configuration parsing.
    """
    config = bloch.from_dict(
        {
            "model": "mcconnell",
            "pools": [
                {"R1": 1.0, "R2": 10.0, "weight": 0.9},
                {"R1": 2.0, "R2": 50.0, "weight": 0.1, "chemshift": 100.0},
            ],
            "k": [[-1.0, 9.0], [1.0, -9.0]],
            "B0": 5.0,
        }
    )

    assert config.model is bloch.SimulationModel.MCCONNELL
    assert config.npools == 2
    assert config.pools[1] == bloch.Pool(2.0, 50.0, 0.1, 100.0)
    assert config.k == ((-1.0, 9.0), (1.0, -9.0))
    assert config.B0 == 5.0
    assert config.dtype == "float32"


def test_default_exchange():
    """
    Test that missing exchange matrix means no exchange.
    """
    config = bloch.from_dict({"pools": [{"R1": 1.0, "R2": 10.0}]})

    assert config.model is bloch.SimulationModel.BLOCH
    assert config.k == ((0.0,),)


def test_frozen_config():
    """
    Test that configuration is immutable.
    """
    config = bloch.from_dict({"pools": [{"R1": 1.0, "R2": 10.0}]})

    with pytest.raises(dataclasses.FrozenInstanceError):
        config.B0 = 1.0


@pytest.mark.parametrize(
    "data",
    [
        {"pools": []},
        {"pools": [{"R1": 1.0, "R2": 10.0}, {"R1": 1.0, "R2": 10.0}]},
        {"pools": [{"R1": 1.0, "R2": 10.0}], "dtype": "float16"},
        {"pools": [{"R1": 1.0, "R2": 10.0}], "model": "epg"},
        {"model": "mcconnell", "pools": [{"R1": 1.0, "R2": 10.0}], "k": [[0.0, 0.0]]},
    ],
)
def test_invalid_config(data):
    """
    Test configuration errors.
    """
    with pytest.raises(ValueError):
        bloch.from_dict(data)


def test_unbalanced_exchange():
    """
    Test warning for exchange matrix not conserving magnetization.
    """
    with pytest.warns(UserWarning):
        bloch.from_dict(
            {
                "model": "mcconnell",
                "pools": [{"R1": 1.0, "R2": 10.0}, {"R1": 1.0, "R2": 10.0}],
                "k": [[0.0, 3.0], [0.0, 0.0]],
            }
        )


@pytest.mark.parametrize("device", device)
def test_closed_form(device):
    """
    Test that closed form free precession matches the exponential propagator.
    """
    closed = bloch.BlochSimulator(_config(device, closed_form=True))(segments)
    expm = bloch.BlochSimulator(_config(device, closed_form=False))(segments)

    assert closed.shape == (3,)
    assert torch.allclose(closed, expm, atol=1e-10)


@pytest.mark.parametrize("device", device)
def test_equilibrium(device):
    """
    Test that equilibrium is preserved without RF.
    """
    m = bloch.BlochSimulator(_config(device, B0=20.0))([bloch.Segment(0.1), bloch.Segment(1.0)])

    assert torch.allclose(m, torch.tensor([0.0, 0.0, 1.0], dtype=m.dtype, device=device), atol=1e-12)


@pytest.mark.parametrize("device", device)
def test_initial_state(device):
    """
    Test custom initial magnetization.
    """
    sim = bloch.BlochSimulator(_config(device))
    m0 = torch.tensor([1.0, 0.0, 0.0], dtype=torch.float64)

    m = sim([bloch.Segment(0.1)], m_init=m0)

    assert torch.allclose(m[0], torch.tensor(math.exp(-R2 * 0.1), dtype=m.dtype, device=device))
    assert torch.allclose(m[2], torch.tensor(1 - math.exp(-R1 * 0.1), dtype=m.dtype, device=device))


@pytest.mark.parametrize(
    "device, model", list(itertools.product(*[device, ["bloch_sa", "bloch_sa_b1"]]))
)
def test_relaxation_sensitivities(device, model):
    """
    Test simulated R1 and R2 sensitivities against finite differences.
    """
    config = _config(device, model)
    m, dm = bloch.BlochSimulator(config)(segments)

    def run(r1, r2):
        cfg = dataclasses.replace(config, model=bloch.SimulationModel.BLOCH, pools=(bloch.Pool(r1, r2),))
        return bloch.BlochSimulator(cfg)(segments)

    dr1 = (run(R1 + eps, R2) - run(R1 - eps, R2)) / (2 * eps)
    dr2 = (run(R1, R2 + eps) - run(R1, R2 - eps)) / (2 * eps)

    assert m.shape == (3,)
    assert dm.shape == ((2, 3) if model == "bloch_sa" else (3, 3))
    assert torch.allclose(m, run(R1, R2), atol=1e-10)
    assert torch.allclose(dm[0], dr1, atol=1e-6)
    assert torch.allclose(dm[1], dr2, atol=1e-6)


@pytest.mark.parametrize(
    "device, scale", list(itertools.product(*[device, [1.0, 0.8]]))
)
def test_b1_sensitivity(device, scale):
    """
    Test simulated B1 sensitivity against finite differences.
    """
    config = _config(device, "bloch_sa_b1", B1=scale)
    _, dm = bloch.BlochSimulator(config)(segments)

    def run(b1):
        cfg = dataclasses.replace(config, model=bloch.SimulationModel.BLOCH, B1=b1)
        return bloch.BlochSimulator(cfg)(segments)

    db1 = (run(scale + eps) - run(scale - eps)) / (2 * eps)

    assert torch.allclose(dm[2], db1, atol=1e-6)


@pytest.mark.parametrize("device", device)
def test_return_all(device):
    """
    Test intermediate results.
    """
    m = bloch.BlochSimulator(_config(device))(segments, return_all=True)
    m_sa, dm_sa = bloch.BlochSimulator(_config(device, "bloch_sa"))(segments, return_all=True)
    final = bloch.BlochSimulator(_config(device))(segments)

    assert m.shape == (4, 3)
    assert m_sa.shape == (4, 3)
    assert dm_sa.shape == (4, 2, 3)
    assert torch.allclose(m[-1], final, atol=1e-12)
    assert torch.allclose(m_sa, m, atol=1e-10)


@pytest.mark.parametrize("device", device)
def test_mcconnell_single_pool(device):
    """
    Test that one pool without exchange reduces to the Bloch model.
    """
    expected = bloch.BlochSimulator(_config(device, closed_form=False))(segments)
    m = bloch.BlochSimulator(_config(device, "mcconnell"))(segments)

    assert m.shape == (1, 3)
    assert torch.allclose(m[0], expected, atol=1e-10)


@pytest.mark.parametrize("device", device)
def test_mcconnell_two_pools(device):
    """
    Test two exchanging pools.
    """
    config = bloch.from_dict(
        {
            "model": "mcconnell",
            "pools": [
                {"R1": 1.0, "R2": 10.0, "weight": 0.8},
                {"R1": 3.0, "R2": 50.0, "weight": 0.2, "chemshift": 200.0},
            ],
            "k": [[-1.0, 4.0], [1.0, -4.0]],
            "device": device,
            "dtype": "float64",
        }
    )
    sim = bloch.BlochSimulator(config)

    # equilibrium is preserved
    m = sim([bloch.Segment(1.0)])
    expected = torch.tensor([[0.0, 0.0, 0.8], [0.0, 0.0, 0.2]], dtype=m.dtype, device=device)
    assert m.shape == (2, 3)
    assert torch.allclose(m, expected, atol=1e-12)

    # recovery after saturation
    m = sim([bloch.Segment(30.0)], m_init=torch.zeros(2, 3))
    assert torch.allclose(m, expected, atol=1e-8)

    # total longitudinal magnetization after excitation is bounded by M0
    m = sim(segments)
    assert m[:, 2].sum() <= 1.0 + 1e-12

    with pytest.raises(ValueError):
        sim(segments, m_init=torch.zeros(3, 3))


@pytest.mark.parametrize("device", device)
def test_sequence(device):
    """
    Test that the chained sequence matches segment-by-segment propagation.
    """
    sim = bloch.BlochSimulator(_config(device, "bloch_sa"))
    seq = sim.sequence(segments)

    state = sim.initial_state()
    for segment in segments:
        state = sim.step(segment)(state)

    assert len(seq) == len(segments)
    assert torch.allclose(seq(sim.initial_state()), state, atol=1e-12)


def test_logging(caplog):
    """
    Test debug logging of the run.
    """
    sim = bloch.BlochSimulator(_config("cpu"))

    with caplog.at_level(logging.DEBUG, logger="mobasim.bloch.model.bloch"):
        sim(segments)

    assert "simulating 4 segments" in caplog.text
    assert sim.trun is not None


@pytest.mark.parametrize(
    "data",
    [
        {"pools": [{"R1": 1.0, "R2": 10.0, "weight": 0.5}]},
        {"model": "bloch_sa", "pools": [{"R1": 1.0, "R2": 10.0}], "k": [[2.0]]},
    ],
)
def test_single_pool_ignored_fields(data):
    """
    Test warning for pool weight and exchange in single pool models.
    """
    with pytest.warns(UserWarning, match="ignoring"):
        config = bloch.from_dict(data)

    # equilibrium is still M0
    m = bloch.BlochSimulator(config)([bloch.Segment(1.0)])
    if isinstance(m, tuple):
        m = m[0]
    assert torch.allclose(m, torch.tensor([0.0, 0.0, 1.0]), atol=1e-6)
