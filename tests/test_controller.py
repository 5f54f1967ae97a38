import math

import numpy as np
import pytest

from controller import FlapController, Observation, gap_relative_inputs, world_relative_inputs
from helpers import constant_brain


def test_gap_relative_inputs():
    obs = Observation(bird_y=150.0, top_y=200.0, bot_y=100.0, distance=50.0, velocity_y=-200.0, height=500.0)
    y_rel, vel_n, dist_n, gap_n = gap_relative_inputs(obs)
    assert y_rel == pytest.approx(0.0)
    assert vel_n == pytest.approx(-0.5)
    assert dist_n == pytest.approx(0.25)
    assert gap_n == pytest.approx(0.1)


def test_gap_relative_inputs_saturate():
    obs = Observation(bird_y=300.0, top_y=200.0, bot_y=100.0, distance=900.0, velocity_y=1000.0, height=500.0)
    y_rel, vel_n, dist_n, _ = gap_relative_inputs(obs)
    assert y_rel == pytest.approx(3.0)
    assert vel_n == 1.0
    assert dist_n == 1.0

    obs = Observation(bird_y=0.0, top_y=200.0, bot_y=100.0, distance=-10.0, velocity_y=-1000.0, height=500.0)
    _, vel_n, dist_n, _ = gap_relative_inputs(obs)
    assert vel_n == -1.0
    assert dist_n == 0.0


def test_missing_velocity_is_zero():
    obs = Observation(bird_y=150.0, top_y=200.0, bot_y=100.0, distance=50.0, velocity_y=None, height=500.0)
    assert gap_relative_inputs(obs)[1] == 0.0


@pytest.mark.parametrize("normalizer", [gap_relative_inputs, world_relative_inputs])
def test_degenerate_geometry_stays_finite(normalizer):
    obs = Observation(bird_y=10.0, top_y=50.0, bot_y=50.0, distance=10.0, velocity_y=0.0, height=0.0)
    assert all(math.isfinite(x) for x in normalizer(obs))


def test_world_relative_inputs():
    obs = Observation(bird_y=100.0, top_y=300.0, bot_y=200.0, distance=300.0, velocity_y=5.0, height=400.0)
    assert world_relative_inputs(obs) == pytest.approx([0.25, 0.75, 0.5, 0.5])
    obs.distance = 6000.0
    assert world_relative_inputs(obs)[3] == 1.0


def test_deterministic_threshold():
    obs = Observation(150.0, 200.0, 100.0, 50.0, 0.0, 500.0)
    controller = FlapController(stochastic=False, threshold=0.5)
    assert controller.decide(constant_brain(0.6), obs) is True
    assert controller.decide(constant_brain(0.4), obs) is False


def test_stochastic_policy_samples():
    obs = Observation(150.0, 200.0, 100.0, 50.0, 0.0, 500.0)
    controller = FlapController(stochastic=True, rng=np.random.default_rng(7))
    brain = constant_brain(0.7)
    flaps = sum(controller.decide(brain, obs) for _ in range(2000))
    assert 1200 < flaps < 1600


def test_stochastic_is_reproducible():
    obs = Observation(150.0, 200.0, 100.0, 50.0, 0.0, 500.0)
    brain = constant_brain(0.5)
    runs = []
    for _ in range(2):
        controller = FlapController(stochastic=True, rng=np.random.default_rng(3))
        runs.append([controller.decide(brain, obs) for _ in range(50)])
    assert runs[0] == runs[1]


def test_unknown_normalization():
    with pytest.raises(ValueError):
        FlapController(normalization="raw")
