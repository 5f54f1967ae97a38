from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from brain import FlappyBrain

EPSILON = 1e-6
VELOCITY_SCALE = 400.0
GAP_DISTANCE_SATURATION = 200.0
WORLD_DISTANCE_SATURATION = 600.0


@dataclass
class Observation:
    """One tick of world state as seen by a single bird.

    Heights are measured from the ground; `distance` is the horizontal gap to
    the next pipe and `height` the playable world height.
    """
    bird_y: float
    top_y: float
    bot_y: float
    distance: float
    velocity_y: Optional[float]
    height: float


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def gap_relative_inputs(obs: Observation) -> List[float]:
    """Bird offset from gap centre, velocity, distance and gap size, all ~[-1, 1]."""
    gap_center = (obs.top_y + obs.bot_y) * 0.5
    gap_half = max(EPSILON, (obs.top_y - obs.bot_y) * 0.5)

    y_rel = (obs.bird_y - gap_center) / gap_half
    vel_n = _clamp((obs.velocity_y or 0.0) / VELOCITY_SCALE, -1.0, 1.0)
    dist_n = _clamp(obs.distance, 0.0, GAP_DISTANCE_SATURATION) / GAP_DISTANCE_SATURATION
    gap_n = gap_half / max(EPSILON, obs.height)
    return [y_rel, vel_n, dist_n, gap_n]


def world_relative_inputs(obs: Observation) -> List[float]:
    """Bird and pipe edges as fractions of world height, plus saturated distance."""
    height = max(EPSILON, obs.height)
    return [
        obs.bird_y / height,
        obs.top_y / height,
        obs.bot_y / height,
        _clamp(obs.distance, 0.0, WORLD_DISTANCE_SATURATION) / WORLD_DISTANCE_SATURATION,
    ]


NORMALIZERS = {
    "gap_relative": gap_relative_inputs,
    "world_relative": world_relative_inputs,
}


class FlapController:
    """Turns observations into network inputs and network output into a flap."""

    def __init__(self, normalization: str = "gap_relative", stochastic: bool = False,
                 threshold: float = 0.5, rng: Optional[np.random.Generator] = None):
        if normalization not in NORMALIZERS:
            raise ValueError(f"Unknown normalization: {normalization!r}")
        self.normalization = normalization
        self.stochastic = stochastic
        self.threshold = threshold
        self.rng = rng if rng is not None else np.random.default_rng()

    def inputs(self, obs: Observation) -> List[float]:
        return NORMALIZERS[self.normalization](obs)

    def decide(self, brain: FlappyBrain, obs: Observation) -> bool:
        out = brain.predict(self.inputs(obs))
        if self.stochastic:
            return out > self.rng.random()
        return out > self.threshold
