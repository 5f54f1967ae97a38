import math

import numpy as np

from brain import FlappyBrain


def constant_brain(output: float, hidden_activation: str = "relu") -> FlappyBrain:
    """Brain whose prediction is `output` for every input."""
    brain = FlappyBrain(hidden_activation, random=False)
    bias = math.log(output / (1.0 - output))
    brain.set_weights([np.zeros((8, 4)), np.zeros(8), np.zeros((1, 8)), np.array([bias])])
    return brain


def same_weights(a: FlappyBrain, b: FlappyBrain) -> bool:
    return all(np.array_equal(x, y) for x, y in zip(a.get_weights(), b.get_weights()))
