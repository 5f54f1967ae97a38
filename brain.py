import copy
from typing import List, Optional, Sequence

import numpy as np
import torch
import torch.nn as nn
import torch.nn.functional as F

NUM_INPUTS = 4
NUM_HIDDEN = 8

# Pre-activation clamp for the output sigmoid. At +/-20 the result stays
# strictly inside (0, 1) in double precision.
OUTPUT_CLAMP = 20.0
DEFAULT_CLIP = 6.0

HIDDEN_ACTIVATIONS = {
    "relu": F.relu,
    "sigmoid": torch.sigmoid,
}


# ---------------------------------------------------------------------------
# FlappyBrain: fixed 4 -> 8 -> 1 feedforward policy.
# Parameters are kept in float64 and never take part in autograd; the genetic
# operators work on numpy copies extracted with get_weights().
# ---------------------------------------------------------------------------

class FlappyBrain(nn.Module):
    def __init__(self, hidden_activation: str = "relu", random: bool = True,
                 rng: Optional[np.random.Generator] = None):
        super().__init__()
        if hidden_activation not in HIDDEN_ACTIVATIONS:
            raise ValueError(f"Unknown hidden activation: {hidden_activation!r}")
        self.hidden_activation = hidden_activation

        # Input features:
        # 1. Bird offset from the gap (or bird height)
        # 2. Vertical velocity (or top pipe edge)
        # 3. Distance to next pipe (or bottom pipe edge)
        # 4. Gap size (or distance to next pipe)
        self.fc1 = nn.Linear(NUM_INPUTS, NUM_HIDDEN, dtype=torch.float64)
        self.fc2 = nn.Linear(NUM_HIDDEN, 1, dtype=torch.float64)
        self.requires_grad_(False)

        if random:
            if rng is None:
                rng = np.random.default_rng()
            self.set_weights([rng.uniform(-1.0, 1.0, tuple(p.shape)) for p in self.parameters()])
        else:
            self.set_weights([np.zeros(tuple(p.shape)) for p in self.parameters()])

    def get_weights(self) -> List[np.ndarray]:
        """Extract parameters as independent numpy arrays.

        Order is hidden weights (8x4), hidden bias (8), output weights (1x8),
        output bias (1).
        """
        return [p.data.numpy().copy() for p in self.parameters()]

    def set_weights(self, weights: Sequence[np.ndarray]):
        """Load parameters from numpy arrays (same order as get_weights)."""
        params = list(self.parameters())
        if len(weights) != len(params):
            raise ValueError(f"Expected {len(params)} weight arrays, got {len(weights)}")
        for param, weight in zip(params, weights):
            array = np.array(weight, dtype=np.float64)
            if array.shape != tuple(param.shape):
                raise ValueError(f"Weight shape {array.shape} does not match {tuple(param.shape)}")
            param.data = torch.from_numpy(array)

    def forward(self, x):
        hidden = HIDDEN_ACTIVATIONS[self.hidden_activation](self.fc1(x))
        out = self.fc2(hidden)
        return torch.sigmoid(torch.clamp(out, -OUTPUT_CLAMP, OUTPUT_CLAMP))

    def predict(self, inputs: Sequence[float]) -> float:
        """Return the flap probability in (0, 1) for one 4-input vector."""
        if len(inputs) != NUM_INPUTS:
            raise ValueError(f"Expected {NUM_INPUTS} inputs, got {len(inputs)}")

        x = torch.as_tensor(np.asarray(inputs, dtype=np.float64)).unsqueeze(0)
        with torch.no_grad():
            out = self(x)
        return float(out[0, 0])

    def copy(self) -> "FlappyBrain":
        return copy.deepcopy(self)

    def clip_all(self, limit: float = DEFAULT_CLIP):
        for param in self.parameters():
            param.data.clamp_(-limit, limit)

    def mutate(self, rate: float, step: float, rng: np.random.Generator,
               clip: Optional[float] = DEFAULT_CLIP):
        """Nudge each parameter by U(-step, step) with probability `rate`."""
        weights = self.get_weights()
        for w in weights:
            mutation_mask = rng.random(w.shape) < rate
            mutations = rng.uniform(-step, step, w.shape)
            w[mutation_mask] += mutations[mutation_mask]
        self.set_weights(weights)

        if clip is not None:
            self.clip_all(clip)


def uniform_crossover(parent1: FlappyBrain, parent2: FlappyBrain, rng: np.random.Generator,
                      clip: Optional[float] = DEFAULT_CLIP) -> FlappyBrain:
    """Pick every parameter from either parent with equal probability."""
    child = FlappyBrain(parent1.hidden_activation, random=False)
    child_weights = []
    for w1, w2 in zip(parent1.get_weights(), parent2.get_weights()):
        mask = rng.random(w1.shape) < 0.5
        child_weights.append(np.where(mask, w1, w2))
    child.set_weights(child_weights)

    if clip is not None:
        child.clip_all(clip)
    return child


def average_crossover(parent1: FlappyBrain, parent2: FlappyBrain) -> FlappyBrain:
    child = FlappyBrain(parent1.hidden_activation, random=False)
    child.set_weights([
        (w1 + w2) * 0.5
        for w1, w2 in zip(parent1.get_weights(), parent2.get_weights())
    ])
    return child
