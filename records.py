import json
import os
from dataclasses import asdict
from typing import List, Optional, Tuple

import torch
from loguru import logger

from brain import FlappyBrain
from genetics import GeneticAlgorithm, GenerationStats

BRAIN_FILE = "best_brain.pt"
HISTORY_FILE = "history.json"


def save_history(history: List[GenerationStats], path: str):
    """Serialize generation statistics to JSON."""
    data = {"generations": [asdict(stats) for stats in history]}
    with open(path, "w") as f:
        json.dump(data, f, indent=2)


def load_history(path: str) -> List[GenerationStats]:
    """Deserialize generation statistics from JSON."""
    with open(path, "r") as f:
        data = json.load(f)
    return [GenerationStats(**entry) for entry in data["generations"]]


def save_policy(brain: FlappyBrain, path: str, normalization: str = "gap_relative"):
    """Save weights together with the settings needed to run them again."""
    torch.save({
        "hidden_activation": brain.hidden_activation,
        "normalization": normalization,
        "state_dict": brain.state_dict(),
    }, path)


def load_checkpoint(path: str) -> Tuple[FlappyBrain, str]:
    """Load a brain saved with save_policy.

    Returns (brain, normalization). Raises ValueError when the file does not
    hold a 4 -> 8 -> 1 brain.
    """
    checkpoint = torch.load(path, weights_only=True)
    if not isinstance(checkpoint, dict) or "state_dict" not in checkpoint:
        raise ValueError(f"{path} is not a saved brain")

    brain = FlappyBrain(checkpoint.get("hidden_activation", ""), random=False)
    state_dict = checkpoint["state_dict"]
    names = [name for name, _ in brain.named_parameters()]
    missing = [name for name in names if name not in state_dict]
    if missing:
        raise ValueError(f"{path} is missing parameters: {', '.join(missing)}")

    brain.set_weights([state_dict[name].numpy() for name in names])
    brain.eval()
    return brain, checkpoint.get("normalization", "gap_relative")


def load_policy(path: str, hidden_activation: Optional[str] = None) -> FlappyBrain:
    """Load a saved brain; `hidden_activation`, if given, must match the saved one."""
    brain, _ = load_checkpoint(path)
    if hidden_activation is not None and hidden_activation != brain.hidden_activation:
        raise ValueError(
            f"{path} holds a {brain.hidden_activation!r} brain, not {hidden_activation!r}"
        )
    return brain


def save_run(ga: GeneticAlgorithm, run_dir: str) -> str:
    """Save the champion (or the current best brain) and the history of a run.

    Returns the path of the saved brain.
    """
    os.makedirs(run_dir, exist_ok=True)

    if ga.champion is not None:
        brain = ga.champion.brain
    else:
        brain = ga.ranked_population()[0].brain

    brain_path = os.path.join(run_dir, BRAIN_FILE)
    history_path = os.path.join(run_dir, HISTORY_FILE)

    save_policy(brain, brain_path, normalization=ga.config.normalization)
    save_history(ga.history, history_path)

    logger.info("Saved run to {} ({} generations)", run_dir, len(ga.history))
    return brain_path
