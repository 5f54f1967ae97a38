import argparse

import numpy as np

from controller import FlapController, Observation
from records import load_checkpoint, load_history


def print_history(path: str):
    history = load_history(path)
    print(f"{'Gen':>5} {'Best':>6} {'Champion':>9} {'Avg fitness':>12} {'Rate':>6} {'Step':>6}")
    for stats in history:
        champion = "-" if stats.champion_score is None else str(stats.champion_score)
        print(f"{stats.generation:>5} {stats.best_score:>6} {champion:>9} "
              f"{stats.average_fitness:>12.1f} {stats.mutation_rate:>6.3f} {stats.mutation_step:>6.3f}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Inspect evolved Flappy Bird brains")

    parser.add_argument("--load-brain", type=str, default=None, help="Path to a best_brain.pt file")
    parser.add_argument("--observe", type=float, nargs=6, default=None,
                        metavar=("BIRD_Y", "TOP_Y", "BOT_Y", "DIST", "VEL_Y", "HEIGHT"),
                        help="One observation to feed the loaded brain")
    parser.add_argument("--threshold", type=float, default=0.5, help="Flap threshold (default: 0.5)")
    parser.add_argument("--stochastic", action="store_true", help="Sample the flap decision")
    parser.add_argument("--seed", type=int, default=None, help="Seed for stochastic decisions")
    parser.add_argument("--history", type=str, default=None, help="Path to a history.json file to print")

    args = parser.parse_args(argv)

    if args.history:
        print_history(args.history)
        return 0

    if not args.load_brain:
        parser.print_help()
        return 1
    if args.observe is None:
        parser.error("--load-brain needs --observe")

    brain, normalization = load_checkpoint(args.load_brain)
    controller = FlapController(
        normalization=normalization,
        stochastic=args.stochastic,
        threshold=args.threshold,
        rng=np.random.default_rng(args.seed),
    )
    obs = Observation(*args.observe)

    inputs = controller.inputs(obs)
    output = brain.predict(inputs)
    print(f"Inputs: [{', '.join(f'{x:.3f}' for x in inputs)}]")
    print(f"Output: {output:.4f}")
    print(f"Flap: {controller.decide(brain, obs)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
