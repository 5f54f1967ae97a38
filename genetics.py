"""genetics.py: Flappy Bird neuroevolution engine

A population of FlappyBrain networks is evolved episode by episode:
  1. The game loop reports ticks, pipes passed and deaths per bird slot
  2. Once every bird is dead, evolve() ranks the population by fitness
  3. Champion / hall-of-fame snapshots are refreshed
  4. Elites are carried over unchanged, the rest is bred from the elites
     (tournament or random-pair selection, crossover, annealed mutation)
"""

import colorsys
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np
from loguru import logger

from brain import DEFAULT_CLIP, HIDDEN_ACTIVATIONS, FlappyBrain, average_crossover, uniform_crossover
from controller import NORMALIZERS, FlapController, Observation

# One pipe passed always outranks any distance travelled.
SCORE_WEIGHT = 1000
MIN_POPULATION = 2
MIN_ELITES = 2
MIN_TOURNAMENT = 2


class Selection(str, Enum):
    TOURNAMENT = "tournament"
    RANDOM_PAIR = "random_pair"


class Crossover(str, Enum):
    UNIFORM = "uniform"
    AVERAGE = "average"


class MutationSchedule(str, Enum):
    ANNEALED = "annealed"
    FIXED = "fixed"


@dataclass
class EvolutionConfig:
    champion: bool = True
    hall_of_fame: bool = False
    hall_of_fame_top_k: int = 20
    hall_of_fame_capacity: int = 10

    selection: Selection = Selection.TOURNAMENT
    tournament_k: int = 5
    crossover: Crossover = Crossover.UNIFORM
    elite_fraction: float = 0.2

    mutation_schedule: MutationSchedule = MutationSchedule.ANNEALED
    base_mutation_rate: float = 0.18
    base_mutation_step: float = 0.45
    min_mutation_rate: float = 0.05
    min_mutation_step: float = 0.10
    # (best score threshold, rate, step), checked in order
    anneal_stages: Tuple[Tuple[int, float, float], ...] = ((5, 0.12, 0.25), (12, 0.06, 0.15))
    weight_clip: Optional[float] = DEFAULT_CLIP

    hidden_activation: str = "relu"
    normalization: str = "gap_relative"
    stochastic_policy: bool = False
    flap_threshold: float = 0.5

    seed: Optional[int] = None

    def __post_init__(self):
        self.selection = Selection(self.selection)
        self.crossover = Crossover(self.crossover)
        self.mutation_schedule = MutationSchedule(self.mutation_schedule)

        if self.hidden_activation not in HIDDEN_ACTIVATIONS:
            raise ValueError(f"Unknown hidden activation: {self.hidden_activation!r}")
        if self.normalization not in NORMALIZERS:
            raise ValueError(f"Unknown normalization: {self.normalization!r}")
        if not 0.0 < self.elite_fraction <= 1.0:
            raise ValueError(f"elite_fraction must be in (0, 1], got {self.elite_fraction}")
        for name in ("base_mutation_rate", "base_mutation_step", "min_mutation_rate", "min_mutation_step"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.weight_clip is not None and self.weight_clip <= 0:
            raise ValueError("weight_clip must be positive or None")
        if self.hall_of_fame_top_k < 1 or self.hall_of_fame_capacity < 1:
            raise ValueError("Hall of fame sizes must be at least 1")
        self.anneal_stages = tuple(sorted(tuple(stage) for stage in self.anneal_stages))

    @classmethod
    def advanced(cls, **overrides) -> "EvolutionConfig":
        """Champion + tournament selection + uniform crossover + annealing."""
        return cls(**overrides)

    @classmethod
    def simple(cls, **overrides) -> "EvolutionConfig":
        """Workshop engine: average two random elites and mutate a tiny bit."""
        settings = dict(
            champion=False,
            selection=Selection.RANDOM_PAIR,
            crossover=Crossover.AVERAGE,
            elite_fraction=0.1,
            mutation_schedule=MutationSchedule.FIXED,
            base_mutation_rate=0.03,
            base_mutation_step=0.08,
            min_mutation_rate=0.0,
            min_mutation_step=0.0,
            weight_clip=None,
            hidden_activation="sigmoid",
            normalization="world_relative",
        )
        settings.update(overrides)
        return cls(**settings)


@dataclass(eq=False)
class Genome:
    brain: FlappyBrain
    color: Tuple[int, int, int] = (255, 255, 255)
    alive: bool = True
    score: int = 0
    distance: float = 0.0

    @property
    def fitness(self) -> float:
        return self.score * SCORE_WEIGHT + self.distance

    def reset_run_state(self):
        self.alive = True
        self.score = 0
        self.distance = 0.0


@dataclass(eq=False)
class Snapshot:
    """Frozen copy of a brain together with the fitness it earned."""
    brain: FlappyBrain
    fitness: float
    score: int


@dataclass
class GenerationStats:
    generation: int
    best_score: int
    best_fitness: float
    average_fitness: float
    worst_fitness: float
    elite_count: int
    mutation_rate: float
    mutation_step: float
    champion_score: Optional[int] = None
    champion_fitness: Optional[float] = None
    scores: List[int] = field(default_factory=list)


def random_color(rng: np.random.Generator) -> Tuple[int, int, int]:
    """Random hue at fixed saturation/brightness, as an RGB tuple."""
    r, g, b = colorsys.hsv_to_rgb(float(rng.random()), 0.8, 0.9)
    return int(round(r * 255)), int(round(g * 255)), int(round(b * 255))


class GeneticAlgorithm:
    def __init__(self, population_size: int = 50, config: Optional[EvolutionConfig] = None):
        self.config = config if config is not None else EvolutionConfig()
        self.rng = np.random.default_rng(self.config.seed)
        self.controller = FlapController(
            normalization=self.config.normalization,
            stochastic=self.config.stochastic_policy,
            threshold=self.config.flap_threshold,
            rng=self.rng,
        )
        self.reset(population_size)

    # ------------------------------------------------------------------
    # Population lifecycle
    # ------------------------------------------------------------------

    def reset(self, population_size: int):
        """Start over with a freshly randomised population."""
        self.population_size = max(MIN_POPULATION, int(population_size))
        self.generation = 1
        self.population = [self._new_genome(self._random_brain()) for _ in range(self.population_size)]
        self.champion: Optional[Snapshot] = None
        self.hall_of_fame: List[Snapshot] = []
        self.history: List[GenerationStats] = []

    def reset_run_state(self):
        for genome in self.population:
            genome.reset_run_state()

    def seed_population(self, brain: FlappyBrain):
        """Put a copy of an existing brain (e.g. a saved champion) into slot 0."""
        if brain.hidden_activation != self.config.hidden_activation:
            raise ValueError(
                f"Brain uses {brain.hidden_activation!r} hidden units, "
                f"engine expects {self.config.hidden_activation!r}"
            )
        self.population[0] = self._new_genome(brain.copy())

    def _random_brain(self) -> FlappyBrain:
        return FlappyBrain(self.config.hidden_activation, random=True, rng=self.rng)

    def _new_genome(self, brain: FlappyBrain) -> Genome:
        return Genome(brain=brain, color=random_color(self.rng))

    def _genome(self, index: int) -> Optional[Genome]:
        if 0 <= index < len(self.population):
            return self.population[index]
        return None

    # ------------------------------------------------------------------
    # Per-tick reporting from the game loop
    # ------------------------------------------------------------------

    def tick_alive(self, index: int, distance: float):
        genome = self._genome(index)
        if genome is None or not genome.alive:
            return
        genome.distance = max(genome.distance, distance)

    def add_score(self, index: int):
        genome = self._genome(index)
        if genome is None or not genome.alive:
            return
        genome.score += 1

    def award_obstacle_passed(self):
        """Credit a passed pipe to every bird still alive.

        This mirrors scoring on the leading bird: whoever is alive when the
        lead clears a pipe gets the point, whether or not it cleared it itself.
        """
        for genome in self.population:
            if genome.alive:
                genome.score += 1

    def kill(self, index: int):
        genome = self._genome(index)
        if genome is None:
            return
        genome.alive = False

    def all_dead(self) -> bool:
        return not any(genome.alive for genome in self.population)

    def should_flap(self, index: int, bird_y: float, top_y: float, bot_y: float,
                    distance: float, velocity_y: Optional[float], height: float) -> bool:
        genome = self._genome(index)
        if genome is None or not genome.alive:
            return False
        obs = Observation(bird_y, top_y, bot_y, distance, velocity_y, height)
        return self.controller.decide(genome.brain, obs)

    def current_population_snapshot(self) -> List[Tuple[FlappyBrain, Tuple[int, int, int]]]:
        """(brain, color) per slot. The brains are the live ones; treat them as read-only."""
        return [(genome.brain, genome.color) for genome in self.population]

    # ------------------------------------------------------------------
    # Generation turnover
    # ------------------------------------------------------------------

    def ranked_population(self) -> List[Genome]:
        """Genomes by descending fitness; ties keep slot order."""
        return sorted(self.population, key=lambda g: g.fitness, reverse=True)

    def elite_count(self) -> int:
        count = max(MIN_ELITES, int(self.population_size * self.config.elite_fraction))
        return min(count, self.population_size)

    def mutation_parameters(self, best_score: int) -> Tuple[float, float]:
        """Mutation (rate, step) for the next generation given the best score."""
        cfg = self.config
        rate, step = cfg.base_mutation_rate, cfg.base_mutation_step
        if cfg.mutation_schedule is MutationSchedule.FIXED:
            return rate, step

        for threshold, stage_rate, stage_step in cfg.anneal_stages:
            if best_score >= threshold:
                rate = max(cfg.min_mutation_rate, stage_rate)
                step = max(cfg.min_mutation_step, stage_step)
        return rate, step

    def _select_parent(self, pool: List[Genome]) -> Genome:
        if self.config.selection is Selection.RANDOM_PAIR:
            return pool[self.rng.integers(len(pool))]

        k = max(MIN_TOURNAMENT, min(self.config.tournament_k, len(pool)))
        best = pool[self.rng.integers(len(pool))]
        for _ in range(k - 1):
            candidate = pool[self.rng.integers(len(pool))]
            if candidate.fitness > best.fitness:
                best = candidate
        return best

    def _breed(self, parent1: Genome, parent2: Genome, rate: float, step: float) -> FlappyBrain:
        clip = self.config.weight_clip
        if self.config.crossover is Crossover.UNIFORM:
            child = uniform_crossover(parent1.brain, parent2.brain, self.rng, clip=clip)
        else:
            child = average_crossover(parent1.brain, parent2.brain)
        child.mutate(rate, step, self.rng, clip=clip)
        return child

    def _update_champion(self, best: Snapshot):
        if self.champion is not None and best.fitness <= self.champion.fitness:
            return
        self.champion = best
        logger.debug("New champion: score={} fitness={:.1f}", best.score, best.fitness)

    def _update_hall_of_fame(self, ranked: List[Genome], best: Snapshot):
        cfg = self.config
        newcomers = [best] + [
            Snapshot(g.brain.copy(), g.fitness, g.score)
            for g in ranked[1:cfg.hall_of_fame_top_k]
        ]
        pool = sorted(self.hall_of_fame + newcomers, key=lambda s: s.fitness, reverse=True)
        pool = pool[:cfg.hall_of_fame_capacity]

        # Guard: ranking alone keeps the champion in, unless the pool was
        # replaced from outside (e.g. restored entries above champion fitness).
        if self.champion is not None and not any(s is self.champion for s in pool):
            pool[-1] = self.champion
            pool.sort(key=lambda s: s.fitness, reverse=True)

        self.hall_of_fame = pool
        logger.debug(
            "Hall of fame: {} entries, fitness {:.1f}..{:.1f}",
            len(pool), pool[0].fitness, pool[-1].fitness,
        )

    def evolve(self) -> GenerationStats:
        """Build the next generation from the current (finished) one."""
        cfg = self.config
        ranked = self.ranked_population()
        fitnesses = [g.fitness for g in ranked]

        top = ranked[0]
        best = Snapshot(top.brain.copy(), top.fitness, top.score)
        if cfg.champion:
            self._update_champion(best)
        if cfg.hall_of_fame:
            self._update_hall_of_fame(ranked, best)

        elite_count = self.elite_count()
        elites = ranked[:elite_count]
        best_score = elites[0].score
        rate, step = self.mutation_parameters(best_score)

        # Carried over unmutated: champion, hall of fame, then this generation's elites
        carried = []
        if self.champion is not None:
            carried.append(self.champion.brain)
        carried.extend(s.brain for s in self.hall_of_fame if s is not self.champion)
        carried.extend(g.brain for g in elites)

        new_population = []
        for brain in carried:
            if len(new_population) >= elite_count:
                break
            new_population.append(self._new_genome(brain.copy()))

        while len(new_population) < self.population_size:
            parent1 = self._select_parent(elites)
            parent2 = self._select_parent(elites)
            new_population.append(self._new_genome(self._breed(parent1, parent2, rate, step)))

        stats = GenerationStats(
            generation=self.generation,
            best_score=best_score,
            best_fitness=fitnesses[0],
            average_fitness=sum(fitnesses) / len(fitnesses),
            worst_fitness=fitnesses[-1],
            elite_count=elite_count,
            mutation_rate=rate,
            mutation_step=step,
            champion_score=self.champion.score if self.champion else None,
            champion_fitness=self.champion.fitness if self.champion else None,
            scores=[g.score for g in self.population],
        )

        self.population = new_population
        self.generation += 1
        self.history.append(stats)

        logger.info(
            "=== Generation {} === bestScore(gen)={} | championScore={} | rate={:.3f} step={:.3f}",
            self.generation, best_score, stats.champion_score, rate, step,
        )
        return stats
