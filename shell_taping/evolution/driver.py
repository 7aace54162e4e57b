"""Generation loop of the schedule search.

States per generation:

    INITIALIZED → EVALUATING → RANKING → PERSISTING → SELECTING → (EVALUATING …) → TERMINATED

- EVALUATING: parallel fitness of every member (join barrier before leaving)
- RANKING: stable ascending sort on fitness
- PERSISTING: best schedule written atomically to ``best-config.json`` and
  ``(generation, best fitness)`` logged
- SELECTING: elite ++ children ++ randoms, also after the final generation

The best artifact is rewritten after every generation, so a long search can
be stopped at any time with the best schedule so far on disk.
"""

import logging
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from ..utils import fs
from ..utils.compute import WorkerPool
from ..utils.logging_config import pop_context, push_context
from ..utils.profiler import TimerAccumulator
from ..utils.validators import EvolutionConfig, SimulationConfig, shell_config_to_dict
from .fitness import PopulationFitnessEvaluator
from .population import PopulationMember, initialize_population
from .selection import natural_selection

logger = logging.getLogger(__name__)

BEST_CONFIG_FILENAME = "best-config.json"


class EvolutionState(Enum):
    """Current phase of the search."""

    INITIALIZED = auto()
    EVALUATING = auto()
    RANKING = auto()
    PERSISTING = auto()
    SELECTING = auto()
    TERMINATED = auto()


@dataclass
class GenerationStats:
    """Fitness summary of one evaluated generation."""

    generation: int
    best_fitness: float
    mean_fitness: float
    worst_fitness: float
    seconds: float


class EvolutionSimulation:
    """Evolutionary search over taping schedules.

    Parameters
    ----------
    sim_cfg : SimulationConfig
        Raster settings for every fitness simulation
    evo_cfg : EvolutionConfig
        Search bounds and meta-parameters
    pool : WorkerPool
        Worker pool for fitness evaluation
    rng : np.random.RandomState, optional
        Random source for selection; unseeded when None
    output_path : str or Path
        Best-schedule artifact, rewritten after every generation

    Attributes
    ----------
    population : list[PopulationMember]
        Current population (ranked best-first right after RANKING)
    generation : int
        Number of completed generations
    history : list[GenerationStats]
        One entry per completed generation
    best : PopulationMember or None
        Best member of the most recent generation
    """

    def __init__(
        self,
        sim_cfg: SimulationConfig,
        evo_cfg: EvolutionConfig,
        pool: WorkerPool,
        rng: Optional[np.random.RandomState] = None,
        output_path: Union[str, Path] = BEST_CONFIG_FILENAME,
    ):
        self.sim_cfg = sim_cfg
        self.evo_cfg = evo_cfg
        self.pool = pool
        self.rng = rng if rng is not None else np.random.RandomState()
        self.output_path = Path(output_path)

        self.evaluator = PopulationFitnessEvaluator(sim_cfg, evo_cfg.target_layers, pool)
        self.population: List[PopulationMember] = initialize_population(evo_cfg)
        self.generation = 0
        self.history: List[GenerationStats] = []
        self.best: Optional[PopulationMember] = None
        self.state = EvolutionState.INITIALIZED
        self._generation_timer = TimerAccumulator("generation")

        logger.info(
            f"Search initialized: population={evo_cfg.population_size}, "
            f"generations={evo_cfg.max_generations}, angles={evo_cfg.num_angles}, "
            f"target_layers={evo_cfg.target_layers}, workers={pool.worker_count}"
        )

    def step(self) -> GenerationStats:
        """Run one generation (evaluate → rank → persist → select)."""
        if self.state == EvolutionState.TERMINATED:
            raise RuntimeError("Search already terminated")

        push_context(generation=self.generation)
        try:
            with self._generation_timer.measure():
                self.state = EvolutionState.EVALUATING
                self.evaluator.evaluate(self.population)

                self.state = EvolutionState.RANKING
                self.population.sort(key=lambda m: m.fitness)
                self.best = self.population[0]
                fitness = np.array([m.fitness for m in self.population])

                self.state = EvolutionState.PERSISTING
                self.persist_best(self.best)
                logger.info(
                    f"Generation {self.generation}, best fitness: {self.best.fitness:.4f}, "
                    f"saved to \"{self.output_path}\""
                )

                self.state = EvolutionState.SELECTING
                self.population = natural_selection(self.population, self.evo_cfg, self.rng)
        finally:
            pop_context(keys=["generation"])

        stats = GenerationStats(
            generation=self.generation,
            best_fitness=float(fitness[0]),
            mean_fitness=float(fitness.mean()),
            worst_fitness=float(fitness[-1]),
            seconds=self._generation_timer.last,
        )
        self.history.append(stats)
        self.generation += 1
        logger.debug(f"Generation {stats.generation} took {stats.seconds:.3f} s")
        return stats

    def persist_best(self, member: PopulationMember) -> None:
        """Write ``member``'s schedule to the output artifact (atomic)."""
        fs.atomic_json_dump(shell_config_to_dict(member.config), self.output_path, indent=4)

    def run(self) -> Optional[PopulationMember]:
        """Run until ``maxGenerations`` generations have completed.

        Returns
        -------
        PopulationMember or None
            Best member of the last generation (None if no generation ran)
        """
        while self.generation < self.evo_cfg.max_generations:
            self.step()

        self.state = EvolutionState.TERMINATED
        logger.info(
            f"Search finished after {self.generation} generations "
            f"(mean {self._generation_timer.mean():.3f} s/generation), "
            f"best fitness: {self.best.fitness if self.best else float('nan'):.4f}"
        )
        return self.best
