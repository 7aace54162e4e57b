"""Parallel population fitness evaluation.

The population is split into one contiguous index range per pool worker. Each
range is handled by a FitnessJob that owns a private simulator and its own
layermap/scratch buffers, and writes only the ``fitness`` of members inside
its range. Ranges are disjoint, so the shared population list needs no lock.

Jobs (and their buffers) are allocated once per evaluator and reused across
generations; partitions are recomputed on every evaluate() call.
"""

import logging
from typing import List, Sequence

import numpy as np

from ..taping_simulator import ShellSimulation
from ..utils.compute import WorkerPool, partition_ranges
from ..utils.validators import SimulationConfig
from .population import PopulationMember

logger = logging.getLogger(__name__)


class FitnessJob:
    """Evaluation unit bound to one worker slot.

    Attributes
    ----------
    simulator : ShellSimulation
        Private simulator instance
    layermap, scratch : np.ndarray
        Private uint16 buffers, zeroed before every member
    """

    def __init__(self, sim_cfg: SimulationConfig, target_layers: int):
        self.target_layers = target_layers
        self.simulator = ShellSimulation(sim_cfg)
        self.layermap, self.scratch = self.simulator.allocate_buffers()

    def evaluate_range(self, population: Sequence[PopulationMember], indices: range) -> None:
        for i in indices:
            member = population[i]
            self.simulator.simulate_taping(member.config, self.layermap, self.scratch)
            member.fitness = self.simulator.compute_layermap_error(self.target_layers, self.layermap)


class PopulationFitnessEvaluator:
    """Evaluate every member of a population on a worker pool.

    Parameters
    ----------
    sim_cfg : SimulationConfig
        Raster settings shared by all jobs
    target_layers : int
        Desired uniform layer count
    pool : WorkerPool
        Dispatch substrate; one job is allocated per worker
    """

    def __init__(self, sim_cfg: SimulationConfig, target_layers: int, pool: WorkerPool):
        self.sim_cfg = sim_cfg
        self.target_layers = target_layers
        self.pool = pool
        self.jobs: List[FitnessJob] = [
            FitnessJob(sim_cfg, target_layers) for _ in range(pool.worker_count)
        ]

    def evaluate(self, population: List[PopulationMember]) -> List[PopulationMember]:
        """Fill in ``fitness`` for every member; returns after all jobs finish."""
        ranges = partition_ranges(len(population), len(self.jobs))

        def run(job_index: int) -> None:
            self.jobs[job_index].evaluate_range(population, ranges[job_index])

        self.pool.run_jobs(run, range(len(self.jobs)))

        if population:
            fitness = np.array([m.fitness for m in population])
            logger.debug(
                f"Evaluated {len(population)} members on {len(self.jobs)} workers: "
                f"min={fitness.min():.4f}, max={fitness.max():.4f}"
            )
        return population
