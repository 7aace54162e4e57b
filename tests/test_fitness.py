"""Test work partitioning, the worker pool and parallel fitness evaluation.

Tests for shell_taping.utils.compute and shell_taping.evolution.fitness:
    - partition_ranges covers [0, N) exactly once for any N, W
    - WorkerPool returns results in submission order and re-raises failures
    - Fitness values are independent of the worker count
    - Fitness matches a direct single-threaded simulation
    - Job buffers are allocated once and reused across generations

Run:
    pytest tests/test_fitness.py -v
"""

import itertools
import threading

import numpy as np
import pytest

from shell_taping.evolution.fitness import FitnessJob, PopulationFitnessEvaluator
from shell_taping.evolution.population import initialize_population
from shell_taping.taping_simulator import ShellSimulation
from shell_taping.utils.compute import WorkerPool, partition_ranges
from shell_taping.utils.validators import EvolutionConfig, SimulationConfig


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def sim_cfg():
    return SimulationConfig(layermapSize=8, mapFillPrecisionMult=2.0, errorCalcYAxisSweeps=2)


@pytest.fixture
def evo_cfg():
    return EvolutionConfig(
        numAngles=2,
        shellDiameter=10.0,
        tapeWidth=2.0,
        shellChuckDiameter=1.0,
        targetLayers=2,
        maxGenerations=1,
        populationSize=7,
        elitePercentage=0.2,
        randomPercentage=0.2,
        maxMutationPercentage=0.1,
        minShellArmAngle=5.0,
        minShellArmAngles=[15.0, 45.0],
        maxShellArmAngles=[40.0, 85.0],
        minShellStepperSpeedFraction=[0.5, 0.5],
        maxShellStepperSpeedFraction=[1.5, 1.0],
    )


# ============================================================================
# PARTITIONING
# ============================================================================

def test_partition_example():
    assert partition_ranges(10, 4) == [range(0, 3), range(3, 6), range(6, 9), range(9, 10)]


def test_partition_trailing_empty_ranges():
    ranges = partition_ranges(4, 3)
    assert ranges == [range(0, 2), range(2, 4), range(4, 4)]


@pytest.mark.parametrize("n,workers", list(itertools.product(range(0, 18), range(1, 9))))
def test_partition_covers_exactly_once(n, workers):
    ranges = partition_ranges(n, workers)
    assert len(ranges) == workers

    indices = [i for r in ranges for i in r]
    assert indices == list(range(n))

    chunk = -(-n // workers)
    assert all(len(r) <= chunk for r in ranges)


def test_partition_invalid():
    with pytest.raises(ValueError):
        partition_ranges(5, 0)
    with pytest.raises(ValueError):
        partition_ranges(-1, 2)


# ============================================================================
# WORKER POOL
# ============================================================================

def test_pool_results_in_order():
    with WorkerPool(3) as pool:
        assert pool.run_jobs(lambda x: x * x, range(10)) == [x * x for x in range(10)]


def test_pool_waits_for_all_units():
    done = []
    lock = threading.Lock()

    def unit(i):
        with lock:
            done.append(i)

    with WorkerPool(4) as pool:
        pool.run_jobs(unit, range(25))
        assert sorted(done) == list(range(25))


def test_pool_reraises_failure():
    def unit(i):
        if i == 2:
            raise ValueError("unit 2 failed")
        return i

    with WorkerPool(2) as pool:
        with pytest.raises(ValueError, match="unit 2 failed"):
            pool.run_jobs(unit, range(4))


def test_pool_invalid_worker_count():
    with pytest.raises(ValueError):
        WorkerPool(0)


def test_pool_reusable_after_shutdown():
    pool = WorkerPool(2)
    assert pool.run_jobs(str, [1, 2]) == ["1", "2"]
    pool.shutdown()
    assert pool.run_jobs(str, [3]) == ["3"]
    pool.shutdown()


# ============================================================================
# FITNESS EVALUATION
# ============================================================================

def test_fitness_matches_direct_simulation(sim_cfg, evo_cfg):
    population = initialize_population(evo_cfg)
    with WorkerPool(3) as pool:
        PopulationFitnessEvaluator(sim_cfg, evo_cfg.target_layers, pool).evaluate(population)

    simulator = ShellSimulation(sim_cfg)
    for member in population:
        layermap = simulator.simulate_taping(member.config)
        assert member.fitness == simulator.compute_layermap_error(evo_cfg.target_layers, layermap)
        assert member.fitness >= 0.0


@pytest.mark.parametrize("workers", [1, 2, 3, 8, 16])
def test_fitness_independent_of_worker_count(sim_cfg, evo_cfg, workers):
    reference = initialize_population(evo_cfg)
    with WorkerPool(1) as pool:
        PopulationFitnessEvaluator(sim_cfg, evo_cfg.target_layers, pool).evaluate(reference)

    population = initialize_population(evo_cfg)
    with WorkerPool(workers) as pool:
        PopulationFitnessEvaluator(sim_cfg, evo_cfg.target_layers, pool).evaluate(population)

    assert [m.fitness for m in population] == [m.fitness for m in reference]


def test_job_buffers_reused(sim_cfg, evo_cfg):
    with WorkerPool(2) as pool:
        evaluator = PopulationFitnessEvaluator(sim_cfg, evo_cfg.target_layers, pool)
        assert len(evaluator.jobs) == 2
        buffers = [(job.layermap, job.scratch) for job in evaluator.jobs]

        population = initialize_population(evo_cfg)
        evaluator.evaluate(population)
        first = [m.fitness for m in population]
        for member in population:
            member.fitness = 0.0
        evaluator.evaluate(population)

    assert [m.fitness for m in population] == first
    for job, (layermap, scratch) in zip(evaluator.jobs, buffers):
        assert job.layermap is layermap
        assert job.scratch is scratch


def test_fitness_job_writes_only_its_range(sim_cfg, evo_cfg):
    population = initialize_population(evo_cfg)
    for member in population:
        member.fitness = -1.0

    FitnessJob(sim_cfg, evo_cfg.target_layers).evaluate_range(population, range(2, 5))

    fitness = np.array([m.fitness for m in population])
    assert np.all(fitness[[0, 1, 5, 6]] == -1.0)
    assert np.all(fitness[2:5] >= 0.0)


def test_evaluate_empty_population(sim_cfg, evo_cfg):
    with WorkerPool(2) as pool:
        assert PopulationFitnessEvaluator(sim_cfg, 2, pool).evaluate([]) == []
