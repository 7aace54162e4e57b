"""Natural selection, crossover and mutation.

Provides:
    - natural_selection(): rebuild a ranked population as elite ++ children ++ randoms
    - breed_members(): lerp crossover of two parents plus multiplicative mutation

With ``E = floor(N · elitePercentage)`` and ``R = floor(N · randomPercentage)``:
    - the top E ranked members are kept unchanged (same objects, same fitness)
    - N − E − R children are bred from parents drawn uniformly, with
      replacement, from ranked indices [0, N − R)
    - R members are freshly randomised within the configured bounds

All randomness comes from the RandomState passed in; selection runs on the
driver thread only.
"""

import logging
from typing import List

import numpy as np

from ..utils.validators import MAX_ARM_ANGLE_DEG, EvolutionConfig
from .population import ORIGIN_BRED, ORIGIN_ELITE, PopulationMember, initialize_population, member_from_genes

logger = logging.getLogger(__name__)


def _mutation_factor(evo_cfg: EvolutionConfig, rng: np.random.RandomState) -> float:
    sign = 1.0 if rng.randint(2) == 1 else -1.0
    return 1.0 + evo_cfg.max_mutation_percentage * sign * rng.uniform(0.0, 1.0)


def breed_members(
    first: PopulationMember,
    second: PopulationMember,
    evo_cfg: EvolutionConfig,
    rng: np.random.RandomState,
) -> PopulationMember:
    """Breed a child from two parents.

    Parameters
    ----------
    first, second : PopulationMember
        Parents (may be the same member)
    evo_cfg : EvolutionConfig
        Mutation strength and the arm angle floor
    rng : np.random.RandomState
        Random source

    Returns
    -------
    PopulationMember
        Unevaluated child

    Notes
    -----
    Per angle, the arm angle and speed are independent random lerps of the
    parents, each then scaled by ``1 ± maxMutationPercentage · U[0, 1]``.
    Angles are clamped to [minShellArmAngle, 90]; speeds are not clamped and
    rim rotations are derived from the bred speed.
    """
    angles = []
    speeds = []
    for a in range(evo_cfg.num_angles):
        angle_t = rng.uniform(0.0, 1.0)
        speed_t = rng.uniform(0.0, 1.0)
        angle = (
            first.config.shell_arm_angles[a] * (1.0 - angle_t)
            + second.config.shell_arm_angles[a] * angle_t
        )
        speed = (
            first.config.shell_stepper_speed[a] * (1.0 - speed_t)
            + second.config.shell_stepper_speed[a] * speed_t
        )

        angle *= _mutation_factor(evo_cfg, rng)
        speed *= _mutation_factor(evo_cfg, rng)

        angles.append(float(np.clip(angle, evo_cfg.min_shell_arm_angle, MAX_ARM_ANGLE_DEG)))
        speeds.append(speed)

    return member_from_genes(evo_cfg, angles, speeds, origin=ORIGIN_BRED)


def natural_selection(
    population: List[PopulationMember],
    evo_cfg: EvolutionConfig,
    rng: np.random.RandomState,
) -> List[PopulationMember]:
    """Build the next generation from a population ranked best-first.

    Parameters
    ----------
    population : list[PopulationMember]
        Ranked population (ascending fitness), length ``populationSize``
    evo_cfg : EvolutionConfig
        Elite/random fractions and breeding parameters
    rng : np.random.RandomState
        Random source

    Returns
    -------
    list[PopulationMember]
        New population of the same size

    Raises
    ------
    ValueError
        If the population size differs from ``populationSize``
    """
    size = len(population)
    if size != evo_cfg.population_size:
        raise ValueError(f"Population has {size} members, expected populationSize={evo_cfg.population_size}")
    elite_count = evo_cfg.elite_count
    random_count = evo_cfg.random_count
    child_count = size - elite_count - random_count
    parent_pool = size - random_count

    randoms = initialize_population(evo_cfg, size=random_count, rng=rng)

    children = []
    for _ in range(child_count):
        first = population[rng.randint(parent_pool)]
        second = population[rng.randint(parent_pool)]
        children.append(breed_members(first, second, evo_cfg, rng))

    elite = population[:elite_count]
    for member in elite:
        member.origin = ORIGIN_ELITE

    logger.debug(f"Selection: {elite_count} elite, {child_count} bred, {random_count} random")
    return elite + children + randoms
