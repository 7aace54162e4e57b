"""Population model and generation-0 initialisation.

Provides:
    - PopulationMember: a schedule paired with its fitness
    - initialize_population(): grid placement of members between configured bounds
    - member_from_genes(): schedule construction from per-angle angles and speeds
    - Speed conversions shared with the config loaders

Grid placement (deterministic, generation 0):
    g = ceil(sqrt(N)); member i sits at column i % g, row i // g
    angle  = lerp(minShellArmAngles[a], maxShellArmAngles[a], column / (g - 1))
    speed  = 1 / (2 · lerp(minFraction[a], maxFraction[a], row / (g - 1)))
    rim    = 1 / speed

When N is not a perfect square the last row is ragged. Diversity reinjection
passes an rng, in which case both lerp factors are drawn uniformly from [0, 1]
per angle instead of read off the grid.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from ..utils.validators import (
    EvolutionConfig,
    ShellConfig,
    derive_rim_rotations,
    speed_from_fraction,
    speed_to_fraction,
)

logger = logging.getLogger(__name__)

__all__ = [
    'PopulationMember',
    'initialize_population',
    'member_from_genes',
    'derive_rim_rotations',
    'speed_from_fraction',
    'speed_to_fraction',
]

ORIGIN_INITIAL = "initial"
ORIGIN_ELITE = "elite"
ORIGIN_BRED = "bred"
ORIGIN_RANDOM = "random"


@dataclass
class PopulationMember:
    """Candidate schedule with its fitness (0.0 until evaluated, lower is better)."""

    config: ShellConfig
    fitness: float = 0.0
    origin: str = ORIGIN_INITIAL


def _lerp(a: float, b: float, t: float) -> float:
    return a * (1.0 - t) + b * t


def member_from_genes(
    evo_cfg: EvolutionConfig,
    arm_angles: Sequence[float],
    speeds: Sequence[float],
    origin: str = ORIGIN_INITIAL,
) -> PopulationMember:
    """Build an unevaluated member with the search's shell geometry.

    Rim rotations are derived from ``speeds``.
    """
    config = ShellConfig(
        num_angles=evo_cfg.num_angles,
        shell_diameter=evo_cfg.shell_diameter,
        tape_width=evo_cfg.tape_width,
        shell_chuck_diameter=evo_cfg.shell_chuck_diameter,
        shell_arm_angles=[float(a) for a in arm_angles],
        shell_stepper_speed=[float(s) for s in speeds],
        rim_rotations_until_next_angle=derive_rim_rotations(speeds),
    )
    return PopulationMember(config=config, fitness=0.0, origin=origin)


def initialize_population(
    evo_cfg: EvolutionConfig,
    size: Optional[int] = None,
    rng: Optional[np.random.RandomState] = None,
) -> List[PopulationMember]:
    """Create ``size`` unevaluated members spread between the configured bounds.

    Parameters
    ----------
    evo_cfg : EvolutionConfig
        Search bounds
    size : int, optional
        Number of members, defaults to ``evo_cfg.population_size``
    rng : np.random.RandomState, optional
        When given, lerp factors are drawn at random (diversity reinjection);
        otherwise members are placed on the grid

    Returns
    -------
    list[PopulationMember]
        Members in grid order, fitness 0.0
    """
    size = evo_cfg.population_size if size is None else size
    origin = ORIGIN_INITIAL if rng is None else ORIGIN_RANDOM
    grid = max(1, int(math.ceil(math.sqrt(size))))
    denom = float(grid - 1) if grid > 1 else 1.0

    population = []
    for i in range(size):
        angles = []
        speeds = []
        for a in range(evo_cfg.num_angles):
            if rng is None:
                angle_t = (i % grid) / denom
                speed_t = (i // grid) / denom
            else:
                angle_t = rng.uniform(0.0, 1.0)
                speed_t = rng.uniform(0.0, 1.0)

            angles.append(_lerp(evo_cfg.min_shell_arm_angles[a], evo_cfg.max_shell_arm_angles[a], angle_t))
            fraction = _lerp(
                evo_cfg.min_shell_stepper_speed_fraction[a],
                evo_cfg.max_shell_stepper_speed_fraction[a],
                speed_t,
            )
            speeds.append(speed_from_fraction(fraction))

        population.append(member_from_genes(evo_cfg, angles, speeds, origin=origin))

    logger.debug(f"Initialised {size} {origin} members")
    return population
