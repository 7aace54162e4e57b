"""Config schemas and loading for simulation, shell schedules and search.

Provides centralized validation for all configuration files using pydantic:
    - Simulation config (sim-config.json): raster resolution, fill precision, error sweeps
    - Shell schedule file (shell-config.json): angles and speed fractions per application
    - Search config ("SearchConfig" section of the simulation config): evolution bounds
    - ShellConfig: the in-memory schedule the simulator consumes (internal speed units)

All loaders fail fast with a ConfigError naming the offending file and field.
On-disk keys are camelCase (the taping machine tooling's format); Python
attributes are snake_case and both spellings are accepted on construction.

Units:
    - Lengths: physical units of the shell drawings (inches in the shipped configs)
    - Angles: degrees in configs, radians inside the simulator
    - Stepper speed: internal shell rotations per radian of rim rotation

Speed conversions (kept exact for round-trips with the machine tooling):
    shellStepperSpeed = 1 / (2 · shellStepperSpeedFraction)
    shellStepperSpeedFraction = 0.5 / shellStepperSpeed
    rimRotationsUntilNextAngle = 1 / shellStepperSpeed   (bred/initialised schedules)

Usage:
    from shell_taping.utils import validators

    sim_cfg = validators.load_simulation_config("configs/sim-config.json")
    evo_cfg = validators.load_evolution_config("configs/sim-config.json")
    shell_cfg = validators.load_shell_config("configs/shell-config.json")
"""

import json
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

SEARCH_CONFIG_SECTION = "SearchConfig"

MAX_ARM_ANGLE_DEG = 90.0


class ConfigError(ValueError):
    """Raised when a configuration file is missing, malformed or out of bounds."""


# ============================================================================
# UNIT CONVERSIONS
# ============================================================================

def speed_from_fraction(fraction: Union[float, Sequence[float], np.ndarray]):
    """Configured speed fraction → internal stepper speed, ``1 / (2f)``."""
    if np.ndim(fraction) == 0:
        return 1.0 / (2.0 * float(fraction))
    return [1.0 / (2.0 * float(f)) for f in fraction]


def speed_to_fraction(speed: Union[float, Sequence[float], np.ndarray]):
    """Internal stepper speed → configured speed fraction, ``0.5 / s``."""
    if np.ndim(speed) == 0:
        return 0.5 / float(speed)
    return [0.5 / float(s) for s in speed]


def derive_rim_rotations(speed: Union[float, Sequence[float], np.ndarray]):
    """Rim rotations an application is held for, ``1 / speed``.

    One shell rotation per application is the nominal target: the shell spins
    ``speed`` radians per rim radian, so ``1 / speed`` rim turns make one
    shell turn. Every code path that changes a speed derives the rim count
    through this function.
    """
    if np.ndim(speed) == 0:
        return 1.0 / float(speed)
    return [1.0 / float(s) for s in speed]


def _check_tape_width(tape_width: float, shell_diameter: float) -> None:
    if tape_width / shell_diameter >= 2.0 * math.pi:
        raise ValueError(
            f"tapeWidth={tape_width} is wider than the full rim "
            f"(angular width {tape_width / shell_diameter:.3f} rad >= 2π)"
        )


def _check_lengths(num_angles: int, **sequences: Sequence[float]) -> None:
    for name, seq in sequences.items():
        if len(seq) != num_angles:
            raise ValueError(f"{name} has {len(seq)} entries, expected numAngles={num_angles}")


def _check_positive(name: str, values: Sequence[float]) -> None:
    for i, v in enumerate(values):
        if not v > 0.0:
            raise ValueError(f"{name}[{i}]={v} must be > 0")


# ============================================================================
# SIMULATION CONFIG
# ============================================================================

class SimulationConfig(BaseModel):
    """Raster settings shared read-only by every simulation of a run."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    layermap_size: int = Field(..., alias="layermapSize", ge=2, description="Layermap width/height (cells)")
    map_fill_precision_mult: float = Field(
        ..., alias="mapFillPrecisionMult", gt=0.0, description="Raster samples per cell around a full turn"
    )
    error_calc_y_axis_sweeps: int = Field(
        ..., alias="errorCalcYAxisSweeps", ge=1, description="Columns sampled by the error metric"
    )

    @model_validator(mode='after')
    def validate_sweeps(self) -> 'SimulationConfig':
        if self.error_calc_y_axis_sweeps > self.layermap_size:
            raise ValueError(
                f"errorCalcYAxisSweeps={self.error_calc_y_axis_sweeps} exceeds "
                f"layermapSize={self.layermap_size}"
            )
        return self

    @property
    def step(self) -> float:
        """Angular raster step in radians."""
        return 2.0 * math.pi / (self.layermap_size * self.map_fill_precision_mult)


# ============================================================================
# SHELL SCHEDULE
# ============================================================================

class ShellConfig(BaseModel):
    """Taping schedule in internal units, one entry per application.

    ``shell_stepper_speed`` is in shell radians per rim radian;
    ``rim_rotations_until_next_angle`` in full rim turns.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    num_angles: int = Field(..., alias="numAngles", ge=1)
    shell_diameter: float = Field(..., alias="shellDiameter", gt=0.0)
    tape_width: float = Field(..., alias="tapeWidth", gt=0.0)
    shell_chuck_diameter: float = Field(..., alias="shellChuckDiameter", ge=0.0)
    shell_arm_angles: List[float] = Field(..., alias="shellArmAngles", description="Arm angles (deg)")
    shell_stepper_speed: List[float] = Field(..., alias="shellStepperSpeed")
    rim_rotations_until_next_angle: List[float] = Field(..., alias="rimRotationsUntilNextAngle")

    @model_validator(mode='after')
    def validate_schedule(self) -> 'ShellConfig':
        _check_lengths(
            self.num_angles,
            shellArmAngles=self.shell_arm_angles,
            shellStepperSpeed=self.shell_stepper_speed,
            rimRotationsUntilNextAngle=self.rim_rotations_until_next_angle,
        )
        _check_positive("shellStepperSpeed", self.shell_stepper_speed)
        _check_positive("rimRotationsUntilNextAngle", self.rim_rotations_until_next_angle)
        _check_tape_width(self.tape_width, self.shell_diameter)
        return self

    @property
    def tape_width_radians(self) -> float:
        return self.tape_width / self.shell_diameter

    @property
    def chuck_angle_radians(self) -> float:
        """Polar angle of the chuck contact circle on the shell."""
        return 2.0 * math.pi * self.shell_chuck_diameter / (math.pi * self.shell_diameter)


class ShellConfigFile(BaseModel):
    """On-disk shell schedule (shell-config.json / best-config.json)."""
    model_config = ConfigDict(populate_by_name=True)

    num_angles: int = Field(..., alias="numAngles", ge=1)
    shell_diameter: float = Field(..., alias="shellDiameter", gt=0.0)
    tape_width: float = Field(..., alias="tapeWidth", gt=0.0)
    shell_chuck_diameter: float = Field(..., alias="shellChuckDiameter", ge=0.0)
    shell_arm_angles: List[float] = Field(..., alias="shellArmAngles")
    shell_stepper_speed_fraction: List[float] = Field(..., alias="shellStepperSpeedFraction")
    rim_rotations_until_next_angle: List[float] = Field(..., alias="rimRotationsUntilNextAngle")

    @model_validator(mode='after')
    def validate_schedule(self) -> 'ShellConfigFile':
        _check_lengths(
            self.num_angles,
            shellArmAngles=self.shell_arm_angles,
            shellStepperSpeedFraction=self.shell_stepper_speed_fraction,
            rimRotationsUntilNextAngle=self.rim_rotations_until_next_angle,
        )
        _check_positive("shellStepperSpeedFraction", self.shell_stepper_speed_fraction)
        _check_positive("rimRotationsUntilNextAngle", self.rim_rotations_until_next_angle)
        return self

    def to_shell_config(self) -> ShellConfig:
        """Convert file units (speed fractions, half rim counts) to internal units."""
        return ShellConfig(
            num_angles=self.num_angles,
            shell_diameter=self.shell_diameter,
            tape_width=self.tape_width,
            shell_chuck_diameter=self.shell_chuck_diameter,
            shell_arm_angles=list(self.shell_arm_angles),
            shell_stepper_speed=speed_from_fraction(self.shell_stepper_speed_fraction),
            rim_rotations_until_next_angle=[2.0 * r for r in self.rim_rotations_until_next_angle],
        )


def shell_config_to_dict(cfg: ShellConfig) -> Dict[str, Any]:
    """Serialize a schedule into the on-disk shell-config layout.

    The per-angle speed fraction is written under both
    ``shellStepperSpeedFraction`` and ``rimRotationsUntilNextAngle``; loading
    the result back yields ``rim = 2 · 0.5 / speed = 1 / speed``.
    """
    fractions = speed_to_fraction(cfg.shell_stepper_speed)
    return {
        "numAngles": cfg.num_angles,
        "shellDiameter": cfg.shell_diameter,
        "tapeWidth": cfg.tape_width,
        "shellChuckDiameter": cfg.shell_chuck_diameter,
        "shellArmAngles": [float(a) for a in cfg.shell_arm_angles],
        "shellStepperSpeedFraction": fractions,
        "rimRotationsUntilNextAngle": list(fractions),
    }


# ============================================================================
# SEARCH CONFIG
# ============================================================================

class EvolutionConfig(BaseModel):
    """Bounds and meta-parameters for the schedule search."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    num_angles: int = Field(..., alias="numAngles", ge=1)
    shell_diameter: float = Field(..., alias="shellDiameter", gt=0.0)
    tape_width: float = Field(..., alias="tapeWidth", gt=0.0)
    shell_chuck_diameter: float = Field(..., alias="shellChuckDiameter", ge=0.0)

    target_layers: int = Field(..., alias="targetLayers", ge=0)
    max_generations: int = Field(..., alias="maxGenerations", ge=1)
    population_size: int = Field(..., alias="populationSize", ge=1)
    elite_percentage: float = Field(..., alias="elitePercentage", ge=0.0, le=1.0)
    random_percentage: float = Field(..., alias="randomPercentage", ge=0.0, le=1.0)
    max_mutation_percentage: float = Field(..., alias="maxMutationPercentage", ge=0.0, lt=1.0)
    min_shell_arm_angle: float = Field(..., alias="minShellArmAngle", le=MAX_ARM_ANGLE_DEG)

    min_shell_arm_angles: List[float] = Field(..., alias="minShellArmAngles")
    max_shell_arm_angles: List[float] = Field(..., alias="maxShellArmAngles")
    min_shell_stepper_speed_fraction: List[float] = Field(..., alias="minShellStepperSpeedFraction")
    max_shell_stepper_speed_fraction: List[float] = Field(..., alias="maxShellStepperSpeedFraction")

    @field_validator('min_shell_stepper_speed_fraction', 'max_shell_stepper_speed_fraction')
    @classmethod
    def validate_fractions(cls, v: List[float]) -> List[float]:
        _check_positive("shellStepperSpeedFraction bound", v)
        return v

    @model_validator(mode='after')
    def validate_bounds(self) -> 'EvolutionConfig':
        _check_lengths(
            self.num_angles,
            minShellArmAngles=self.min_shell_arm_angles,
            maxShellArmAngles=self.max_shell_arm_angles,
            minShellStepperSpeedFraction=self.min_shell_stepper_speed_fraction,
            maxShellStepperSpeedFraction=self.max_shell_stepper_speed_fraction,
        )
        for i, (lo, hi) in enumerate(zip(self.min_shell_arm_angles, self.max_shell_arm_angles)):
            if lo > hi:
                raise ValueError(f"minShellArmAngles[{i}]={lo} > maxShellArmAngles[{i}]={hi}")
        if self.elite_percentage + self.random_percentage > 1.0:
            raise ValueError(
                f"elitePercentage + randomPercentage = "
                f"{self.elite_percentage + self.random_percentage:.3f} exceeds 1"
            )
        _check_tape_width(self.tape_width, self.shell_diameter)
        return self

    @property
    def elite_count(self) -> int:
        """E = floor(N · elitePercentage), members carried over unchanged."""
        return int(self.population_size * self.elite_percentage)

    @property
    def random_count(self) -> int:
        """R = floor(N · randomPercentage), freshly randomised members."""
        return int(self.population_size * self.random_percentage)


# ============================================================================
# PUBLIC API
# ============================================================================

def _read_mapping(path: Union[str, Path], section: Optional[str] = None) -> Dict[str, Any]:
    from . import fs

    path = Path(path)
    try:
        data = fs.load_config(path)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except (json.JSONDecodeError, yaml.YAMLError, UnicodeDecodeError) as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to open config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")

    if section is not None:
        if section not in data:
            raise ConfigError(f"Config file {path} has no '{section}' section")
        data = data[section]
        if not isinstance(data, dict):
            raise ConfigError(f"Section '{section}' of {path} must be a mapping")
    return data


def load_simulation_config(path: Union[str, Path]) -> SimulationConfig:
    """Load and validate the simulation config.

    Parameters
    ----------
    path : Union[str, Path]
        Path to sim-config.json (or .yaml); extra sections are ignored

    Returns
    -------
    SimulationConfig
        Validated raster settings

    Raises
    ------
    ConfigError
        If the file is missing, unparsable, or fails validation
    """
    data = _read_mapping(path)
    try:
        return SimulationConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Simulation config validation failed at {path}: {e}") from e


def load_shell_config(path: Union[str, Path]) -> ShellConfig:
    """Load a shell schedule file and convert it to internal units.

    Raises
    ------
    ConfigError
        If the file is missing, unparsable, or fails validation
    """
    data = _read_mapping(path)
    try:
        return ShellConfigFile(**data).to_shell_config()
    except ValidationError as e:
        raise ConfigError(f"Shell config validation failed at {path}: {e}") from e


def load_evolution_config(path: Union[str, Path]) -> EvolutionConfig:
    """Load the ``SearchConfig`` section of the simulation config.

    Raises
    ------
    ConfigError
        If the file or section is missing, unparsable, or fails validation
    """
    data = _read_mapping(path, section=SEARCH_CONFIG_SECTION)
    try:
        return EvolutionConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Search config validation failed at {path}: {e}") from e
