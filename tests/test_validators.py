"""Test config schemas and loaders.

Tests for shell_taping.utils.validators:
    - Shipped configs in configs/ load and validate
    - Shell file unit conversion (speed = 1 / 2f, rim = 2 · rim_file)
    - Best-result serialisation round-trips through the shell loader
    - ConfigError on missing files, malformed JSON/YAML, missing fields,
      missing SearchConfig section and every bound violation
    - YAML configs accepted by suffix

Run:
    pytest tests/test_validators.py -v
"""

import json
import math
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from shell_taping.utils import fs, validators
from shell_taping.utils.validators import ConfigError


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(scope="module")
def project_root():
    """Project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def shell_data():
    return {
        "numAngles": 2,
        "shellDiameter": 10.0,
        "tapeWidth": 1.0,
        "shellChuckDiameter": 1.0,
        "shellArmAngles": [20.0, 60.0],
        "shellStepperSpeedFraction": [0.5, 2.0],
        "rimRotationsUntilNextAngle": [0.5, 1.5],
    }


@pytest.fixture
def sim_data():
    return {
        "layermapSize": 32,
        "mapFillPrecisionMult": 2.0,
        "errorCalcYAxisSweeps": 4,
        "SearchConfig": {
            "numAngles": 2,
            "shellDiameter": 10.0,
            "tapeWidth": 1.0,
            "shellChuckDiameter": 1.0,
            "targetLayers": 3,
            "maxGenerations": 2,
            "populationSize": 8,
            "elitePercentage": 0.25,
            "randomPercentage": 0.25,
            "maxMutationPercentage": 0.1,
            "minShellArmAngle": 5.0,
            "minShellArmAngles": [10.0, 40.0],
            "maxShellArmAngles": [30.0, 80.0],
            "minShellStepperSpeedFraction": [0.5, 0.5],
            "maxShellStepperSpeedFraction": [1.0, 2.0],
        },
    }


def write_json(path, data):
    path.write_text(json.dumps(data))
    return path


# ============================================================================
# SHIPPED CONFIGS
# ============================================================================

def test_shipped_configs_load(project_root):
    sim_cfg = validators.load_simulation_config(project_root / "configs/sim-config.json")
    evo_cfg = validators.load_evolution_config(project_root / "configs/sim-config.json")
    shell_cfg = validators.load_shell_config(project_root / "configs/shell-config.json")

    assert sim_cfg.layermap_size >= 2
    assert evo_cfg.num_angles == len(evo_cfg.min_shell_arm_angles)
    assert shell_cfg.num_angles == len(shell_cfg.shell_arm_angles)


# ============================================================================
# SIMULATION CONFIG
# ============================================================================

def test_simulation_config(tmp_path, sim_data):
    cfg = validators.load_simulation_config(write_json(tmp_path / "sim.json", sim_data))
    assert cfg.layermap_size == 32
    assert cfg.map_fill_precision_mult == 2.0
    assert cfg.error_calc_y_axis_sweeps == 4
    assert cfg.step == pytest.approx(2 * math.pi / 64)


def test_simulation_config_is_frozen(sim_data):
    cfg = validators.SimulationConfig(layermapSize=8, mapFillPrecisionMult=2.0, errorCalcYAxisSweeps=2)
    with pytest.raises(ValidationError):
        cfg.layermap_size = 16


@pytest.mark.parametrize("field,value", [
    ("layermapSize", 1),
    ("mapFillPrecisionMult", 0.0),
    ("errorCalcYAxisSweeps", 0),
    ("errorCalcYAxisSweeps", 64),  # more sweeps than columns
])
def test_simulation_config_bounds(tmp_path, sim_data, field, value):
    sim_data[field] = value
    with pytest.raises(ConfigError, match="validation failed"):
        validators.load_simulation_config(write_json(tmp_path / "sim.json", sim_data))


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        validators.load_simulation_config(tmp_path / "nope.json")


def test_malformed_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text('{"layermapSize": 8,')
    with pytest.raises(ConfigError, match="bad.json"):
        validators.load_simulation_config(path)


def test_non_mapping_json(tmp_path):
    path = write_json(tmp_path / "list.json", [1, 2, 3])
    with pytest.raises(ConfigError, match="mapping"):
        validators.load_simulation_config(path)


def test_missing_field(tmp_path, sim_data):
    del sim_data["errorCalcYAxisSweeps"]
    with pytest.raises(ConfigError, match="errorCalcYAxisSweeps"):
        validators.load_simulation_config(write_json(tmp_path / "sim.json", sim_data))


def test_yaml_config(tmp_path, sim_data):
    path = tmp_path / "sim.yaml"
    path.write_text(yaml.safe_dump(sim_data, sort_keys=False))
    assert validators.load_simulation_config(path).layermap_size == 32
    assert validators.load_evolution_config(path).population_size == 8


# ============================================================================
# SHELL CONFIG
# ============================================================================

def test_shell_file_conversion(tmp_path, shell_data):
    cfg = validators.load_shell_config(write_json(tmp_path / "shell.json", shell_data))
    assert cfg.shell_arm_angles == [20.0, 60.0]
    assert cfg.shell_stepper_speed == pytest.approx([1.0, 0.25])
    assert cfg.rim_rotations_until_next_angle == pytest.approx([1.0, 3.0])
    assert cfg.tape_width_radians == pytest.approx(0.1)
    assert cfg.chuck_angle_radians == pytest.approx(0.2)


@pytest.mark.parametrize("field,value", [
    ("shellArmAngles", [20.0]),
    ("shellStepperSpeedFraction", [0.5, 0.0]),
    ("rimRotationsUntilNextAngle", [0.5, -1.0]),
    ("tapeWidth", 0.0),
    ("tapeWidth", 70.0),  # 7 rad across a 10-unit shell
    ("shellDiameter", 0.0),
    ("numAngles", 3),
])
def test_shell_config_invalid(tmp_path, shell_data, field, value):
    shell_data[field] = value
    with pytest.raises(ConfigError):
        validators.load_shell_config(write_json(tmp_path / "shell.json", shell_data))


def test_shell_config_rejects_zero_speed():
    with pytest.raises(ValidationError, match="shellStepperSpeed"):
        validators.ShellConfig(
            numAngles=1, shellDiameter=10.0, tapeWidth=1.0, shellChuckDiameter=1.0,
            shellArmAngles=[45.0], shellStepperSpeed=[0.0], rimRotationsUntilNextAngle=[1.0],
        )


def test_shell_config_roundtrip(tmp_path, shell_data):
    original = validators.load_shell_config(write_json(tmp_path / "shell.json", shell_data))
    data = validators.shell_config_to_dict(original)

    assert data["shellStepperSpeedFraction"] == pytest.approx([0.5, 2.0])
    assert data["rimRotationsUntilNextAngle"] == data["shellStepperSpeedFraction"]

    path = tmp_path / "best-config.json"
    fs.atomic_json_dump(data, path)
    reloaded = validators.load_shell_config(path)
    assert reloaded.shell_arm_angles == original.shell_arm_angles
    assert reloaded.shell_stepper_speed == pytest.approx(original.shell_stepper_speed)
    # Persisted rim rotations are re-derived from speed
    assert reloaded.rim_rotations_until_next_angle == pytest.approx(
        [1.0 / s for s in original.shell_stepper_speed]
    )


# ============================================================================
# SEARCH CONFIG
# ============================================================================

def test_evolution_config(tmp_path, sim_data):
    cfg = validators.load_evolution_config(write_json(tmp_path / "sim.json", sim_data))
    assert cfg.population_size == 8
    assert cfg.elite_count == 2
    assert cfg.random_count == 2
    assert cfg.target_layers == 3


def test_evolution_config_missing_section(tmp_path, sim_data):
    del sim_data["SearchConfig"]
    with pytest.raises(ConfigError, match="SearchConfig"):
        validators.load_evolution_config(write_json(tmp_path / "sim.json", sim_data))


@pytest.mark.parametrize("field,value", [
    ("minShellArmAngles", [10.0]),
    ("maxShellStepperSpeedFraction", [1.0, 2.0, 3.0]),
    ("minShellStepperSpeedFraction", [0.0, 0.5]),
    ("maxShellArmAngles", [5.0, 80.0]),  # below the matching minimum
    ("elitePercentage", 0.8),            # elite + random > 1
    ("maxMutationPercentage", 1.0),
    ("populationSize", 0),
    ("minShellArmAngle", 95.0),
])
def test_evolution_config_invalid(tmp_path, sim_data, field, value):
    sim_data["SearchConfig"][field] = value
    with pytest.raises(ConfigError):
        validators.load_evolution_config(write_json(tmp_path / "sim.json", sim_data))
