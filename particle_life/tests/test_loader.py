"""
Run configuration loading tests.

Verifies YAML -> RunConfig conversion, schema validation and the
semantic checks that must fail before any epoch runs.
"""

import sys
import pytest
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from particle_life.data_types import RunConfig, BoundaryMode, SpawnDistribution
from particle_life.loader import (
    load_run_config, parse_run_config, validate_run_config,
    ConfigurationError, DataLoadError,
)

REPO_ROOT = Path(__file__).parent.parent.parent
SCHEMA_DIR = REPO_ROOT / "schemas"


def write_yaml(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "run.yaml"
    path.write_text(text)
    return path


def test_load_default_run():
    """Shipped run.yaml loads and validates against its schema"""
    config = load_run_config(REPO_ROOT / "data" / "run.yaml", SCHEMA_DIR)

    print(f"[OK] Loaded run: {config.num_simulations} x {config.particles_per_simulation} particles, "
          f"{config.ticks_per_epoch} ticks/epoch")

    assert config.num_simulations == 6
    assert config.num_particle_types == 3
    assert config.boundary_mode == BoundaryMode.BOUNCE
    assert config.spawn_distribution == SpawnDistribution.UNIFORM
    assert config.elite_count == 1


def test_defaults_fill_missing_keys(tmp_path):
    path = write_yaml(tmp_path, "num_simulations: 4\nboundary_mode: teleport\n")
    config = load_run_config(path, SCHEMA_DIR)

    assert config.num_simulations == 4
    assert config.boundary_mode == BoundaryMode.TELEPORT
    assert config.particles_per_simulation == RunConfig().particles_per_simulation


def test_schema_violation_is_data_load_error(tmp_path):
    path = write_yaml(tmp_path, "boundary_mode: wrap\n")
    with pytest.raises(DataLoadError):
        load_run_config(path, SCHEMA_DIR)


def test_unknown_boundary_without_schema_is_configuration_error(tmp_path):
    path = write_yaml(tmp_path, "boundary_mode: wrap\n")
    with pytest.raises(ConfigurationError):
        load_run_config(path)


def test_unknown_key_rejected():
    with pytest.raises(ConfigurationError):
        parse_run_config({'num_simulation': 3})


def test_missing_file_and_bad_yaml(tmp_path):
    with pytest.raises(DataLoadError):
        load_run_config(tmp_path / "missing.yaml")

    path = write_yaml(tmp_path, "num_simulations: [1, 2\n")
    with pytest.raises(DataLoadError):
        load_run_config(path)


def test_empty_file_gives_defaults(tmp_path):
    config = load_run_config(write_yaml(tmp_path, ""))
    assert config == RunConfig()


@pytest.mark.parametrize("overrides", [
    {'num_particle_types': 0},
    {'particles_per_simulation': 0},
    {'num_simulations': 0},
    {'world_size': 0.0},
    {'world_size': 6.0},
    {'food_count': -1},
    {'tick_dt': 0.0},
    {'epoch_duration_seconds': -1.0},
    {'velocity_half_life': 0.0},
    {'mutation_rate': 1.5},
    {'elite_ratio': -0.5},
    {'crossover_rate': 2.0},
    {'max_force_range': 12.0},
    {'type_ratios': [1.0, 1.0]},
    {'type_ratios': [0.0, 0.0, 0.0]},
    {'initial_genome': 'handmade'},
    {'workers': 0},
])
def test_invalid_values_rejected(overrides):
    with pytest.raises(ConfigurationError):
        validate_run_config(RunConfig(**overrides))


def test_tick_count_is_exact():
    config = RunConfig(epoch_duration_seconds=1.0, tick_dt=0.1)
    assert config.ticks_per_epoch == 10

    config = RunConfig(epoch_duration_seconds=1.05, tick_dt=0.1)
    assert config.ticks_per_epoch == 11


def test_to_dict_uses_plain_strings():
    data = RunConfig(boundary_mode="teleport").to_dict()
    assert data['boundary_mode'] == "teleport"
    assert parse_run_config(data) == RunConfig(boundary_mode="teleport")
