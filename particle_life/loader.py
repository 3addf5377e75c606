"""
YAML run-config loader with schema validation.

Loads run configuration from YAML, validates it structurally against a
JSON schema and semantically against the simulation's invariants.
All configuration problems surface here, before anything runs.
"""

import yaml
import json
from dataclasses import fields
from pathlib import Path
from typing import Optional
import jsonschema

from .data_types import RunConfig, BoundaryMode, SpawnDistribution


class DataLoadError(Exception):
    """Raised when data loading or schema validation fails"""
    pass


class ConfigurationError(Exception):
    """Raised when a run configuration violates an invariant (fatal to the run)"""
    pass


class DeserializationError(Exception):
    """Raised when a saved genome cannot be bound to the active configuration"""
    pass


def load_yaml(file_path: Path) -> dict:
    """Load YAML file and return parsed dict"""
    file_path = Path(file_path)
    if not file_path.exists():
        raise DataLoadError(f"File not found: {file_path}")

    try:
        with open(file_path, 'r') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DataLoadError(f"YAML parse error in {file_path}: {e}")


def validate_against_schema(data: dict, schema_path: Path, data_path: Path):
    """Validate data dict against JSON schema"""
    if not schema_path.exists():
        # Schema validation optional
        return

    try:
        with open(schema_path, 'r') as f:
            schema = json.load(f)
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        raise DataLoadError(f"Validation error in {data_path}: {e.message}")
    except json.JSONDecodeError as e:
        raise DataLoadError(f"Invalid JSON schema {schema_path}: {e}")


def _check_unit_interval(name: str, value: float):
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be within [0, 1], got {value}")


def validate_run_config(config: RunConfig) -> RunConfig:
    """
    Check every run invariant, raising ConfigurationError on the first violation.

    Args:
        config: Parsed run configuration

    Returns:
        The same config (for chaining)
    """
    if config.num_particle_types <= 0:
        raise ConfigurationError("num_particle_types must be at least 1")
    if config.particles_per_simulation <= 0:
        raise ConfigurationError("particles_per_simulation must be at least 1")
    if config.num_simulations <= 0:
        raise ConfigurationError("num_simulations must be at least 1")
    if config.world_size <= 0:
        raise ConfigurationError(f"world_size must be positive, got {config.world_size}")
    if config.particle_radius <= 0 or config.food_radius < 0:
        raise ConfigurationError("particle_radius must be positive and food_radius non-negative")
    if config.world_size <= 2.0 * config.particle_radius:
        raise ConfigurationError(
            f"world_size ({config.world_size}) must exceed twice particle_radius ({config.particle_radius})")
    if config.food_count < 0:
        raise ConfigurationError(f"food_count must be non-negative, got {config.food_count}")
    if config.tick_dt <= 0:
        raise ConfigurationError(f"tick_dt must be positive, got {config.tick_dt}")
    if config.epoch_duration_seconds <= 0:
        raise ConfigurationError(
            f"epoch_duration_seconds must be positive, got {config.epoch_duration_seconds}")
    if config.velocity_half_life <= 0:
        raise ConfigurationError(
            f"velocity_half_life must be positive, got {config.velocity_half_life}")
    if config.max_velocity <= 0:
        raise ConfigurationError(f"max_velocity must be positive, got {config.max_velocity}")
    if config.max_interactions < 0:
        raise ConfigurationError("max_interactions must be non-negative")
    if config.tournament_size < 1:
        raise ConfigurationError("tournament_size must be at least 1")
    if config.workers < 1:
        raise ConfigurationError("workers must be at least 1")

    # Force ramp is undefined when the inner radius reaches the range
    if config.max_force_range <= config.min_radius:
        raise ConfigurationError(
            f"max_force_range ({config.max_force_range}) must exceed "
            f"num_particle_types * particle_radius ({config.min_radius})")

    _check_unit_interval("elite_ratio", config.elite_ratio)
    _check_unit_interval("mutation_rate", config.mutation_rate)
    _check_unit_interval("crossover_rate", config.crossover_rate)

    if config.elite_count > config.num_simulations:
        raise ConfigurationError(
            f"elite_count ({config.elite_count}) exceeds num_simulations ({config.num_simulations})")

    if config.type_ratios is not None:
        if len(config.type_ratios) != config.num_particle_types:
            raise ConfigurationError(
                f"type_ratios has {len(config.type_ratios)} entries, "
                f"expected {config.num_particle_types}")
        if any(r < 0 for r in config.type_ratios) or sum(config.type_ratios) <= 0:
            raise ConfigurationError("type_ratios must be non-negative with a positive sum")

    if config.initial_genome not in ("random", "preset"):
        raise ConfigurationError(f"Unknown initial_genome '{config.initial_genome}'")

    return config


def parse_run_config(data: dict) -> RunConfig:
    """Build a validated RunConfig from a plain dict (unknown keys rejected)"""
    if data is None:
        data = {}

    known = {f.name for f in fields(RunConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")

    try:
        if 'boundary_mode' in data:
            data = dict(data, boundary_mode=BoundaryMode(data['boundary_mode']))
        if 'spawn_distribution' in data:
            data = dict(data, spawn_distribution=SpawnDistribution(data['spawn_distribution']))
    except ValueError as e:
        raise ConfigurationError(str(e))

    return validate_run_config(RunConfig(**data))


def load_run_config(file_path: Path, schema_dir: Optional[Path] = None) -> RunConfig:
    """Load run configuration from YAML"""
    file_path = Path(file_path)
    data = load_yaml(file_path)

    # Validate if schema available
    if schema_dir:
        schema_path = Path(schema_dir) / "run.schema.json"
        validate_against_schema(data, schema_path, file_path)

    return parse_run_config(data)
