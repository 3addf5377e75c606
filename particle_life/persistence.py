"""
Saved-genome persistence.

A saved population is one JSON document: name, timestamp, genotype
(type_count, flat row-major force_matrix, food_forces), score, epoch,
run_parameters and an optional description. Documents are validated
against schemas/population.schema.json on load and must match the active
run's type count before they can be bound to an instance.
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import jsonschema

from .data_types import RunConfig, SavedPopulation
from .genotype import Genotype
from .loader import DeserializationError


DEFAULT_SCHEMA_DIR = Path(__file__).resolve().parent.parent / "schemas"
POPULATION_SCHEMA = "population.schema.json"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def safe_filename(name: str) -> str:
    """Keep alphanumerics, '_' and '-'; everything else becomes '_'"""
    return re.sub(r'[^\w\-]', '_', name, flags=re.ASCII)


def make_saved_population(
    genome: Genotype,
    score: float,
    config: RunConfig,
    name: str,
    epoch: int = 0,
    description: Optional[str] = None,
    timestamp: Optional[str] = None
) -> SavedPopulation:
    """Package a genotype with its score and the run parameters that produced it"""
    return SavedPopulation(
        name=name,
        timestamp=timestamp or datetime.now().strftime(TIMESTAMP_FORMAT),
        type_count=genome.type_count,
        force_matrix=[float(v) for v in genome.force_matrix.ravel()],
        food_forces=[float(v) for v in genome.food_forces],
        score=float(score),
        epoch=epoch,
        run_parameters=config.to_dict(),
        description=description,
    )


def save_population(saved: SavedPopulation, directory: Path) -> Path:
    """
    Write a saved population as pretty-printed JSON.

    Args:
        saved: Population to write
        directory: Target directory (created if missing)

    Returns:
        Path of the written file ({safe_name}_{timestamp}.json)
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    file_path = directory / f"{safe_filename(saved.name)}_{saved.timestamp}.json"
    with open(file_path, 'w') as f:
        json.dump(saved.to_dict(), f, indent=2)

    return file_path


def load_population(file_path: Path, schema_dir: Optional[Path] = DEFAULT_SCHEMA_DIR) -> SavedPopulation:
    """
    Read and validate a saved population.

    Raises:
        DeserializationError: if the file is missing, not JSON, or fails validation
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise DeserializationError(f"File not found: {file_path}")

    try:
        with open(file_path, 'r') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise DeserializationError(f"Invalid JSON in {file_path}: {e}")

    # Validate if schema available
    if schema_dir:
        schema_path = Path(schema_dir) / POPULATION_SCHEMA
        if schema_path.exists():
            with open(schema_path, 'r') as f:
                schema = json.load(f)
            try:
                jsonschema.validate(instance=data, schema=schema)
            except jsonschema.ValidationError as e:
                raise DeserializationError(f"Validation error in {file_path}: {e.message}")

    try:
        return SavedPopulation.from_dict(data)
    except (KeyError, TypeError) as e:
        raise DeserializationError(f"Malformed saved population {file_path}: {e}")


def load_all_populations(directory: Path, schema_dir: Optional[Path] = DEFAULT_SCHEMA_DIR) -> List[SavedPopulation]:
    """
    Every readable saved population in a directory, newest first.

    Unreadable files are reported and skipped.
    """
    directory = Path(directory)
    if not directory.exists():
        return []

    populations = []
    for path in sorted(directory.glob("*.json")):
        try:
            populations.append(load_population(path, schema_dir))
        except DeserializationError as e:
            print(f"[WARN] Skipping {path.name}: {e}")

    populations.sort(key=lambda p: p.timestamp, reverse=True)
    return populations


def bind_saved_genotype(saved: SavedPopulation, config: RunConfig) -> Genotype:
    """
    Rebuild the saved genotype for the active run.

    Raises:
        DeserializationError: if the saved type count differs from the run's
            or a coefficient lies outside [-1, 1]
    """
    if saved.type_count != config.num_particle_types:
        raise DeserializationError(
            f"Saved population '{saved.name}' has {saved.type_count} types, "
            f"active run uses {config.num_particle_types}")

    return Genotype.from_flat(saved.force_matrix, saved.food_forces, saved.type_count)
