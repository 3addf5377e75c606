import json
import numpy as np
import pytest
from pathlib import Path

from particle_life.data_types import RunConfig
from particle_life.genotype import Genotype
from particle_life.loader import DeserializationError
from particle_life.persistence import (
    make_saved_population, save_population, load_population, load_all_populations,
    bind_saved_genotype, safe_filename,
)

SCHEMA_DIR = Path(__file__).parent.parent.parent / "schemas"


def saved_example(name="champion", timestamp="2026-01-02_03-04-05", types=3):
    config = RunConfig(num_particle_types=types)
    genome = Genotype.random(types, np.random.default_rng(8))
    return genome, config, make_saved_population(genome, 12.5, config, name, epoch=7,
                                                 description="test run", timestamp=timestamp)


def test_save_then_load_and_bind(tmp_path):
    genome, config, saved = saved_example()

    path = save_population(saved, tmp_path)
    assert path.name == "champion_2026-01-02_03-04-05.json"

    loaded = load_population(path, SCHEMA_DIR)
    assert loaded.score == 12.5
    assert loaded.epoch == 7
    assert loaded.description == "test run"
    assert loaded.run_parameters['boundary_mode'] == "bounce"
    assert bind_saved_genotype(loaded, config) == genome


def test_document_layout(tmp_path):
    _, _, saved = saved_example(types=2)
    data = json.loads(save_population(saved, tmp_path).read_text())

    assert set(data) == {'name', 'timestamp', 'genotype', 'score', 'epoch',
                         'run_parameters', 'description'}
    assert data['genotype']['type_count'] == 2
    assert len(data['genotype']['force_matrix']) == 4
    assert len(data['genotype']['food_forces']) == 2


def test_type_count_mismatch_rejected_before_binding():
    _, _, saved = saved_example(types=3)
    with pytest.raises(DeserializationError):
        bind_saved_genotype(saved, RunConfig(num_particle_types=4))


def test_malformed_documents_rejected(tmp_path):
    bad_json = tmp_path / "bad.json"
    bad_json.write_text("{not json")
    with pytest.raises(DeserializationError):
        load_population(bad_json, SCHEMA_DIR)

    out_of_range = tmp_path / "range.json"
    out_of_range.write_text(json.dumps({
        'name': 'x', 'timestamp': 't', 'score': 1.0,
        'genotype': {'type_count': 1, 'force_matrix': [2.0], 'food_forces': [0.0]},
    }))
    with pytest.raises(DeserializationError):
        load_population(out_of_range, SCHEMA_DIR)

    with pytest.raises(DeserializationError):
        load_population(tmp_path / "missing.json", SCHEMA_DIR)


def test_length_mismatch_rejected_when_binding():
    _, config, saved = saved_example(types=3)
    saved.force_matrix = saved.force_matrix[:-1]
    with pytest.raises(DeserializationError):
        bind_saved_genotype(saved, config)


def test_load_all_skips_bad_files_newest_first(tmp_path):
    _, _, older = saved_example(name="older", timestamp="2026-01-01_00-00-00")
    _, _, newer = saved_example(name="newer", timestamp="2026-02-01_00-00-00")
    save_population(older, tmp_path)
    save_population(newer, tmp_path)
    (tmp_path / "broken.json").write_text("[]")

    populations = load_all_populations(tmp_path, SCHEMA_DIR)
    assert [p.name for p in populations] == ["newer", "older"]


def test_safe_filename():
    assert safe_filename("my run/1") == "my_run_1"
    assert safe_filename("ok-name_2") == "ok-name_2"


def test_out_of_range_genes_rejected_without_schema(tmp_path):
    path = tmp_path / "range.json"
    path.write_text(json.dumps({
        'name': 'x', 'timestamp': 't', 'score': 1.0,
        'genotype': {'type_count': 1, 'force_matrix': [2.0], 'food_forces': [0.0]},
    }))

    saved = load_population(path, schema_dir=None)
    with pytest.raises(DeserializationError):
        bind_saved_genotype(saved, RunConfig(num_particle_types=1))

    saved = load_population(path, schema_dir=tmp_path / "no_schemas_here")
    with pytest.raises(DeserializationError):
        bind_saved_genotype(saved, RunConfig(num_particle_types=1))
