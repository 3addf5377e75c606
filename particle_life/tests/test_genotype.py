import numpy as np
import pytest

from particle_life.genotype import Genotype
from particle_life.loader import DeserializationError


def test_coefficients_are_clamped_into_unit_range():
    g = Genotype([[2.0, -3.0], [0.5, -0.5]], [1.5, -1.5])
    assert np.allclose(g.force_matrix, [[1.0, -1.0], [0.5, -0.5]])
    assert np.allclose(g.food_forces, [1.0, -1.0])


def test_arrays_are_read_only():
    g = Genotype.zeros(2)
    with pytest.raises(ValueError):
        g.force_matrix[0, 0] = 0.5
    with pytest.raises(ValueError):
        g.food_forces[0] = 0.5


def test_constructor_copies_its_input():
    matrix = np.zeros((2, 2))
    g = Genotype(matrix, np.zeros(2))
    matrix[0, 0] = 1.0
    assert g.get_force(0, 0) == 0.0


def test_shape_mismatch_rejected():
    with pytest.raises(ValueError):
        Genotype(np.zeros((2, 3)), np.zeros(2))
    with pytest.raises(ValueError):
        Genotype(np.zeros((2, 2)), np.zeros(3))


def test_random_is_seed_deterministic_and_in_range():
    a = Genotype.random(4, np.random.default_rng(42))
    b = Genotype.random(4, np.random.default_rng(42))
    assert a == b
    assert hash(a) == hash(b)

    # Same-type coefficients lean repulsive
    assert np.all(np.diag(a.force_matrix) <= -0.1)
    assert np.all(np.abs(a.flat_genes()) <= 1.0)


def test_preset_three_types_is_rock_paper_scissors():
    g = Genotype.preset(3, np.random.default_rng(0))
    assert g.get_force(0, 1) == 1.0
    assert g.get_force(1, 2) == 1.0
    assert g.get_force(2, 0) == 1.0
    assert g.get_force(1, 0) < 0.0


def test_flat_gene_order_is_matrix_row_major_then_food():
    g = Genotype([[0.1, 0.2], [0.3, 0.4]], [0.5, 0.6])
    assert np.allclose(g.flat_genes(), [0.1, 0.2, 0.3, 0.4, 0.5, 0.6])
    assert Genotype.from_genes(g.flat_genes(), 2) == g


def test_from_flat_rejects_dimension_mismatch():
    with pytest.raises(DeserializationError):
        Genotype.from_flat([0.0] * 4, [0.0, 0.0, 0.0], 3)
    with pytest.raises(DeserializationError):
        Genotype.from_flat([0.0] * 9, [0.0, 0.0], 3)
    with pytest.raises(DeserializationError):
        Genotype.from_flat([], [], 0)


def test_from_flat_index_is_type_a_times_count_plus_type_b():
    g = Genotype.from_flat([0.0, 0.25, -0.75, 0.5], [0.1, 0.2], 2)
    assert g.get_force(0, 1) == 0.25
    assert g.get_force(1, 0) == -0.75
    assert g.get_food_force(1) == 0.2


def test_from_flat_rejects_out_of_range_coefficients():
    with pytest.raises(DeserializationError):
        Genotype.from_flat([0.0, 1.5, 0.0, 0.0], [0.0, 0.0], 2)
    with pytest.raises(DeserializationError):
        Genotype.from_flat([0.0, 0.0, 0.0, 0.0], [0.0, -1.01], 2)
    with pytest.raises(DeserializationError):
        Genotype.from_flat([float('nan'), 0.0, 0.0, 0.0], [0.0, 0.0], 2)

    g = Genotype.from_flat([1.0, -1.0, 0.0, 0.0], [1.0, -1.0], 2)
    assert g.get_force(0, 1) == -1.0
