import numpy as np

from particle_life.data_types import RunConfig
from particle_life.spawning import apportion_counts, assign_types, spawn_population


def make_config(**overrides) -> RunConfig:
    params = dict(particles_per_simulation=30, num_particle_types=3, world_size=200.0,
                  max_force_range=50.0, food_count=12)
    params.update(overrides)
    return RunConfig(**params)


def test_apportion_equal_ratios():
    assert apportion_counts(10, None, 3).tolist() == [4, 3, 3]


def test_apportion_largest_remainder():
    # Exact shares 2.5, 2.5, 5.0 -> tie on remainder goes to the lower type
    assert apportion_counts(10, [1.0, 1.0, 2.0], 3).tolist() == [3, 2, 5]
    assert apportion_counts(7, [0.0, 1.0], 2).tolist() == [0, 7]


def test_types_are_contiguous_blocks():
    types = assign_types(make_config(particles_per_simulation=7))
    assert types.tolist() == [0, 0, 0, 1, 1, 2, 2]


def test_spawn_positions_stay_inside_walls():
    for distribution in ("uniform", "sphere", "clustered"):
        config = make_config(spawn_distribution=distribution)
        particles, food = spawn_population(config, epoch=1)

        limit = config.half_world - config.particle_radius
        assert particles.positions.shape == (30, 3)
        assert np.all(np.abs(particles.positions) <= limit)
        assert np.allclose(particles.velocities, 0.0)

        if distribution == "sphere":
            assert np.all(np.linalg.norm(particles.positions, axis=1) <= limit)

        assert len(food) == 12
        assert food.active.all()


def test_spawn_is_seeded_per_epoch_and_slot():
    config = make_config()
    a, food_a = spawn_population(config, epoch=1)
    b, food_b = spawn_population(config, epoch=1)
    c, _ = spawn_population(config, epoch=2)
    d, _ = spawn_population(config, epoch=1, slot=0)

    assert np.array_equal(a.positions, b.positions)
    assert np.array_equal(food_a.positions, food_b.positions)
    assert not np.array_equal(a.positions, c.positions)
    assert not np.array_equal(a.positions, d.positions)


def test_zero_food():
    _, food = spawn_population(make_config(food_count=0), epoch=1)
    assert len(food) == 0
    assert food.positions.shape == (0, 3)
