"""
Population manager tests.

Verifies:
- A failing instance leaves every instance at the previous tick
- Sequential and threaded stepping end in the same state
"""

import numpy as np
import pytest

from particle_life.data_types import RunConfig
from particle_life.genotype import Genotype
from particle_life.kernel import ParticleState, KernelDispatchError
from particle_life.population import PopulationManager


def make_config(**overrides) -> RunConfig:
    params = dict(
        num_simulations=3,
        particles_per_simulation=8,
        num_particle_types=2,
        world_size=200.0,
        max_force_range=40.0,
        food_count=4,
        epoch_duration_seconds=1.0,
        tick_dt=0.1,
        seed=21,
    )
    params.update(overrides)
    return RunConfig(**params)


def make_manager(config: RunConfig) -> PopulationManager:
    rng = np.random.default_rng(4)
    genomes = [Genotype.random(config.num_particle_types, rng) for _ in range(config.num_simulations)]
    return PopulationManager(config, genomes)


def poison(manager: PopulationManager, slot: int):
    particles = manager.instances[slot].particles
    velocities = particles.velocities.copy()
    velocities[0, 0] = np.nan
    manager.instances[slot].particles = ParticleState(particles.positions, velocities, particles.types)


@pytest.mark.parametrize("workers", [1, 3])
def test_failed_tick_is_not_applied_to_any_instance(workers):
    with make_manager(make_config(workers=workers)) as manager:
        manager.step_all()
        poison(manager, 1)
        before = [(instance.particles, instance.food, instance.score) for instance in manager.instances]

        with pytest.raises(KernelDispatchError):
            manager.step_all()

        assert [instance.tick_count for instance in manager.instances] == [1, 1, 1]
        for instance, (particles, food, score) in zip(manager.instances, before):
            assert instance.particles is particles
            assert instance.food is food
            assert instance.score == score


@pytest.mark.parametrize("workers", [1, 3])
def test_error_names_first_failing_slot(workers):
    with make_manager(make_config(workers=workers)) as manager:
        poison(manager, 2)
        poison(manager, 1)

        with pytest.raises(KernelDispatchError, match="Instance 1"):
            manager.step_all()


def test_threaded_steps_match_sequential():
    with make_manager(make_config(workers=1)) as sequential, \
            make_manager(make_config(workers=3)) as threaded:
        sequential.run_epoch_ticks()
        threaded.run_epoch_ticks()

        for a, b in zip(sequential.instances, threaded.instances):
            assert a.tick_count == b.tick_count == 10
            assert np.array_equal(a.particles.positions, b.particles.positions)
            assert np.array_equal(a.food.active, b.food.active)
            assert a.score == b.score


def test_genome_count_must_match_population():
    config = make_config()
    with make_manager(config) as manager:
        with pytest.raises(ValueError):
            manager.spawn([Genotype.zeros(2)], epoch=2)
