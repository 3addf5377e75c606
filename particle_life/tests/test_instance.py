"""
Simulation instance tests.

Verifies:
- Food is consumed once, by contact, and scored
- Survival reward accrues every tick
- Integer tick counter ends the epoch exactly
- Kernel failures leave the previous state in place
- compute_next() runs the kernel without committing anything
"""

import numpy as np
import pytest

from particle_life.data_types import RunConfig
from particle_life.genotype import Genotype
from particle_life.instance import SimulationInstance
from particle_life.kernel import ParticleState, FoodState, KernelDispatchError
from particle_life.loader import ConfigurationError


def make_config(**overrides) -> RunConfig:
    params = dict(
        num_simulations=1,
        particles_per_simulation=1,
        num_particle_types=1,
        world_size=200.0,
        max_force_range=50.0,
        food_count=1,
        epoch_duration_seconds=1.0,
        tick_dt=0.1,
    )
    params.update(overrides)
    return RunConfig(**params)


def make_instance(config, positions, food_positions, genome=None, velocities=None):
    positions = np.array(positions, dtype=np.float64)
    if velocities is None:
        velocities = np.zeros_like(positions)
    particles = ParticleState(positions, velocities, np.zeros(len(positions), dtype=np.int64))
    food = FoodState(food_positions, np.ones(len(food_positions), dtype=bool))
    if genome is None:
        genome = Genotype.zeros(config.num_particle_types)
    return SimulationInstance(0, config, genome, particles, food)


class TestScoring:

    def test_food_contact_scores_once(self):
        config = make_config()
        instance = make_instance(config, [[0.0, 0.0, 0.0]], [[1.0, 0.0, 0.0]])

        gained = instance.step()

        assert np.isclose(gained, config.food_reward + config.survival_reward)
        assert not instance.food.active[0]
        assert instance.food_eaten == 1

        gained = instance.step()
        assert np.isclose(gained, config.survival_reward)
        assert np.isclose(instance.score, config.food_reward + 2 * config.survival_reward)

    def test_two_particles_on_one_food_score_once(self):
        config = make_config(particles_per_simulation=2)
        instance = make_instance(config, [[0.0, 0.0, 0.0], [2.0, 0.0, 0.0]], [[1.0, 0.0, 0.0]])

        instance.step()

        assert instance.food_eaten == 1
        assert np.isclose(instance.score, config.food_reward + 2 * config.survival_reward)

    def test_distant_food_is_not_consumed(self):
        config = make_config()
        instance = make_instance(config, [[0.0, 0.0, 0.0]], [[40.0, 0.0, 0.0]])

        instance.step()

        assert instance.food.active[0]
        assert np.isclose(instance.score, config.survival_reward)

    def test_reward_weights_are_configurable(self):
        config = make_config(food_reward=5.0, survival_reward=0.0)
        instance = make_instance(config, [[0.0, 0.0, 0.0]], [[1.0, 0.0, 0.0]])
        instance.step()
        assert instance.score == 5.0


class TestLifecycle:

    def test_epoch_ends_after_exact_tick_count(self):
        config = make_config()
        instance = make_instance(config, [[0.0, 0.0, 0.0]], [[40.0, 0.0, 0.0]])

        while not instance.is_terminal:
            instance.step()

        assert instance.tick_count == 10
        assert instance.elapsed_time >= config.epoch_duration_seconds

        # Terminal instances do not advance
        assert instance.step() == 0.0
        assert instance.tick_count == 10

    def test_reset_clears_score_and_clock(self):
        config = make_config()
        instance = make_instance(config, [[0.0, 0.0, 0.0]], [[1.0, 0.0, 0.0]])
        instance.step()

        new_genome = Genotype([[0.5]], [0.5])
        particles = ParticleState(np.zeros((1, 3)), np.zeros((1, 3)), np.zeros(1, dtype=np.int64))
        food = FoodState([[10.0, 0.0, 0.0]], [True])
        instance.reset(new_genome, particles, food)

        assert instance.score == 0.0
        assert instance.tick_count == 0
        assert instance.food_eaten == 0
        assert instance.genome is new_genome

    def test_genome_type_count_must_match(self):
        config = make_config()
        with pytest.raises(ConfigurationError):
            make_instance(config, [[0.0, 0.0, 0.0]], [[1.0, 0.0, 0.0]], genome=Genotype.zeros(2))

    def test_kernel_failure_keeps_previous_state(self):
        config = make_config()
        instance = make_instance(config, [[0.0, 0.0, 0.0]], [[40.0, 0.0, 0.0]],
                                 velocities=[[np.nan, 0.0, 0.0]])
        before = instance.particles

        with pytest.raises(KernelDispatchError):
            instance.step()

        assert instance.particles is before
        assert instance.tick_count == 0
        assert instance.score == 0.0


class TestSnapshot:

    def test_snapshot_is_read_only_copy(self):
        config = make_config()
        instance = make_instance(config, [[1.0, 2.0, 3.0]], [[40.0, 0.0, 0.0]])
        snap = instance.snapshot()

        assert np.allclose(snap['positions'], [[1.0, 2.0, 3.0]])
        with pytest.raises(ValueError):
            snap['positions'][0, 0] = 5.0

        instance.step()
        assert np.allclose(snap['positions'], [[1.0, 2.0, 3.0]])
        assert snap['tick_count'] == 0
        assert 'avg_tick_time_ms' in instance.snapshot()['timing']


class TestTwoPhaseStep:

    def test_compute_next_leaves_instance_untouched(self):
        config = make_config()
        instance = make_instance(config, [[0.0, 0.0, 0.0]], [[1.0, 0.0, 0.0]],
                                 velocities=[[3.0, 0.0, 0.0]])
        before = instance.particles

        next_particles, kernel_time = instance.compute_next()

        assert instance.particles is before
        assert instance.tick_count == 0
        assert instance.food.active[0]
        assert kernel_time >= 0.0

        gained = instance.commit(next_particles, kernel_time)
        assert instance.particles is next_particles
        assert instance.tick_count == 1
        assert np.isclose(gained, config.food_reward + config.survival_reward)

    def test_compute_next_is_none_when_terminal(self):
        config = make_config(epoch_duration_seconds=0.1)
        instance = make_instance(config, [[0.0, 0.0, 0.0]], [[40.0, 0.0, 0.0]])
        instance.step()
        assert instance.compute_next() is None
