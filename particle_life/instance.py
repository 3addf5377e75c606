"""
One simulated population.

A SimulationInstance owns its particle state, food state, bound genotype,
running score and tick counter. A tick has two halves: compute_next()
calls the force kernel once without touching the instance, and commit()
swaps in the freshly produced buffer, then resolves food contacts and
survival scoring. step() does both. Instances never share mutable state
with each other.
"""

import time
import numpy as np
from typing import List, Optional, Tuple

from .boundary import BoundaryPolicy
from .constants import TICK_TIME_WINDOW
from .data_types import RunConfig
from .genotype import Genotype
from .kernel import ParticleState, FoodState, KernelDispatchError, step as kernel_step
from .loader import ConfigurationError
from .spatial_queries import NeighborSearch


def _read_only(array: np.ndarray) -> np.ndarray:
    view = array.copy()
    view.flags.writeable = False
    return view


class SimulationInstance:
    """
    A single population evaluated for one epoch at a time.

    Lifecycle: created (or reset) at epoch start, stepped until terminal,
    read for fitness, then reset with the next genotype.
    """

    def __init__(
        self,
        slot: int,
        config: RunConfig,
        genome: Genotype,
        particles: ParticleState,
        food: FoodState,
        search: Optional[NeighborSearch] = None
    ):
        """
        Args:
            slot: Position of this instance in the population
            config: Run configuration
            genome: Genotype bound for the epoch
            particles: Initial particle state (taken over, not copied)
            food: Initial food state (taken over, not copied)
            search: Optional shared neighbor search (stateless, safe to share)
        """
        self.slot = slot
        self.config = config
        self.policy = BoundaryPolicy.from_config(config)
        self.search = search or NeighborSearch(self.policy, use_ckdtree=config.use_ckdtree)

        self.genome: Genotype = genome
        self.particles: ParticleState = particles
        self.food: FoodState = food
        self.score: float = 0.0
        self.tick_count: int = 0
        self.food_eaten: int = 0
        self._check_binding(genome, particles)

        # Performance metrics
        self._tick_times: List[float] = []
        self._tick_time_sum: float = 0.0
        self._tick_time_window: int = TICK_TIME_WINDOW

    def _check_binding(self, genome: Genotype, particles: ParticleState):
        if genome.type_count != self.config.num_particle_types:
            raise ConfigurationError(
                f"Genotype has {genome.type_count} types, run uses {self.config.num_particle_types}")
        if len(particles) != self.config.particles_per_simulation:
            raise ConfigurationError(
                f"Instance {self.slot} got {len(particles)} particles, "
                f"expected {self.config.particles_per_simulation}")

    # ------------------------------------------------------------------
    # Epoch lifecycle
    # ------------------------------------------------------------------

    @property
    def elapsed_time(self) -> float:
        """Simulated seconds this epoch (derived from the integer tick counter)"""
        return self.tick_count * self.config.tick_dt

    @property
    def is_terminal(self) -> bool:
        return self.tick_count >= self.config.ticks_per_epoch

    def reset(self, genome: Genotype, particles: ParticleState, food: FoodState):
        """Bind a new genotype and fresh layout, clearing score and clock"""
        self._check_binding(genome, particles)
        self.genome = genome
        self.particles = particles
        self.food = food
        self.score = 0.0
        self.tick_count = 0
        self.food_eaten = 0

    def step(self) -> float:
        """
        Advance one tick.

        Terminal instances are left untouched.

        Returns:
            Score gained this tick

        Raises:
            KernelDispatchError: if the kernel fails (state stays at the previous tick)
        """
        pending = self.compute_next()
        if pending is None:
            return 0.0
        return self.commit(*pending)

    def compute_next(self) -> Optional[Tuple[ParticleState, float]]:
        """
        Run the kernel for the next tick without changing this instance.

        Returns:
            (next particle state, kernel seconds), or None when terminal

        Raises:
            KernelDispatchError: if the kernel fails
        """
        if self.is_terminal:
            return None

        start_time = time.perf_counter()

        try:
            next_particles = kernel_step(self.particles, self.food, self.genome,
                                         self.config.tick_dt, self.config, self.search)
        except KernelDispatchError as e:
            raise KernelDispatchError(
                f"Instance {self.slot} failed at tick {self.tick_count}: {e}") from e

        return next_particles, time.perf_counter() - start_time

    def commit(self, next_particles: ParticleState, kernel_time: float = 0.0) -> float:
        """
        Apply a state produced by compute_next(): swap buffers, eat, score.

        Returns:
            Score gained this tick
        """
        # Double-buffer swap
        self.particles = next_particles

        eaten = self._collect_food()
        gained = eaten * self.config.food_reward
        gained += self.config.survival_reward * len(self.particles)

        self.score += gained
        self.food_eaten += eaten
        self.tick_count += 1

        self._record_tick_time(kernel_time)
        return gained

    def _collect_food(self) -> int:
        """
        Deactivate food touched by a particle this tick.

        Each food item is consumed at most once, by the lowest-index particle
        within collision_radius.

        Returns:
            Number of food items consumed
        """
        active_rows = np.flatnonzero(self.food.active)
        if len(active_rows) == 0 or len(self.particles) == 0:
            return 0

        offsets = self.policy.displacement(
            self.particles.positions[:, np.newaxis, :],
            self.food.positions[active_rows][np.newaxis, :, :])
        d2 = np.einsum('ijk,ijk->ij', offsets, offsets)

        radius = self.config.collision_radius
        touched = (d2 < radius * radius).any(axis=0)
        if not np.any(touched):
            return 0

        active = self.food.active.copy()
        active[active_rows[touched]] = False
        self.food = FoodState(self.food.positions, active)
        return int(np.count_nonzero(touched))

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def snapshot(self) -> dict:
        """
        Read-only copy of the instance state for visualization.

        Returns:
            Dict with slot, tick_count, elapsed_time, score, arrays and genome
        """
        return {
            'slot': self.slot,
            'tick_count': self.tick_count,
            'elapsed_time': self.elapsed_time,
            'score': self.score,
            'food_eaten': self.food_eaten,
            'positions': _read_only(self.particles.positions),
            'velocities': _read_only(self.particles.velocities),
            'types': _read_only(self.particles.types),
            'food_positions': _read_only(self.food.positions),
            'food_active': _read_only(self.food.active),
            'force_matrix': self.genome.force_matrix,
            'food_forces': self.genome.food_forces,
            'timing': self.get_tick_stats(),
        }

    def get_tick_stats(self) -> dict:
        """
        Get current tick timing statistics.

        Returns:
            Dict with tick_count, avg_tick_time_ms, last_tick_time_ms
        """
        if not self._tick_times:
            return {
                'tick_count': self.tick_count,
                'avg_tick_time_ms': 0.0,
                'last_tick_time_ms': 0.0
            }

        avg_time = self._tick_time_sum / len(self._tick_times)
        return {
            'tick_count': self.tick_count,
            'avg_tick_time_ms': avg_time * 1000.0,
            'last_tick_time_ms': self._tick_times[-1] * 1000.0
        }

    def _record_tick_time(self, elapsed: float):
        self._tick_times.append(elapsed)
        self._tick_time_sum += elapsed

        # Maintain rolling window
        if len(self._tick_times) > self._tick_time_window:
            removed = self._tick_times.pop(0)
            self._tick_time_sum -= removed
