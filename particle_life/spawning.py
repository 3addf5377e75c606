"""
Particle and food spawning.

Places one population's particles and food with deterministic placement.
Supports uniform, sphere and clustered distributions. Types are laid out
in contiguous blocks (all type 0 first, then type 1, ...), with block
sizes apportioned from the configured type ratios.
"""

import numpy as np
from typing import Optional, Sequence, Tuple

from .data_types import RunConfig, SpawnDistribution
from .kernel import ParticleState, FoodState
from .rng import make_rng, random_positions_in_box, random_positions_in_sphere
from .constants import CLUSTER_SPREAD_FRACTION


def apportion_counts(total: int, ratios: Optional[Sequence[float]], type_count: int) -> np.ndarray:
    """
    Split `total` particles across types by largest remainder.

    Args:
        total: Particles to distribute
        ratios: Relative weight per type (None = equal)
        type_count: Number of types

    Returns:
        (type_count,) int64 counts summing exactly to total
    """
    if ratios is None:
        weights = np.ones(type_count, dtype=np.float64)
    else:
        weights = np.asarray(ratios, dtype=np.float64)

    exact = total * weights / weights.sum()
    counts = np.floor(exact).astype(np.int64)

    leftover = total - int(counts.sum())
    if leftover > 0:
        # Largest fractional part first, ties to the lower type index
        order = np.argsort(-(exact - counts), kind='stable')
        counts[order[:leftover]] += 1

    return counts


def assign_types(config: RunConfig) -> np.ndarray:
    """Contiguous type blocks for one population"""
    counts = apportion_counts(config.particles_per_simulation, config.type_ratios,
                              config.num_particle_types)
    return np.repeat(np.arange(config.num_particle_types, dtype=np.int64), counts)


def spawn_positions(rng: np.random.Generator, config: RunConfig, types: np.ndarray) -> np.ndarray:
    """
    Initial particle positions, kept inside the bounce walls.

    Args:
        rng: Spawn stream
        config: Run configuration
        types: (N,) type per particle

    Returns:
        (N, 3) positions
    """
    count = len(types)
    extent = config.half_world - config.particle_radius
    distribution = config.spawn_distribution

    if distribution == SpawnDistribution.UNIFORM:
        return random_positions_in_box(rng, count, extent)

    if distribution == SpawnDistribution.SPHERE:
        return random_positions_in_sphere(rng, count, extent)

    if distribution == SpawnDistribution.CLUSTERED:
        # One gaussian blob per type around a random center
        centers = random_positions_in_box(rng, config.num_particle_types, extent * 0.5)
        spread = CLUSTER_SPREAD_FRACTION * config.world_size
        positions = centers[types] + rng.normal(0.0, spread, size=(count, 3))
        return np.clip(positions, -extent, extent)

    raise ValueError(f"Unknown spawn distribution: {distribution}")


def spawn_food(rng: np.random.Generator, config: RunConfig) -> FoodState:
    """Uniform food layout, all items active"""
    extent = config.half_world - config.food_radius
    positions = random_positions_in_box(rng, config.food_count, extent)
    return FoodState(positions, np.ones(config.food_count, dtype=bool))


def spawn_population(config: RunConfig, epoch: int, slot: Optional[int] = None) -> Tuple[ParticleState, FoodState]:
    """
    Fresh particles (at rest) and food for one instance.

    Draws from the (seed, epoch, "spawn"[, slot]) stream: particle
    positions first, then food positions.

    Args:
        config: Run configuration
        epoch: Epoch number the layout is for
        slot: Instance slot, or None for the layout shared by all instances

    Returns:
        (particle state, food state)
    """
    if slot is None:
        rng = make_rng(config.seed, epoch, "spawn")
    else:
        rng = make_rng(config.seed, epoch, "spawn", slot)

    types = assign_types(config)
    positions = spawn_positions(rng, config, types)
    velocities = np.zeros_like(positions)
    food = spawn_food(rng, config)

    return ParticleState(positions, velocities, types), food
