"""
Force-and-motion kernel.

step() is a pure function: (particle state, food state, genome, dt, config)
-> next particle state. It never mutates its inputs and always returns
freshly allocated arrays, so callers can double-buffer by swapping
references, and the same contract serves a sequential loop or a thread
pool over instances.

Per tick, for every particle i:
1. Particle forces: neighbors j in ascending index order, at most
   max_interactions counted pairs. Distances are normalized by the force
   range R: r = dist / R, rmin = num_types * particle_radius / R.
       r <  rmin: f = r / rmin - 1                (always repulsive)
       r >= rmin: f = a * (1 - |1 + rmin - 2r| / (1 - rmin)),
                  a = force[type_i][type_j] * force_scale
   contribution = d / |d| * f * R
2. Food forces: active food within range pulls (or pushes) with
   food_force[type_i] * force_scale * min(2 * food_radius / dist, 1) ** 0.5
3. Integration: v' = (v + a dt) * 0.5 ** (dt / half_life), speed clamp,
   p' = p + v' dt, then the boundary policy.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .boundary import BoundaryPolicy
from .constants import MIN_DISTANCE, FOOD_FORCE_EPSILON
from .data_types import RunConfig
from .genotype import Genotype
from .spatial import clamp_speeds
from .spatial_queries import NeighborSearch, truncate_per_source


class KernelDispatchError(RuntimeError):
    """Raised when a tick cannot produce a complete, finite next state"""
    pass


@dataclass
class ParticleState:
    """
    Structure-of-arrays particle state for one population.

    Row index is a particle's identity for the current epoch only.
    """
    positions: np.ndarray   # (N, 3) float64
    velocities: np.ndarray  # (N, 3) float64
    types: np.ndarray       # (N,) int64

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=np.float64)
        self.velocities = np.asarray(self.velocities, dtype=np.float64)
        self.types = np.asarray(self.types, dtype=np.int64)

    def __len__(self) -> int:
        return len(self.types)

    def copy(self) -> 'ParticleState':
        return ParticleState(self.positions.copy(), self.velocities.copy(), self.types.copy())


@dataclass
class FoodState:
    """Food positions and active flags (active -> inactive only, within an epoch)"""
    positions: np.ndarray  # (F, 3) float64
    active: np.ndarray     # (F,) bool

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=np.float64).reshape(-1, 3)
        self.active = np.asarray(self.active, dtype=bool)

    def __len__(self) -> int:
        return len(self.active)

    @property
    def active_count(self) -> int:
        return int(np.count_nonzero(self.active))

    def copy(self) -> 'FoodState':
        return FoodState(self.positions.copy(), self.active.copy())


def pair_force(r: np.ndarray, rmin: float, attraction: np.ndarray) -> np.ndarray:
    """
    Scalar force profile in range-normalized units.

    Args:
        r: Normalized distances (dist / max_force_range)
        rmin: Normalized inner radius
        attraction: Scaled genome coefficients per pair

    Returns:
        Signed magnitudes (negative = away from the neighbor)
    """
    inner = r / rmin - 1.0
    outer = attraction * (1.0 - np.abs(1.0 + rmin - 2.0 * r) / (1.0 - rmin))
    return np.where(r < rmin, inner, outer)


def particle_accelerations(state: ParticleState, genome: Genotype, config: RunConfig,
                           search: NeighborSearch) -> np.ndarray:
    """Acceleration on every particle from its capped, ordered neighbor set"""
    n = len(state)
    accel = np.zeros((n, 3), dtype=np.float64)

    max_range = config.max_force_range
    pairs = search.find_pairs(state.positions, max_range)
    if len(pairs) == 0:
        return accel

    if config.max_interactions < n - 1:
        pairs = pairs.select(truncate_per_source(pairs.rows, config.max_interactions))
        if len(pairs) == 0:
            return accel

    rmin = config.min_radius / max_range
    attraction = genome.force_matrix[state.types[pairs.rows], state.types[pairs.cols]] * config.force_scale
    force = pair_force(pairs.dist / max_range, rmin, attraction)

    contributions = pairs.offsets * (force * max_range / pairs.dist)[:, np.newaxis]

    # Unbuffered add visits pairs in order: each row sums its neighbors ascending
    np.add.at(accel, pairs.rows, contributions)
    return accel


def food_accelerations(state: ParticleState, food: FoodState, genome: Genotype, config: RunConfig,
                       policy: BoundaryPolicy) -> np.ndarray:
    """Acceleration on every particle from active food within range"""
    n = len(state)
    accel = np.zeros((n, 3), dtype=np.float64)

    if food.active_count == 0:
        return accel

    coeff = genome.food_forces[state.types] * config.force_scale
    eligible = np.abs(coeff) > FOOD_FORCE_EPSILON
    if not np.any(eligible):
        return accel

    food_positions = food.positions[food.active]
    offsets = policy.displacement(state.positions[:, np.newaxis, :], food_positions[np.newaxis, :, :])
    dist = np.sqrt(np.einsum('ijk,ijk->ij', offsets, offsets))

    in_range = (dist > MIN_DISTANCE) & (dist < config.max_force_range) & eligible[:, np.newaxis]
    safe_dist = np.where(in_range, dist, 1.0)

    falloff = np.sqrt(np.minimum(2.0 * config.food_radius / safe_dist, 1.0))
    magnitude = np.where(in_range, coeff[:, np.newaxis] * falloff / safe_dist, 0.0)

    accel += np.einsum('ijk,ij->ik', offsets, magnitude)
    return accel


def integrate(state: ParticleState, accel: np.ndarray, dt: float, config: RunConfig,
              policy: BoundaryPolicy) -> ParticleState:
    """Damped semi-implicit Euler step followed by the boundary policy"""
    decay = 0.5 ** (dt / config.velocity_half_life)

    velocities = (state.velocities + accel * dt) * decay
    velocities = clamp_speeds(velocities, config.max_velocity)
    positions = state.positions + velocities * dt

    positions, velocities = policy.apply(positions, velocities)
    return ParticleState(positions, velocities, state.types.copy())


def step(state: ParticleState, food: FoodState, genome: Genotype, dt: float, config: RunConfig,
         search: Optional[NeighborSearch] = None) -> ParticleState:
    """
    Advance one population by one tick.

    Args:
        state: Current particle state (not modified)
        food: Current food state (not modified)
        genome: Force rules bound to this population
        dt: Time step in seconds
        config: Run configuration
        search: Optional prebuilt neighbor search (built from config if None)

    Returns:
        Next particle state (new arrays)

    Raises:
        KernelDispatchError: if the next state is not finite
    """
    if search is None:
        search = NeighborSearch(BoundaryPolicy.from_config(config), use_ckdtree=config.use_ckdtree)
    policy = search.policy

    accel = particle_accelerations(state, genome, config, search)
    accel += food_accelerations(state, food, genome, config, policy)

    next_state = integrate(state, accel, dt, config, policy)

    if not (np.all(np.isfinite(next_state.positions)) and np.all(np.isfinite(next_state.velocities))):
        raise KernelDispatchError("Non-finite particle state produced; tick discarded")

    return next_state
