"""
World boundary policies.

A BoundaryPolicy is applied after integration each tick and also decides
the geometry used for every force and neighbor-range computation:

- bounce: straight-line displacement, walls clamp and damp particles
- teleport: toroidal displacement, particles leaving one face re-enter
  through the opposite face with their velocity untouched
"""

import numpy as np
from typing import Tuple

from .constants import COLLISION_DAMPING
from .data_types import BoundaryMode, RunConfig
from .spatial import displacement


class BoundaryPolicy:
    """
    Boundary behavior for a cubic world centered at the origin.

    Stateless: apply() returns new arrays and never touches its inputs.
    """

    def __init__(self, mode: BoundaryMode, world_size: float, particle_radius: float):
        self.mode = BoundaryMode(mode)
        self.world_size = float(world_size)
        self.half = self.world_size / 2.0
        self.particle_radius = float(particle_radius)

    @classmethod
    def from_config(cls, config: RunConfig) -> 'BoundaryPolicy':
        return cls(config.boundary_mode, config.world_size, config.particle_radius)

    @property
    def toroidal(self) -> bool:
        """True when distances wrap around the world edges"""
        return self.mode == BoundaryMode.TELEPORT

    def displacement(self, from_pos: np.ndarray, to_pos: np.ndarray) -> np.ndarray:
        """Displacement from_pos -> to_pos under this policy's geometry"""
        return displacement(from_pos, to_pos, self.toroidal, self.world_size)

    def apply(self, positions: np.ndarray, velocities: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Apply the boundary to integrated positions/velocities.

        Args:
            positions: (N, 3) positions after integration
            velocities: (N, 3) velocities after integration

        Returns:
            (positions, velocities) as new arrays
        """
        if self.mode == BoundaryMode.TELEPORT:
            return self._apply_teleport(positions), velocities.copy()
        return self._apply_bounce(positions, velocities)

    def _apply_bounce(self, positions: np.ndarray, velocities: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Clamp to the walls, then rescale the bounced velocity.

        Step 1, per axis beyond half - radius: clamp the coordinate to the
        wall (sign kept) and replace that velocity component by
        -COLLISION_DAMPING times itself.
        Step 2, for particles that touched a wall: multiply the bounced
        velocity by |v_bounced| / |v_original|. A particle with zero
        original speed keeps the bounced velocity as is.
        """
        limit = self.half - self.particle_radius

        over = np.abs(positions) > limit
        new_positions = np.where(over, np.sign(positions) * limit, positions)
        bounced = np.where(over, -COLLISION_DAMPING * velocities, velocities)

        hit = over.any(axis=1)
        if not np.any(hit):
            return new_positions, bounced

        pre_speed = np.sqrt(np.einsum('ij,ij->i', velocities, velocities))
        post_speed = np.sqrt(np.einsum('ij,ij->i', bounced, bounced))

        scale = np.ones(len(positions), dtype=np.float64)
        rescale = hit & (pre_speed > 0.0)
        scale[rescale] = post_speed[rescale] / pre_speed[rescale]

        return new_positions, bounced * scale[:, np.newaxis]

    def _apply_teleport(self, positions: np.ndarray) -> np.ndarray:
        """Wrap each axis that left [-half, half] to the opposite face, keeping the overflow"""
        half = self.half
        wrapped = np.where(positions > half, -half + (positions - half), positions)
        wrapped = np.where(positions < -half, half + (positions + half), wrapped)
        return wrapped
