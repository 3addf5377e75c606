"""
Spatial utility functions for 3D geometry.

Helper functions for displacement and speed clamping in a cubic world,
in both straight-line and toroidal (wrap-around) topologies.
"""

import numpy as np


def toroidal_wrap(offsets: np.ndarray, world_size: float) -> np.ndarray:
    """
    Replace each axis offset by its shortest wrap-around equivalent.

    Per axis: keep the direct offset when |offset| <= world_size / 2,
    otherwise use offset - world_size (positive) or offset + world_size
    (negative).

    Args:
        offsets: Raw offsets (..., 3)
        world_size: Edge length of the cubic world

    Returns:
        Wrapped offsets, same shape
    """
    offsets = np.asarray(offsets, dtype=np.float64)
    half = world_size / 2.0
    wrapped = np.where(offsets > half, offsets - world_size, offsets)
    wrapped = np.where(offsets < -half, offsets + world_size, wrapped)
    return wrapped


def displacement(from_pos: np.ndarray, to_pos: np.ndarray, toroidal: bool, world_size: float) -> np.ndarray:
    """
    Displacement vector(s) from from_pos to to_pos.

    Args:
        from_pos: Source position(s)
        to_pos: Target position(s), broadcastable against from_pos
        toroidal: Use shortest wrap-around path per axis
        world_size: Edge length of the cubic world (toroidal only)

    Returns:
        to_pos - from_pos, wrapped if toroidal
    """
    offsets = np.asarray(to_pos, dtype=np.float64) - np.asarray(from_pos, dtype=np.float64)
    if toroidal:
        return toroidal_wrap(offsets, world_size)
    return offsets


def clamp_speeds(velocities: np.ndarray, max_speed: float) -> np.ndarray:
    """
    Clamp each velocity magnitude to max_speed by renormalizing.

    Args:
        velocities: (N, 3) velocity vectors
        max_speed: Maximum allowed speed

    Returns:
        New (N, 3) array; rows within the limit are unchanged
    """
    speeds = np.sqrt(np.einsum('ij,ij->i', velocities, velocities))
    over = speeds > max_speed
    if not np.any(over):
        return velocities.copy()

    clamped = velocities.copy()
    clamped[over] *= (max_speed / speeds[over])[:, np.newaxis]
    return clamped
