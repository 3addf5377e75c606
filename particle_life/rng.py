"""
Deterministic RNG utilities for particle life runs.

Uses SHA256 hashing to derive stable seeds from hierarchical components
(run_seed, epoch, purpose, slot). All randomness uses
numpy.random.Generator(PCG64), one independent stream per unit of work,
so results do not depend on execution order across threads.
"""

import hashlib
import numpy as np
from typing import Any


def make_seed(*components: Any) -> int:
    """
    Generate deterministic 64-bit seed from hierarchical components.

    Uses SHA256 to hash components into stable seed value.

    Args:
        *components: Seed components (run_seed, epoch, purpose, slot, etc.)

    Returns:
        64-bit integer seed for numpy RNG

    Example:
        spawn_seed = make_seed(run_seed, epoch, "spawn")
        child_seed = make_seed(run_seed, epoch, "offspring", slot)
    """
    # Join all components with colon separator
    hash_input = ":".join(str(c) for c in components)

    # SHA256 hash and extract 64-bit integer
    hash_bytes = hashlib.sha256(hash_input.encode('utf-8')).digest()
    seed = int.from_bytes(hash_bytes[:8], byteorder='big')

    return seed


def make_rng(*components: Any) -> np.random.Generator:
    """Independent PCG64 stream for the given seed components"""
    return np.random.Generator(np.random.PCG64(make_seed(*components)))


def random_positions_in_box(rng: np.random.Generator, count: int, half_extent: float) -> np.ndarray:
    """
    Uniform positions inside the axis-aligned cube [-half, half)^3.

    Args:
        rng: Random stream
        count: Number of positions
        half_extent: Half of the cube edge length

    Returns:
        (count, 3) float64 array
    """
    return rng.uniform(-half_extent, half_extent, size=(count, 3))


def random_positions_in_sphere(rng: np.random.Generator, count: int, radius: float) -> np.ndarray:
    """
    Uniform positions inside a ball centered at the origin.

    Uses rejection sampling in the bounding cube, one point at a time so
    the draw order is fixed regardless of how many candidates get rejected.
    """
    positions = np.empty((count, 3), dtype=np.float64)
    for i in range(count):
        # Rejection sampling for uniform sphere volume
        while True:
            offset = rng.uniform(-radius, radius, size=3)
            if np.dot(offset, offset) <= radius * radius:
                positions[i] = offset
                break
    return positions
