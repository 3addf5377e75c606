"""
Neighbor search for the force kernel.

Two interchangeable backends produce the same neighbor pairs:
- O(n^2) brute force over the full displacement matrix
- scipy.cKDTree radius query (periodic box for toroidal worlds)

Both return pairs sorted by (source row, neighbor row) ascending. The
kernel's per-particle interaction cap truncates in that order, so the
result never depends on which backend (or how many threads) produced it.
"""

import itertools
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.spatial import cKDTree

from .boundary import BoundaryPolicy
from .constants import USE_CKDTREE, CKDTREE_LEAFSIZE, MIN_DISTANCE_SQ


@dataclass
class NeighborPairs:
    """
    Interacting pairs for one tick.

    rows[k] is the acting particle, cols[k] its neighbor, offsets[k] the
    displacement rows[k] -> cols[k] and dist[k] its length.
    """
    rows: np.ndarray     # (P,) int64
    cols: np.ndarray     # (P,) int64
    offsets: np.ndarray  # (P, 3) float64
    dist: np.ndarray     # (P,) float64

    def __len__(self) -> int:
        return len(self.rows)

    def select(self, mask: np.ndarray) -> 'NeighborPairs':
        return NeighborPairs(self.rows[mask], self.cols[mask], self.offsets[mask], self.dist[mask])


def _filter_pairs(policy: BoundaryPolicy, positions: np.ndarray, rows: np.ndarray,
                  cols: np.ndarray, max_range: float) -> NeighborPairs:
    """Compute pair geometry and drop coincident or out-of-range pairs"""
    offsets = policy.displacement(positions[rows], positions[cols])
    d2 = np.einsum('ij,ij->i', offsets, offsets)
    keep = (d2 >= MIN_DISTANCE_SQ) & (d2 <= max_range * max_range)
    return NeighborPairs(rows[keep], cols[keep], offsets[keep], np.sqrt(d2[keep]))


def brute_force_pairs(positions: np.ndarray, max_range: float, policy: BoundaryPolicy) -> NeighborPairs:
    """
    All pairs within max_range via the full N x N displacement matrix.

    np.nonzero walks the mask row-major, which yields (row, col) ascending.
    """
    if len(positions) == 0:
        empty = np.empty(0, dtype=np.int64)
        return NeighborPairs(empty, empty, np.empty((0, 3)), np.empty(0))

    offsets = policy.displacement(positions[:, np.newaxis, :], positions[np.newaxis, :, :])
    d2 = np.einsum('ijk,ijk->ij', offsets, offsets)
    mask = (d2 >= MIN_DISTANCE_SQ) & (d2 <= max_range * max_range)
    rows, cols = np.nonzero(mask)

    return NeighborPairs(
        rows.astype(np.int64),
        cols.astype(np.int64),
        offsets[rows, cols],
        np.sqrt(d2[rows, cols]),
    )


def ckdtree_pairs(positions: np.ndarray, max_range: float, policy: BoundaryPolicy,
                  leafsize: int = CKDTREE_LEAFSIZE) -> NeighborPairs:
    """
    All pairs within max_range via cKDTree.query_ball_point.

    Toroidal worlds shift coordinates into [0, world_size) and use the
    tree's periodic boxsize, whose metric is the per-axis shortest image.
    Neighbor lists are requested sorted to keep the ascending order.
    """
    n = len(positions)
    if n == 0:
        empty = np.empty(0, dtype=np.int64)
        return NeighborPairs(empty, empty, np.empty((0, 3)), np.empty(0))

    if policy.toroidal:
        data = np.mod(positions + policy.half, policy.world_size)
        # np.mod can round tiny negatives up to exactly world_size
        data[data >= policy.world_size] -= policy.world_size
        tree = cKDTree(data, leafsize=leafsize, boxsize=policy.world_size)
    else:
        data = positions
        tree = cKDTree(data, leafsize=leafsize)

    neighbor_lists = tree.query_ball_point(data, r=max_range, return_sorted=True)

    counts = np.fromiter((len(lst) for lst in neighbor_lists), dtype=np.int64, count=n)
    total = int(counts.sum())
    rows = np.repeat(np.arange(n, dtype=np.int64), counts)
    cols = np.fromiter(itertools.chain.from_iterable(neighbor_lists), dtype=np.int64, count=total)

    return _filter_pairs(policy, positions, rows, cols, max_range)


def truncate_per_source(rows: np.ndarray, cap: int) -> np.ndarray:
    """
    Mask keeping at most `cap` pairs per source row, earliest first.

    Args:
        rows: (P,) source rows, grouped and ascending
        cap: Maximum pairs kept per source

    Returns:
        (P,) bool mask
    """
    count = len(rows)
    if count == 0:
        return np.zeros(0, dtype=bool)

    # Start index of each run of equal rows, then rank of each pair in its run
    starts = np.concatenate(([0], np.flatnonzero(np.diff(rows)) + 1))
    run_lengths = np.diff(np.concatenate((starts, [count])))
    rank = np.arange(count) - np.repeat(starts, run_lengths)
    return rank < cap


class NeighborSearch:
    """
    Neighbor search with stable API.

    Backend selection via constants.USE_CKDTREE (overridable per run):
    - True: scipy.cKDTree radius queries
    - False: O(n^2) brute force
    """

    def __init__(self, policy: BoundaryPolicy, use_ckdtree: Optional[bool] = None, leafsize: Optional[int] = None):
        """
        Args:
            policy: Boundary policy supplying the distance geometry
            use_ckdtree: Override USE_CKDTREE constant (for testing)
            leafsize: Override CKDTREE_LEAFSIZE constant (for testing)
        """
        self.policy = policy
        self.use_ckdtree = use_ckdtree if use_ckdtree is not None else USE_CKDTREE
        self.leafsize = leafsize if leafsize is not None else CKDTREE_LEAFSIZE

    def find_pairs(self, positions: np.ndarray, max_range: float) -> NeighborPairs:
        if self.use_ckdtree:
            return ckdtree_pairs(positions, max_range, self.policy, self.leafsize)
        return brute_force_pairs(positions, max_range, self.policy)
