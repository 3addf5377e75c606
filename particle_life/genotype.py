"""
Genotype: the force rules of one population.

A genotype is a square force matrix (force[type_a][type_b], asymmetric
allowed) plus a food-force vector indexed by type. All coefficients live
in [-1, 1]. Arrays are read-only once constructed so a genotype bound to
an instance cannot drift during an epoch.
"""

import numpy as np
from typing import Sequence

from .constants import SELF_FORCE_RANGE, CROSS_FORCE_RANGE, FOOD_FORCE_RANGE
from .loader import DeserializationError


class Genotype:
    """
    Immutable force matrix + food-force vector.

    Attributes:
        force_matrix: (T, T) float64, row = acting type, column = neighbor type
        food_forces: (T,) float64
    """

    __slots__ = ('force_matrix', 'food_forces')

    def __init__(self, force_matrix, food_forces):
        matrix = np.array(force_matrix, dtype=np.float64)
        food = np.array(food_forces, dtype=np.float64)

        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
            raise ValueError(f"force_matrix must be square, got shape {matrix.shape}")
        if food.shape != (matrix.shape[0],):
            raise ValueError(
                f"food_forces must have {matrix.shape[0]} entries, got shape {food.shape}")

        # Coefficients always stay in [-1, 1]
        np.clip(matrix, -1.0, 1.0, out=matrix)
        np.clip(food, -1.0, 1.0, out=food)

        matrix.flags.writeable = False
        food.flags.writeable = False
        self.force_matrix = matrix
        self.food_forces = food

    @property
    def type_count(self) -> int:
        return self.force_matrix.shape[0]

    @property
    def gene_count(self) -> int:
        return self.force_matrix.size + self.food_forces.size

    def get_force(self, type_a: int, type_b: int) -> float:
        return float(self.force_matrix[type_a, type_b])

    def get_food_force(self, particle_type: int) -> float:
        return float(self.food_forces[particle_type])

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def zeros(cls, type_count: int) -> 'Genotype':
        return cls(np.zeros((type_count, type_count)), np.zeros(type_count))

    @classmethod
    def random(cls, type_count: int, rng: np.random.Generator) -> 'Genotype':
        """
        Random genotype.

        Same-type coefficients lean repulsive (to avoid clumping),
        cross-type and food coefficients span the full range.
        Draw order: matrix row-major, then food vector.
        """
        matrix = np.empty((type_count, type_count), dtype=np.float64)
        for a in range(type_count):
            for b in range(type_count):
                low, high = SELF_FORCE_RANGE if a == b else CROSS_FORCE_RANGE
                matrix[a, b] = rng.uniform(low, high)

        food = rng.uniform(FOOD_FORCE_RANGE[0], FOOD_FORCE_RANGE[1], size=type_count)
        return cls(matrix, food)

    @classmethod
    def preset(cls, type_count: int, rng: np.random.Generator) -> 'Genotype':
        """
        Hand-tuned starting rules known to produce moving structures.

        3 types: rock-paper-scissors chase. 4 types: chase cycle with
        cross repulsion. Other counts fall back to mild random rules.
        """
        matrix = np.zeros((type_count, type_count), dtype=np.float64)

        if type_count == 3:
            matrix[0, 1] = matrix[1, 2] = matrix[2, 0] = 1.0
            matrix[1, 0] = matrix[2, 1] = matrix[0, 2] = -0.5
            np.fill_diagonal(matrix, -0.3)
            food = [0.8, -0.3, 0.5]
        elif type_count == 4:
            matrix[0, 1] = 1.0
            matrix[1, 2] = 0.8
            matrix[2, 3] = 1.0
            matrix[3, 0] = 0.6
            matrix[0, 2] = -1.0
            matrix[1, 3] = -0.8
            matrix[2, 0] = -0.6
            matrix[3, 1] = -1.0
            np.fill_diagonal(matrix, -0.4)
            food = [0.6, -0.4, 0.8, -0.2]
        else:
            for a in range(type_count):
                for b in range(type_count):
                    matrix[a, b] = rng.uniform(-0.5, -0.1) if a == b else rng.uniform(-1.0, 1.0)
            food = rng.uniform(-1.0, 1.0, size=type_count)

        return cls(matrix, food)

    # ------------------------------------------------------------------
    # Canonical serialization
    # ------------------------------------------------------------------

    def flat_genes(self) -> np.ndarray:
        """All genes in canonical order: matrix row-major, then food vector"""
        return np.concatenate([self.force_matrix.ravel(), self.food_forces])

    @classmethod
    def from_genes(cls, genes: np.ndarray, type_count: int) -> 'Genotype':
        """Inverse of flat_genes()"""
        split = type_count * type_count
        return cls(np.reshape(genes[:split], (type_count, type_count)), genes[split:])

    def to_dict(self) -> dict:
        """Flat row-major matrix (index = type_a * type_count + type_b) and food vector"""
        return {
            'type_count': self.type_count,
            'force_matrix': [float(v) for v in self.force_matrix.ravel()],
            'food_forces': [float(v) for v in self.food_forces],
        }

    @classmethod
    def from_flat(cls, force_matrix: Sequence[float], food_forces: Sequence[float],
                  type_count: int) -> 'Genotype':
        """
        Build from the canonical flat layout, rejecting dimension mismatches
        and coefficients outside [-1, 1].

        Raises:
            DeserializationError: if the lengths do not match type_count
                or any coefficient is not a finite value in [-1, 1]
        """
        if type_count <= 0:
            raise DeserializationError(f"type_count must be positive, got {type_count}")
        if len(force_matrix) != type_count * type_count:
            raise DeserializationError(
                f"force_matrix has {len(force_matrix)} entries, "
                f"expected {type_count * type_count} for {type_count} types")
        if len(food_forces) != type_count:
            raise DeserializationError(
                f"food_forces has {len(food_forces)} entries, expected {type_count}")

        genes = np.concatenate([np.asarray(force_matrix, dtype=np.float64),
                                np.asarray(food_forces, dtype=np.float64)])
        if not np.all(np.isfinite(genes)) or np.any(np.abs(genes) > 1.0):
            raise DeserializationError(
                f"Coefficients must be finite and within [-1, 1], got range "
                f"[{genes.min()}, {genes.max()}]")

        matrix = np.reshape(np.array(force_matrix, dtype=np.float64), (type_count, type_count))
        return cls(matrix, food_forces)

    # ------------------------------------------------------------------

    def __eq__(self, other) -> bool:
        if not isinstance(other, Genotype):
            return NotImplemented
        return (np.array_equal(self.force_matrix, other.force_matrix)
                and np.array_equal(self.food_forces, other.food_forces))

    def __hash__(self):
        return hash((self.force_matrix.tobytes(), self.food_forces.tobytes()))

    def __repr__(self) -> str:
        return f"Genotype(types={self.type_count}, food={np.round(self.food_forces, 3).tolist()})"
