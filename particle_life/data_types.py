"""
Data types mirroring YAML schema structures.

RunConfig is populated by loader.py from YAML files. The remaining
dataclasses carry epoch results and saved genomes between the core
and its consumers.
"""

import math
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Optional, Any
from enum import Enum

from .constants import (
    DEFAULT_SIMULATION_COUNT,
    DEFAULT_PARTICLE_COUNT,
    DEFAULT_PARTICLE_TYPES,
    DEFAULT_EPOCH_DURATION,
    DEFAULT_FOOD_COUNT,
    DEFAULT_SEED,
    PHYSICS_TIMESTEP,
    DEFAULT_WORLD_SIZE,
    DEFAULT_BOUNDARY_MODE,
    PARTICLE_RADIUS,
    FOOD_RADIUS,
    MAX_VELOCITY,
    VELOCITY_HALF_LIFE,
    DEFAULT_MAX_FORCE_RANGE,
    FORCE_SCALE_FACTOR,
    MAX_INTERACTIONS,
    FOOD_REWARD,
    SURVIVAL_REWARD,
    DEFAULT_ELITE_RATIO,
    DEFAULT_MUTATION_RATE,
    DEFAULT_CROSSOVER_RATE,
    MUTATION_STRENGTH,
    TOURNAMENT_SIZE,
    DEFAULT_SPAWN_DISTRIBUTION,
    USE_CKDTREE,
)


# ============================================================================
# Enumerations
# ============================================================================

class BoundaryMode(str, Enum):
    """World edge behavior"""
    BOUNCE = "bounce"
    TELEPORT = "teleport"


class SpawnDistribution(str, Enum):
    """Initial particle placement"""
    UNIFORM = "uniform"
    SPHERE = "sphere"
    CLUSTERED = "clustered"


class SchedulerState(str, Enum):
    """Epoch state machine phases (cyclic)"""
    SPAWNING = "spawning"
    RUNNING = "running"
    SCORING = "scoring"
    EVOLVING = "evolving"


# ============================================================================
# Run Configuration
# ============================================================================

@dataclass
class RunConfig:
    """
    Complete run configuration.

    The first block matches the recognized run keys; the rest are
    optional tuning knobs with defaults from constants.py.
    """
    num_simulations: int = DEFAULT_SIMULATION_COUNT
    particles_per_simulation: int = DEFAULT_PARTICLE_COUNT
    num_particle_types: int = DEFAULT_PARTICLE_TYPES
    epoch_duration_seconds: float = DEFAULT_EPOCH_DURATION
    tick_dt: float = PHYSICS_TIMESTEP
    mutation_rate: float = DEFAULT_MUTATION_RATE
    elite_ratio: float = DEFAULT_ELITE_RATIO
    crossover_rate: float = DEFAULT_CROSSOVER_RATE
    boundary_mode: BoundaryMode = BoundaryMode(DEFAULT_BOUNDARY_MODE)
    world_size: float = DEFAULT_WORLD_SIZE
    max_force_range: float = DEFAULT_MAX_FORCE_RANGE
    food_count: int = DEFAULT_FOOD_COUNT

    # Physics
    seed: int = DEFAULT_SEED
    velocity_half_life: float = VELOCITY_HALF_LIFE
    max_velocity: float = MAX_VELOCITY
    particle_radius: float = PARTICLE_RADIUS
    food_radius: float = FOOD_RADIUS
    force_scale: float = FORCE_SCALE_FACTOR
    max_interactions: int = MAX_INTERACTIONS

    # Scoring weights
    food_reward: float = FOOD_REWARD
    survival_reward: float = SURVIVAL_REWARD

    # Genetics
    mutation_strength: float = MUTATION_STRENGTH
    tournament_size: int = TOURNAMENT_SIZE
    adaptive_mutation: bool = False
    initial_genome: str = "random"  # random | preset

    # Spawning
    spawn_distribution: SpawnDistribution = SpawnDistribution(DEFAULT_SPAWN_DISTRIBUTION)
    type_ratios: Optional[List[float]] = None
    shared_spawn: bool = True

    # Execution
    use_ckdtree: bool = USE_CKDTREE
    workers: int = 1

    def __post_init__(self):
        """Coerce enum fields given as plain strings (YAML, tests)"""
        if not isinstance(self.boundary_mode, BoundaryMode):
            self.boundary_mode = BoundaryMode(self.boundary_mode)
        if not isinstance(self.spawn_distribution, SpawnDistribution):
            self.spawn_distribution = SpawnDistribution(self.spawn_distribution)

    @property
    def half_world(self) -> float:
        return self.world_size / 2.0

    @property
    def min_radius(self) -> float:
        """Inner repulsion radius in world units (num_types * particle_radius)"""
        return self.num_particle_types * self.particle_radius

    @property
    def collision_radius(self) -> float:
        """Particle-food contact distance"""
        return self.particle_radius + self.food_radius

    @property
    def elite_count(self) -> int:
        return int(math.ceil(self.elite_ratio * self.num_simulations))

    @property
    def ticks_per_epoch(self) -> int:
        """
        Integer tick count for one epoch.

        Computed once so that float accumulation of elapsed time
        can never add or drop a tick (1.0 / 0.1 -> exactly 10).
        """
        ratio = self.epoch_duration_seconds / self.tick_dt
        return max(1, int(math.ceil(ratio - 1e-9)))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON/YAML compatible dict (enums as plain strings)"""
        result = asdict(self)
        result['boundary_mode'] = self.boundary_mode.value
        result['spawn_distribution'] = self.spawn_distribution.value
        return result


# ============================================================================
# Epoch Results
# ============================================================================

@dataclass
class EpochStats:
    """Fitness summary of one generation"""
    best_score: float = 0.0
    worst_score: float = 0.0
    average_score: float = 0.0
    median_score: float = 0.0
    std_deviation: float = 0.0
    improvement: float = 0.0
    q1_score: Optional[float] = None  # Only with >= 4 scores
    q3_score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EpochResult:
    """Everything an observer learns at the end of an epoch"""
    epoch: int
    fitness: List[float]
    stats: EpochStats
    best_genome: Any  # Genotype (kept untyped to avoid an import cycle)
    elapsed_time: float
    ticks: int


# ============================================================================
# Persistence
# ============================================================================

@dataclass
class SavedPopulation:
    """
    A saved genome plus its scoring metadata.

    Field order in to_dict() is the canonical serialization order.
    """
    name: str
    timestamp: str
    type_count: int
    force_matrix: List[float]  # Flat row-major, index = type_a * type_count + type_b
    food_forces: List[float]   # Indexed by type
    score: float
    epoch: int = 0
    run_parameters: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict with builtin floats only (no numpy types)"""
        return {
            'name': self.name,
            'timestamp': self.timestamp,
            'genotype': {
                'type_count': int(self.type_count),
                'force_matrix': [float(v) for v in self.force_matrix],
                'food_forces': [float(v) for v in self.food_forces],
            },
            'score': float(self.score),
            'epoch': int(self.epoch),
            'run_parameters': self.run_parameters,
            'description': self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SavedPopulation':
        genotype = data['genotype']
        return cls(
            name=data['name'],
            timestamp=data['timestamp'],
            type_count=genotype['type_count'],
            force_matrix=list(genotype['force_matrix']),
            food_forces=list(genotype['food_forces']),
            score=data.get('score', 0.0),
            epoch=data.get('epoch', 0),
            run_parameters=data.get('run_parameters', {}),
            description=data.get('description'),
        )
