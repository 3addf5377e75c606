"""
Central configuration constants for the particle life simulation.

Defines default values, thresholds, and configuration parameters
used across multiple modules. Every value here can be overridden
per run through RunConfig (see data_types.py).
"""

# ============================================================================
# Run Defaults
# ============================================================================

DEFAULT_SIMULATION_COUNT = 6        # Parallel populations (N)
DEFAULT_PARTICLE_COUNT = 100        # Particles per population
DEFAULT_PARTICLE_TYPES = 3
DEFAULT_EPOCH_DURATION = 60.0       # Simulated seconds per epoch
DEFAULT_FOOD_COUNT = 50
DEFAULT_SEED = 12345

# Fixed physics timestep, independent of any display rate
PHYSICS_TIMESTEP = 0.008


# ============================================================================
# World Configuration
# ============================================================================

DEFAULT_WORLD_SIZE = 800.0          # Edge length of the cubic world
DEFAULT_BOUNDARY_MODE = "bounce"    # bounce | teleport


# ============================================================================
# Particle Physics
# ============================================================================

PARTICLE_RADIUS = 4.0
FOOD_RADIUS = 2.0
MAX_VELOCITY = 200.0
VELOCITY_HALF_LIFE = 0.043          # Seconds for speed to halve with no forces
COLLISION_DAMPING = 0.5             # Wall bounce keeps this fraction of the normal component

DEFAULT_MAX_FORCE_RANGE = 300.0
FORCE_SCALE_FACTOR = 80.0

# Max counted interactions per particle per tick (ascending index truncation)
MAX_INTERACTIONS = 100

# Pairs closer than this (squared distance) are treated as coincident
MIN_DISTANCE_SQ = 0.001
# Food closer than this distance exerts no pull
MIN_DISTANCE = 0.001
# Food coefficients below this magnitude (after scaling) are skipped
FOOD_FORCE_EPSILON = 0.001


# ============================================================================
# Scoring
# ============================================================================

FOOD_REWARD = 1.0                   # Score per food item collected
SURVIVAL_REWARD = 0.001             # Score per alive particle per tick


# ============================================================================
# Genetic Algorithm
# ============================================================================

DEFAULT_ELITE_RATIO = 0.1
DEFAULT_MUTATION_RATE = 0.1
DEFAULT_CROSSOVER_RATE = 0.7

MUTATION_STRENGTH = 0.2             # Uniform perturbation half-width
TOURNAMENT_SIZE = 3
TOURNAMENT_RANK_DECAY = 0.1         # weight = 1 / (1 + decay * rank)

# Adaptive mutation (off by default)
ADAPTIVE_LOW_DIVERSITY_STD = 5.0
ADAPTIVE_HIGH_DIVERSITY_STD = 20.0
ADAPTIVE_EARLY_EPOCHS = 10
ADAPTIVE_MAX_RATE = 0.5

# Random genome ranges
SELF_FORCE_RANGE = (-1.0, -0.1)     # Same-type coefficients lean repulsive
CROSS_FORCE_RANGE = (-1.0, 1.0)
FOOD_FORCE_RANGE = (-1.0, 1.0)


# ============================================================================
# Spawning Configuration
# ============================================================================

DEFAULT_SPAWN_DISTRIBUTION = "uniform"   # uniform | sphere | clustered

# Clustered spawning: gaussian spread as a fraction of the world size
CLUSTER_SPREAD_FRACTION = 0.08


# ============================================================================
# Spatial Indexing Configuration
# ============================================================================

# Enable scipy.cKDTree neighbor search
# Set to False to use the O(n^2) brute-force pass for comparison
USE_CKDTREE = True

CKDTREE_LEAFSIZE = 16


# ============================================================================
# Performance Configuration
# ============================================================================

# Tick timing window for rolling average
TICK_TIME_WINDOW = 100

# Default tick summary interval (print every N ticks)
TICK_SUMMARY_INTERVAL = 500
