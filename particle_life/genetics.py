"""
Genetic engine.

Turns one epoch's (genotype, fitness) pairs into the next generation:
1. Stable rank by fitness, descending (ties keep slot order)
2. Elites: the top ceil(elite_ratio * N) genotypes, copied unchanged
3. Offspring: weighted tournament selection, uniform crossover with
   probability crossover_rate (else a copy of one parent), then per-gene
   mutation clamped into [-1, 1]

Each offspring slot draws from its own (seed, epoch, "offspring", slot)
stream in a fixed order: crossover coin, parent A tournament, parent B
tournament (only on crossover), crossover coins, mutation coins, mutation
perturbations. Genes are always visited matrix row-major, then food.
"""

import numpy as np
from typing import List, Optional, Sequence, Tuple

from .constants import (
    TOURNAMENT_RANK_DECAY,
    ADAPTIVE_LOW_DIVERSITY_STD,
    ADAPTIVE_HIGH_DIVERSITY_STD,
    ADAPTIVE_EARLY_EPOCHS,
    ADAPTIVE_MAX_RATE,
)
from .data_types import RunConfig, EpochStats
from .genotype import Genotype
from .loader import ConfigurationError
from .rng import make_rng


Population = Sequence[Tuple[Genotype, float]]


def rank_population(population: Population) -> List[Tuple[Genotype, float]]:
    """Sort descending by fitness; Python's sort is stable so ties keep slot order"""
    return sorted(population, key=lambda pair: -pair[1])


def compute_epoch_stats(fitness: Sequence[float], previous_best: float = 0.0) -> EpochStats:
    """
    Summary statistics of one generation's scores.

    Args:
        fitness: Scores in any order
        previous_best: Best score of the previous generation

    Returns:
        EpochStats (quartiles only for 4+ scores)
    """
    if len(fitness) == 0:
        return EpochStats()

    scores = np.sort(np.asarray(fitness, dtype=np.float64))
    n = len(scores)
    best = float(scores[-1])

    stats = EpochStats(
        best_score=best,
        worst_score=float(scores[0]),
        average_score=float(scores.mean()),
        median_score=float(np.median(scores)),
        std_deviation=float(scores.std()),
        improvement=best - previous_best,
    )

    if n >= 4:
        stats.q1_score = float(scores[n // 4])
        stats.q3_score = float(scores[min(3 * n // 4, n - 1)])

    return stats


def adaptive_mutation_rate(stats: EpochStats, base_rate: float, epoch: int) -> float:
    """
    Scale the base mutation rate by population diversity and progress.

    Low diversity doubles it, high diversity halves it; stagnation and
    early epochs each multiply by 1.5. Capped at ADAPTIVE_MAX_RATE.
    """
    if stats.std_deviation < ADAPTIVE_LOW_DIVERSITY_STD:
        diversity_factor = 2.0
    elif stats.std_deviation > ADAPTIVE_HIGH_DIVERSITY_STD:
        diversity_factor = 0.5
    else:
        diversity_factor = 1.0

    stagnation_factor = 1.5 if stats.improvement <= 0.0 else 1.0
    early_exploration = 1.5 if epoch < ADAPTIVE_EARLY_EPOCHS else 1.0

    return min(base_rate * diversity_factor * stagnation_factor * early_exploration, ADAPTIVE_MAX_RATE)


class GeneticEngine:
    """
    Elitism + weighted tournament + uniform crossover + clamped mutation.

    Construction validates the genetic parameters, so a bad configuration
    fails before any epoch runs.
    """

    def __init__(self, config: RunConfig, verbose: bool = True):
        """
        Args:
            config: Run configuration (rates, elite ratio, seed)
            verbose: Print per-epoch statistics

        Raises:
            ConfigurationError: on rates outside [0, 1] or too many elites
        """
        for name in ('elite_ratio', 'mutation_rate', 'crossover_rate'):
            value = getattr(config, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1], got {value}")
        if config.num_simulations < config.elite_count:
            raise ConfigurationError(
                f"elite_count ({config.elite_count}) exceeds num_simulations ({config.num_simulations})")
        if config.mutation_strength < 0:
            raise ConfigurationError("mutation_strength must be non-negative")
        if config.tournament_size < 1:
            raise ConfigurationError("tournament_size must be at least 1")

        self.config = config
        self.verbose = verbose
        self.previous_best: float = 0.0
        self.last_stats: Optional[EpochStats] = None

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def tournament_select(self, ranked_scores: np.ndarray, rng: np.random.Generator) -> int:
        """
        Weighted tournament over ranks.

        Draws tournament_size ranks (with replacement) weighted by
        1 / (1 + decay * rank) and returns the fittest one drawn.
        """
        n = len(ranked_scores)
        weights = 1.0 / (1.0 + TOURNAMENT_RANK_DECAY * np.arange(n))
        drawn = rng.choice(n, size=min(self.config.tournament_size, n), p=weights / weights.sum())

        # Highest score wins; equal scores go to the better (lower) rank
        best = drawn[0]
        for rank in drawn[1:]:
            if ranked_scores[rank] > ranked_scores[best] or (
                    ranked_scores[rank] == ranked_scores[best] and rank < best):
                best = rank
        return int(best)

    @staticmethod
    def crossover(genes_a: np.ndarray, genes_b: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        """Uniform crossover: one fair coin per gene"""
        take_a = rng.random(len(genes_a)) < 0.5
        return np.where(take_a, genes_a, genes_b)

    def mutate(self, genes: np.ndarray, rate: float, rng: np.random.Generator) -> np.ndarray:
        """Perturb each gene with probability `rate` by U(-strength, strength), clamped to [-1, 1]"""
        strength = self.config.mutation_strength
        hit = rng.random(len(genes)) < rate
        noise = rng.uniform(-strength, strength, size=len(genes))
        return np.clip(np.where(hit, genes + noise, genes), -1.0, 1.0)

    def make_offspring(self, ranked: List[Tuple[Genotype, float]], epoch: int, slot: int,
                       mutation_rate: float) -> Genotype:
        """One non-elite child for `slot`, from its own random stream"""
        rng = make_rng(self.config.seed, epoch, "offspring", slot)
        ranked_scores = np.array([score for _, score in ranked], dtype=np.float64)
        type_count = ranked[0][0].type_count

        do_crossover = rng.random() < self.config.crossover_rate and len(ranked) >= 2
        parent_a = ranked[self.tournament_select(ranked_scores, rng)][0]

        if do_crossover:
            parent_b = ranked[self.tournament_select(ranked_scores, rng)][0]
            genes = self.crossover(parent_a.flat_genes(), parent_b.flat_genes(), rng)
        else:
            genes = parent_a.flat_genes()

        genes = self.mutate(genes, mutation_rate, rng)
        return Genotype.from_genes(genes, type_count)

    # ------------------------------------------------------------------
    # Generation step
    # ------------------------------------------------------------------

    def evolve(self, population: Population, epoch: int) -> Tuple[List[Genotype], EpochStats]:
        """
        Produce the next generation.

        Args:
            population: (genotype, fitness) pairs in slot order
            epoch: Epoch that produced these scores

        Returns:
            (N new genotypes with elites first, stats of the scored generation)

        Raises:
            ConfigurationError: if the population is smaller than the elite count
        """
        n = len(population)
        elite_count = self.config.elite_count
        if n < elite_count or n == 0:
            raise ConfigurationError(f"Population of {n} cannot hold {elite_count} elites")

        stats = compute_epoch_stats([score for _, score in population], self.previous_best)
        self.previous_best = stats.best_score
        self.last_stats = stats

        ranked = rank_population(population)

        rate = self.config.mutation_rate
        if self.config.adaptive_mutation:
            rate = adaptive_mutation_rate(stats, rate, epoch)

        next_generation = [genome for genome, _ in ranked[:elite_count]]
        for slot in range(elite_count, n):
            next_generation.append(self.make_offspring(ranked, epoch, slot, rate))

        if self.verbose:
            self.print_stats(stats, epoch, rate)

        return next_generation, stats

    def print_stats(self, stats: EpochStats, epoch: int, mutation_rate: float):
        """Print generation summary to console"""
        if stats.improvement > 0:
            trend = f"+{stats.improvement:.2f}"
        elif stats.improvement < 0:
            trend = f"{stats.improvement:.2f}"
        else:
            trend = "stagnant"

        print(f"[Epoch {epoch:4d}] best={stats.best_score:8.3f} | avg={stats.average_score:8.3f} | "
              f"median={stats.median_score:8.3f} | worst={stats.worst_score:8.3f} | "
              f"std={stats.std_deviation:7.3f} | {trend}")

        if stats.q1_score is not None:
            print(f"  Quartiles: Q1={stats.q1_score:.2f}, Q3={stats.q3_score:.2f} | "
                  f"elites={self.config.elite_count}/{self.config.num_simulations} | "
                  f"mutation_rate={mutation_rate:.3f}")
