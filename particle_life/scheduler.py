"""
Epoch scheduler.

Drives the cyclic state machine of a run:

    SPAWNING -> RUNNING -> SCORING -> EVOLVING -> SPAWNING -> ...

RUNNING advances every instance at tick_dt until all of them reach the
epoch duration (synchronous barrier). SCORING reads each instance's score
as its fitness. EVOLVING calls the genetic engine once for the whole
population. SPAWNING resets every instance with its new genotype and a
fresh layout and bumps the epoch counter. Stops are honored only between
epochs.
"""

import time
from typing import Callable, List, Optional, Sequence, Tuple

from .constants import TICK_SUMMARY_INTERVAL
from .data_types import RunConfig, SchedulerState, EpochResult
from .genetics import GeneticEngine, rank_population
from .genotype import Genotype
from .loader import validate_run_config
from .population import PopulationManager
from .rng import make_rng


def initial_genomes(config: RunConfig) -> List[Genotype]:
    """First generation, one (seed, "genome", slot) stream per slot"""
    genomes = []
    for slot in range(config.num_simulations):
        rng = make_rng(config.seed, "genome", slot)
        if config.initial_genome == "preset":
            genomes.append(Genotype.preset(config.num_particle_types, rng))
        else:
            genomes.append(Genotype.random(config.num_particle_types, rng))
    return genomes


class EpochScheduler:
    """
    Orchestrates spawn -> run -> score -> evolve for a whole run.

    Attributes:
        epoch: Current epoch number (first epoch is 1)
        state: Current SchedulerState
        tick: Lockstep ticks completed in the current epoch
        history: EpochResult of every finished epoch
        transitions: (epoch, state) log of every state entered
    """

    def __init__(
        self,
        config: RunConfig,
        genomes: Optional[Sequence[Genotype]] = None,
        on_tick: Optional[Callable[['EpochScheduler'], None]] = None,
        on_epoch_end: Optional[Callable[[EpochResult], None]] = None,
        verbose: bool = True
    ):
        """
        Args:
            config: Run configuration (validated here)
            genomes: Optional first generation (default: seeded random/preset)
            on_tick: Called after every lockstep tick with this scheduler
            on_epoch_end: Called with each finished EpochResult
            verbose: Print initialization and epoch summaries

        Raises:
            ConfigurationError: if the configuration is invalid
        """
        self.config = validate_run_config(config)
        self.engine = GeneticEngine(config, verbose=verbose)
        self.on_tick = on_tick
        self.on_epoch_end = on_epoch_end
        self.verbose = verbose

        self.epoch: int = 1
        self.tick: int = 0
        self.state: SchedulerState = SchedulerState.SPAWNING
        self.history: List[EpochResult] = []
        self.transitions: List[Tuple[int, SchedulerState]] = [(self.epoch, self.state)]
        self._stop_requested = False

        if genomes is None:
            genomes = initial_genomes(config)
        self.population = PopulationManager(config, list(genomes), epoch=self.epoch)

        if verbose:
            print(f"[OK] Scheduler initialized: {config.num_simulations} populations x "
                  f"{config.particles_per_simulation} particles, {config.num_particle_types} types, "
                  f"{config.ticks_per_epoch} ticks/epoch, boundary={config.boundary_mode.value}")

    def _set_state(self, state: SchedulerState):
        self.state = state
        self.transitions.append((self.epoch, state))

    def _after_tick(self, tick: int):
        self.tick = tick
        if self.verbose and tick % TICK_SUMMARY_INTERVAL == 0:
            self.print_tick_summary()
        if self.on_tick is not None:
            self.on_tick(self)

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def run_epoch(self) -> EpochResult:
        """
        Run one full cycle from the spawned state back to SPAWNING.

        Returns:
            EpochResult for the epoch just finished
        """
        start_time = time.perf_counter()
        epoch = self.epoch

        self._set_state(SchedulerState.RUNNING)
        self.tick = 0
        ticks = self.population.run_epoch_ticks(self._after_tick)

        self._set_state(SchedulerState.SCORING)
        scored = self.population.population()
        fitness = [score for _, score in scored]

        self._set_state(SchedulerState.EVOLVING)
        next_genomes, stats = self.engine.evolve(scored, epoch)
        best_genome = rank_population(scored)[0][0]

        # Next generation replaces the whole population
        self.epoch += 1
        self._set_state(SchedulerState.SPAWNING)
        self.population.spawn(next_genomes, self.epoch)

        result = EpochResult(
            epoch=epoch,
            fitness=fitness,
            stats=stats,
            best_genome=best_genome,
            elapsed_time=time.perf_counter() - start_time,
            ticks=ticks,
        )
        self.history.append(result)

        if self.on_epoch_end is not None:
            self.on_epoch_end(result)

        return result

    def run(self, max_epochs: Optional[int] = None) -> List[EpochResult]:
        """
        Run epochs until max_epochs complete or a stop is requested.

        Args:
            max_epochs: Epochs to run in this call (None = until stopped)

        Returns:
            Results of the epochs run by this call
        """
        results = []
        while not self._stop_requested:
            if max_epochs is not None and len(results) >= max_epochs:
                break
            results.append(self.run_epoch())
        self._stop_requested = False
        return results

    def request_stop(self):
        """Stop after the current epoch finishes"""
        self._stop_requested = True

    def snapshots(self) -> List[dict]:
        """Read-only state of every instance"""
        return self.population.snapshots()

    def close(self):
        self.population.close()

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_tick_stats(self) -> dict:
        """Mean of the per-instance rolling tick timings"""
        per_instance = [instance.get_tick_stats() for instance in self.population.instances]
        if not per_instance:
            return {'tick_count': self.tick, 'avg_tick_time_ms': 0.0, 'last_tick_time_ms': 0.0}

        count = len(per_instance)
        return {
            'tick_count': self.tick,
            'avg_tick_time_ms': sum(s['avg_tick_time_ms'] for s in per_instance) / count,
            'last_tick_time_ms': sum(s['last_tick_time_ms'] for s in per_instance) / count,
        }

    def print_tick_summary(self):
        """Print tick summary to console (lightweight monitoring)"""
        stats = self.get_tick_stats()
        print(f"Epoch {self.epoch:4d} | Tick {stats['tick_count']:5d}/{self.config.ticks_per_epoch} | "
              f"Avg: {stats['avg_tick_time_ms']:6.3f} ms | "
              f"Last: {stats['last_tick_time_ms']:6.3f} ms | "
              f"Populations: {self.population.size}")
