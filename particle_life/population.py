"""
Population manager.

Owns the N simulation instances of a run and advances them in lockstep.
Instances are independent during an epoch, so they can be stepped one
after another or on a thread pool; either way each instance reads only
its own state and the results are identical.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, Tuple

from .boundary import BoundaryPolicy
from .data_types import RunConfig
from .genotype import Genotype
from .instance import SimulationInstance
from .kernel import KernelDispatchError
from .spawning import spawn_population
from .spatial_queries import NeighborSearch


class PopulationManager:
    """
    N independent SimulationInstances run to a common barrier.

    Attributes:
        instances: Ordered instances, index = population slot
        epoch: Epoch the current layout was spawned for
    """

    def __init__(self, config: RunConfig, genomes: Sequence[Genotype], epoch: int = 1):
        """
        Args:
            config: Run configuration
            genomes: One genotype per slot (len must equal num_simulations)
            epoch: Epoch used to seed the first spawn layout
        """
        self.config = config
        self.epoch = epoch
        self.search = NeighborSearch(BoundaryPolicy.from_config(config), use_ckdtree=config.use_ckdtree)
        self.instances: List[SimulationInstance] = []

        self._executor: Optional[ThreadPoolExecutor] = None
        if config.workers > 1:
            self._executor = ThreadPoolExecutor(max_workers=config.workers,
                                                thread_name_prefix="particle-life")

        self.spawn(genomes, epoch)

    @property
    def size(self) -> int:
        return len(self.instances)

    def spawn(self, genomes: Sequence[Genotype], epoch: int):
        """
        Reset every instance with its new genotype and a fresh layout.

        With shared_spawn, every slot gets a copy of one layout drawn for
        the epoch; otherwise each slot draws its own.
        """
        if len(genomes) != self.config.num_simulations:
            raise ValueError(
                f"Expected {self.config.num_simulations} genomes, got {len(genomes)}")

        self.epoch = epoch
        shared = spawn_population(self.config, epoch) if self.config.shared_spawn else None

        for slot, genome in enumerate(genomes):
            if shared is not None:
                particles, food = shared[0].copy(), shared[1].copy()
            else:
                particles, food = spawn_population(self.config, epoch, slot)

            if slot < len(self.instances):
                self.instances[slot].reset(genome, particles, food)
            else:
                self.instances.append(
                    SimulationInstance(slot, self.config, genome, particles, food, self.search))

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    @property
    def all_terminal(self) -> bool:
        return all(instance.is_terminal for instance in self.instances)

    def step_all(self):
        """
        Advance every instance by one tick, all or nothing.

        Every kernel runs first against the current states; the new
        buffers are committed only when all of them succeeded, so a
        failure leaves every instance at the previous tick.

        Raises:
            KernelDispatchError: first failure in slot order (worker errors are wrapped)
        """
        if self._executor is None:
            pending = [instance.compute_next() for instance in self.instances]
        else:
            futures = [self._executor.submit(instance.compute_next) for instance in self.instances]
            pending = []
            errors = []
            for slot, future in enumerate(futures):
                try:
                    pending.append(future.result())
                except KernelDispatchError as e:
                    errors.append(e)
                except Exception as e:
                    errors.append(KernelDispatchError(f"Worker for instance {slot} failed: {e!r}"))

            if errors:
                raise errors[0]

        for instance, result in zip(self.instances, pending):
            if result is not None:
                instance.commit(*result)

    def run_epoch_ticks(self, on_tick: Optional[Callable[[int], None]] = None) -> int:
        """
        Step all instances until every one is terminal.

        Args:
            on_tick: Optional callback receiving the tick number just completed

        Returns:
            Number of lockstep ticks executed
        """
        ticks = 0
        while not self.all_terminal:
            self.step_all()
            ticks += 1
            if on_tick is not None:
                on_tick(ticks)
        return ticks

    # ------------------------------------------------------------------
    # Epoch end
    # ------------------------------------------------------------------

    def population(self) -> List[Tuple[Genotype, float]]:
        """(genotype, fitness) pairs in slot order"""
        return [(instance.genome, float(instance.score)) for instance in self.instances]

    def snapshots(self) -> List[dict]:
        return [instance.snapshot() for instance in self.instances]

    def close(self):
        """Shut down the worker pool, if any"""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
