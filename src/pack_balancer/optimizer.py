"""
Pack Optimizer Module
=====================

Randomized hill-climbing engine that balances cell impedance across packs.

Each trial:
1. Measures a baseline (average spread for RANDOM_PAIR, highest spread
   for WORST_FIRST)
2. Takes two distinct packs out of the inventory and clones them
3. Moves one random cell from pack B to pack A, then one random cell
   from A back to B (which may be the cell A just received)
4. Re-measures; keeps the swap only if the metric strictly improved,
   otherwise puts the clones back

The run stops by itself after more than ``convergence_threshold``
consecutive non-improving trials.

The trial loop runs on a background thread. Stopping is cooperative:
stop() sets a flag checked before each trial, so the worker finishes at
most one more trial.

Usage:
------
    from src.pack_balancer import PackOptimizer, OptimizerConfig, Strategy

    config = OptimizerConfig(strategy=Strategy.WORST_FIRST)
    optimizer = PackOptimizer(
        inventory,
        config,
        on_progress=lambda packs: print(len(packs)),
        on_converged=lambda: print("Optimization complete"),
    )
    optimizer.start()
    ...
    optimizer.stop()
    ranked = inventory.sorted_by_spread()
"""

import dataclasses
import logging
import random
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .config import DEFAULT_STOP_TIMEOUT, OptimizerConfig, Strategy
from .errors import InsufficientPacks, OptimizerBusy, TrialFailure
from .models.inventory import PackInventory
from .models.pack import Pack

logger = logging.getLogger(__name__)


ProgressCallback = Callable[[List[Pack]], None]
ConvergedCallback = Callable[[], None]


class OptimizerState(Enum):
    """Lifecycle of an optimizer."""
    IDLE = "idle"
    RUNNING = "running"
    CONVERGED = "converged"


# =============================================================================
# Progress Tracking
# =============================================================================

@dataclass
class OptimizerProgress:
    """Progress information for a balancing run."""
    trials: int = 0
    accepted: int = 0
    rejected: int = 0
    failed: int = 0
    non_improving: int = 0
    baseline: float = 0.0
    current_metric: float = 0.0
    elapsed_seconds: float = 0.0
    is_running: bool = False
    is_converged: bool = False
    error_message: str = ""

    @property
    def rate_per_second(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.trials / self.elapsed_seconds


@dataclass
class TrialOutcome:
    """Result of a single trial."""
    accepted: bool
    baseline: float
    result: float
    converged: bool = False
    failed: bool = False


# =============================================================================
# Optimizer
# =============================================================================

class PackOptimizer:
    """
    Background impedance-balancing engine.

    Attributes:
    ----------
    inventory : PackInventory
        Packs to balance; modified in place

    config : OptimizerConfig
        Strategy, convergence threshold and run limits. May be replaced
        between runs; a new seed reseeds the random source on the next
        start.

    on_progress : Callable[[List[Pack]], None], optional
        Called on the worker thread after trials with a snapshot of the
        pack list. Must return quickly.

    on_converged : Callable[[], None], optional
        Called once when the run stops because it converged.

    Starting an optimizer that is already running raises OptimizerBusy.
    """

    def __init__(
        self,
        inventory: PackInventory,
        config: Optional[OptimizerConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_converged: Optional[ConvergedCallback] = None,
    ):
        self.inventory = inventory
        self.config = config if config is not None else OptimizerConfig()
        self.on_progress = on_progress
        self.on_converged = on_converged

        # Private random source; never shared between optimizers
        self._rng = random.Random(self.config.seed)
        self._rng_seed = self.config.seed

        self._state = OptimizerState.IDLE
        self._progress = OptimizerProgress()
        self._converged_notified = False

        # Threading control
        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        self._progress_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> OptimizerState:
        with self._state_lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state is OptimizerState.RUNNING

    @property
    def progress(self) -> OptimizerProgress:
        """Copy of the current progress."""
        with self._progress_lock:
            return dataclasses.replace(self._progress)

    def _check_inventory(self):
        count = self.inventory.pack_count
        if count < 2:
            raise InsufficientPacks(count)

    def _sync_seed(self):
        """Reseed the random source if a replaced config carries a new seed."""
        if self.config.seed != self._rng_seed:
            self._rng = random.Random(self.config.seed)
            self._rng_seed = self.config.seed

    # -------------------------------------------------------------------------
    # Start / Stop
    # -------------------------------------------------------------------------

    def start(self):
        """
        Start optimizing on a background thread.

        Raises:
        ------
        ConfigurationError
            If the configuration is invalid
        InsufficientPacks
            If the inventory holds fewer than two packs
        OptimizerBusy
            If the optimizer is already running
        """
        if self.is_running:
            raise OptimizerBusy("Optimizer is already running")

        # A previous worker may still be finishing its last trial
        previous = self._thread
        if previous is not None and previous.is_alive() and previous is not threading.current_thread():
            previous.join()

        with self._state_lock:
            if self._state is OptimizerState.RUNNING:
                raise OptimizerBusy("Optimizer is already running")

            self.config.check()
            self._check_inventory()
            self._sync_seed()

            self._stop_event.clear()
            self._converged_notified = False
            with self._progress_lock:
                self._progress = OptimizerProgress(is_running=True)
            self._state = OptimizerState.RUNNING

            self._thread = threading.Thread(
                target=self._run_loop, name="pack-optimizer", daemon=True
            )
            self._thread.start()

        logger.info(
            "Optimizer started: %d packs, strategy=%s, threshold=%d",
            self.inventory.pack_count,
            self.config.strategy.value,
            self.config.convergence_threshold,
        )

    def stop(self, wait: bool = True, timeout: float = DEFAULT_STOP_TIMEOUT):
        """
        Request the optimizer to stop. Safe to call at any time, from any
        thread, any number of times.

        Parameters:
        ----------
        wait : bool
            Wait for the worker to finish its current trial

        timeout : float
            Maximum seconds to wait
        """
        self._stop_event.set()
        with self._state_lock:
            if self._state is OptimizerState.RUNNING:
                self._state = OptimizerState.IDLE
                logger.info("Optimizer stop requested")

        thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker thread. Returns True if it has finished."""
        thread = self._thread
        if thread is None:
            return True
        if thread is not threading.current_thread():
            thread.join(timeout)
        return not thread.is_alive()

    # -------------------------------------------------------------------------
    # Trial
    # -------------------------------------------------------------------------

    def _metric(self) -> float:
        if self.config.strategy is Strategy.RANDOM_PAIR:
            return self.inventory.average_spread()
        return self.inventory.max_spread()

    def _select_pair(self):
        inventory = self.inventory
        rng = self._rng
        if self.config.strategy is Strategy.RANDOM_PAIR:
            pack_a = inventory.pop_pack(rng.randrange(inventory.pack_count))
        else:
            pack_a = inventory.worst_pack()
            inventory.remove_pack(pack_a)
        pack_b = inventory.pop_pack(rng.randrange(inventory.pack_count))
        return pack_a, pack_b

    def run_trial(self) -> TrialOutcome:
        """
        Run one trial synchronously.

        A trial that raises is rolled back, logged and reported as a
        failed outcome; it never leaves the inventory half swapped.

        Raises:
        ------
        InsufficientPacks
            If the inventory holds fewer than two packs
        """
        self._check_inventory()
        inventory = self.inventory

        with inventory.lock:
            saved = inventory.snapshot()
            clones = {}
            baseline = result = float("nan")
            try:
                baseline = self._metric()
                pack_a, pack_b = self._select_pair()

                # Restore points
                clone_a = pack_a.clone()
                clone_b = pack_b.clone()
                clones[id(pack_a)] = clone_a
                clones[id(pack_b)] = clone_b

                # Swap one cell each way
                pack_a.add_cell(pack_b.remove_random_cell(self._rng))
                pack_b.add_cell(pack_a.remove_random_cell(self._rng))
                inventory.add_pack(pack_a)
                inventory.add_pack(pack_b)

                result = self._metric()
                accepted = result < baseline
                if not accepted:
                    inventory.remove_pack(pack_a)
                    inventory.remove_pack(pack_b)
                    inventory.add_pack(clone_a)
                    inventory.add_pack(clone_b)
            except Exception as exc:
                inventory.replace_all(clones.get(id(p), p) for p in saved)
                failure = TrialFailure(self.progress.trials + 1, exc)
                logger.exception("%s; trial rolled back", failure)
                with self._progress_lock:
                    self._progress.trials += 1
                    self._progress.failed += 1
                    self._progress.error_message = str(failure)
                return TrialOutcome(False, baseline, result, failed=True)

        with self._progress_lock:
            progress = self._progress
            progress.trials += 1
            progress.baseline = baseline
            if accepted:
                progress.accepted += 1
                progress.non_improving = 0
                progress.current_metric = result
                self._converged_notified = False
            else:
                progress.rejected += 1
                progress.non_improving += 1
                progress.current_metric = baseline
            converged = progress.non_improving > self.config.convergence_threshold

        if converged:
            self._converge()

        return TrialOutcome(accepted, baseline, result, converged=converged)

    def _converge(self):
        with self._state_lock:
            if self._converged_notified:
                return
            self._converged_notified = True
            self._stop_event.set()
            self._state = OptimizerState.CONVERGED
        with self._progress_lock:
            self._progress.is_converged = True
            trials = self._progress.trials

        logger.info("Optimization complete after %d trials", trials)
        if self.on_converged is not None:
            try:
                self.on_converged()
            except Exception:
                logger.exception("Convergence callback failed")

    # -------------------------------------------------------------------------
    # Loop
    # -------------------------------------------------------------------------

    def _notify_progress(self):
        if self.on_progress is None:
            return
        try:
            self.on_progress(self.inventory.snapshot())
        except Exception:
            logger.exception("Progress callback failed")

    def _run_loop(self):
        """Trial loop executed on the worker thread."""
        start_time = time.monotonic()
        deadline = self.config.deadline_seconds
        interval = self.config.progress_interval
        last_update_time = 0.0

        try:
            while not self._stop_event.is_set():
                elapsed = time.monotonic() - start_time
                if deadline is not None and elapsed >= deadline:
                    logger.info("Optimizer deadline of %.1fs reached", deadline)
                    break

                self.run_trial()

                current_time = time.monotonic()
                with self._progress_lock:
                    self._progress.elapsed_seconds = current_time - start_time

                # Rate-limit progress callbacks
                if interval <= 0 or current_time - last_update_time >= interval:
                    last_update_time = current_time
                    self._notify_progress()
        finally:
            with self._state_lock:
                if self._state is OptimizerState.RUNNING:
                    self._state = OptimizerState.IDLE
            with self._progress_lock:
                self._progress.is_running = False
                self._progress.elapsed_seconds = time.monotonic() - start_time
                trials = self._progress.trials

            logger.info("Optimizer stopped after %d trials", trials)
            if interval > 0:
                self._notify_progress()

    def run_until_converged(self) -> OptimizerProgress:
        """
        Run the trial loop on the calling thread until convergence, the
        deadline, or stop() from another thread.

        Returns:
        -------
        OptimizerProgress
            Final progress
        """
        if self.is_running:
            raise OptimizerBusy("Optimizer is already running")
        with self._state_lock:
            self.config.check()
            self._check_inventory()
            self._sync_seed()
            self._stop_event.clear()
            self._converged_notified = False
            with self._progress_lock:
                self._progress = OptimizerProgress(is_running=True)
            self._state = OptimizerState.RUNNING
            self._thread = None

        self._run_loop()
        return self.progress
