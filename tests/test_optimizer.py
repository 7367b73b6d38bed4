"""
Pack Optimizer Tests
====================

Validates the balancing optimizer: trial accept/reject behavior,
convergence, background start/stop and failure recovery.

Test Methodology:
- Drive single trials synchronously with a fixed seed and check the
  inventory after each one
- Run the background worker on small inventories with low convergence
  thresholds so runs finish quickly
"""

import random
import sys
import threading
from collections import Counter
from pathlib import Path
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.pack_balancer import (
    Cell,
    Pack,
    PackInventory,
    PackOptimizer,
    OptimizerConfig,
    OptimizerState,
    Strategy,
    ConfigurationError,
    InsufficientPacks,
    OptimizerBusy,
    build_inventory,
)


def random_readings(count, seed=0):
    """Realistic cell impedances around 0.5 mΩ."""
    rng = random.Random(seed)
    return [(f"C{i:03d}", rng.uniform(0.00040, 0.00070)) for i in range(count)]


def random_inventory(packs=10, cells_per_pack=4, seed=0):
    return build_inventory(random_readings(packs * cells_per_pack, seed), cells_per_pack)


def uniform_inventory(packs=4, cells_per_pack=3):
    """Every cell has the same impedance, so no swap can ever improve."""
    readings = [(f"U{i}", 0.0005) for i in range(packs * cells_per_pack)]
    return build_inventory(readings, cells_per_pack)


def contents_by_id(inventory):
    return {p.pack_id: p.contents() for p in inventory.snapshot()}


def all_addresses(inventory):
    return Counter(c.address for p in inventory.snapshot() for c in p.cells)


def frozen_by_id(inventory):
    return {p.pack_id: p.clone() for p in inventory.snapshot()}


def restored(inventory, frozen):
    """True if every pack matches its pre-trial copy cell for cell."""
    packs = inventory.snapshot()
    return len(packs) == len(frozen) and all(
        p.pack_id in frozen and p.same_contents(frozen[p.pack_id]) for p in packs
    )


class ExplodingPack(Pack):
    """Pack that fails when a cell is added to it."""

    def add_cell(self, cell):
        raise RuntimeError("simulated failure")


class TestOptimizerConfig(unittest.TestCase):
    """Test configuration validation."""

    def test_defaults(self):
        config = OptimizerConfig()
        self.assertEqual(config.strategy, Strategy.RANDOM_PAIR)
        self.assertEqual(config.convergence_threshold, 10_000)
        self.assertEqual(config.validate(), (True, ""))

    def test_invalid_threshold(self):
        for threshold in (0, -1):
            is_valid, error = OptimizerConfig(convergence_threshold=threshold).validate()
            self.assertFalse(is_valid)
            self.assertIn("threshold", error.lower())
            with self.assertRaises(ConfigurationError):
                OptimizerConfig(convergence_threshold=threshold).check()

    def test_strategy_from_name(self):
        self.assertIs(Strategy.from_name("worst-first"), Strategy.WORST_FIRST)
        self.assertIs(Strategy.from_name("random_pair"), Strategy.RANDOM_PAIR)
        with self.assertRaises(ConfigurationError):
            Strategy.from_name("annealing")


class TestTrials(unittest.TestCase):
    """Test single trials driven synchronously."""

    def test_conservation(self):
        """No cell is created or lost, and pack sizes never change."""
        for strategy in Strategy:
            inventory = random_inventory(seed=1)
            before = all_addresses(inventory)
            optimizer = PackOptimizer(inventory, OptimizerConfig(strategy=strategy, seed=7))

            for _ in range(300):
                optimizer.run_trial()
                self.assertEqual(inventory.pack_count, 10)
                self.assertTrue(all(p.cell_count == 4 for p in inventory.snapshot()))

            self.assertEqual(all_addresses(inventory), before)
            self.assertEqual(sorted(contents_by_id(inventory)), sorted(str(i) for i in range(10)))

    def test_random_pair_average_never_worsens(self):
        inventory = random_inventory(seed=2)
        optimizer = PackOptimizer(inventory, OptimizerConfig(seed=3))

        samples = [inventory.average_spread()]
        for _ in range(500):
            outcome = optimizer.run_trial()
            if outcome.accepted:
                samples.append(inventory.average_spread())
                self.assertLess(outcome.result, outcome.baseline)

        self.assertGreater(len(samples), 1)
        for previous, current in zip(samples, samples[1:]):
            self.assertLessEqual(current, previous)

    def test_worst_first_max_never_worsens(self):
        inventory = random_inventory(seed=4)
        optimizer = PackOptimizer(
            inventory, OptimizerConfig(strategy=Strategy.WORST_FIRST, seed=5)
        )

        highest = inventory.max_spread()
        for _ in range(500):
            optimizer.run_trial()
            current = inventory.max_spread()
            self.assertLessEqual(current, highest)
            highest = current

    def test_rejected_trial_restores_packs(self):
        """A rejected trial leaves every pack cell-for-cell as it was."""
        inventory = random_inventory(seed=6)
        optimizer = PackOptimizer(inventory, OptimizerConfig(seed=8))

        rejected = 0
        for _ in range(300):
            before = frozen_by_id(inventory)
            outcome = optimizer.run_trial()
            if not outcome.accepted:
                rejected += 1
                self.assertTrue(restored(inventory, before))

        self.assertGreater(rejected, 0)

    def test_accepted_trial_changes_two_packs(self):
        inventory = random_inventory(seed=9)
        optimizer = PackOptimizer(inventory, OptimizerConfig(seed=10))

        for _ in range(300):
            before = contents_by_id(inventory)
            if optimizer.run_trial().accepted:
                after = contents_by_id(inventory)
                changed = [k for k in before if before[k] != after[k]]
                self.assertEqual(len(changed), 2)
                return
        self.fail("No trial was accepted")

    def test_same_seed_same_result(self):
        results = []
        for _ in range(2):
            inventory = random_inventory(seed=11)
            optimizer = PackOptimizer(inventory, OptimizerConfig(seed=12))
            for _ in range(200):
                optimizer.run_trial()
            results.append(contents_by_id(inventory))
        self.assertEqual(results[0], results[1])

    def test_replaced_config_seed_is_used(self):
        """Swapping in a config with a new seed reproduces a fresh run."""
        config = OptimizerConfig(convergence_threshold=100, seed=12)

        fresh_inventory = random_inventory(seed=15)
        PackOptimizer(fresh_inventory, config).run_until_converged()

        reused_inventory = random_inventory(seed=15)
        reused = PackOptimizer(reused_inventory, OptimizerConfig(seed=99))
        reused.config = OptimizerConfig(convergence_threshold=100, seed=12)
        reused.run_until_converged()

        self.assertEqual(contents_by_id(reused_inventory), contents_by_id(fresh_inventory))

    def test_progress_counts(self):
        inventory = random_inventory(seed=13)
        optimizer = PackOptimizer(inventory, OptimizerConfig(seed=14))
        for _ in range(50):
            optimizer.run_trial()

        progress = optimizer.progress
        self.assertEqual(progress.trials, 50)
        self.assertEqual(progress.accepted + progress.rejected, 50)
        self.assertEqual(progress.failed, 0)

    def test_failed_trial_is_rolled_back(self):
        normal = Pack("normal", [Cell("N0", 0.5), Cell("N1", 0.6)])
        broken = ExplodingPack("broken", [Cell("B0", 0.4), Cell("B1", 0.9)])
        inventory = PackInventory([normal, broken])
        before = frozen_by_id(inventory)
        optimizer = PackOptimizer(inventory, OptimizerConfig(seed=1))

        with self.assertLogs("src.pack_balancer.optimizer", level="ERROR") as logs:
            outcome = optimizer.run_trial()

        self.assertTrue(outcome.failed)
        self.assertFalse(outcome.accepted)
        self.assertTrue(restored(inventory, before))
        self.assertEqual(inventory.pack_count, 2)
        self.assertEqual(optimizer.progress.failed, 1)
        self.assertEqual(optimizer.progress.non_improving, 0)
        self.assertIn("Trial 1 failed", logs.output[0])

    def test_trial_needs_two_packs(self):
        inventory = PackInventory([Pack("0", [Cell("A", 0.5)])])
        with self.assertRaises(InsufficientPacks):
            PackOptimizer(inventory).run_trial()


class TestConvergence(unittest.TestCase):
    """Test the non-improvement stop rule."""

    def test_converges_once_on_background_thread(self):
        inventory = uniform_inventory()
        converged = threading.Event()
        calls = []

        def on_converged():
            calls.append(threading.current_thread().name)
            converged.set()

        optimizer = PackOptimizer(
            inventory,
            OptimizerConfig(convergence_threshold=50, seed=1),
            on_converged=on_converged,
        )
        optimizer.start()

        self.assertTrue(converged.wait(10))
        self.assertTrue(optimizer.join(10))
        self.assertEqual(len(calls), 1)
        self.assertEqual(optimizer.state, OptimizerState.CONVERGED)

        progress = optimizer.progress
        self.assertEqual(progress.trials, 51)
        self.assertEqual(progress.non_improving, 51)
        self.assertTrue(progress.is_converged)
        self.assertFalse(progress.is_running)

    def test_progress_reported_after_every_trial(self):
        inventory = uniform_inventory(packs=5)
        snapshots = []
        optimizer = PackOptimizer(
            inventory,
            OptimizerConfig(convergence_threshold=20, seed=2),
            on_progress=snapshots.append,
        )
        optimizer.start()
        self.assertTrue(optimizer.join(10))

        self.assertEqual(len(snapshots), 21)
        self.assertTrue(all(len(s) == 5 for s in snapshots))

    def test_synchronous_run_converges(self):
        inventory = uniform_inventory()
        calls = []
        optimizer = PackOptimizer(
            inventory,
            OptimizerConfig(convergence_threshold=30, seed=3),
            on_converged=lambda: calls.append(1),
        )

        progress = optimizer.run_until_converged()

        self.assertEqual(calls, [1])
        self.assertEqual(progress.trials, 31)
        self.assertEqual(optimizer.state, OptimizerState.CONVERGED)

    def test_optimization_improves_random_packs(self):
        for strategy in Strategy:
            inventory = random_inventory(seed=20)
            initial_average = inventory.average_spread()
            initial_highest = inventory.max_spread()

            optimizer = PackOptimizer(
                inventory,
                OptimizerConfig(strategy=strategy, convergence_threshold=300, seed=21),
            )
            progress = optimizer.run_until_converged()

            self.assertGreater(progress.accepted, 0)
            if strategy is Strategy.RANDOM_PAIR:
                self.assertLess(inventory.average_spread(), initial_average)
            else:
                self.assertLess(inventory.max_spread(), initial_highest)

    def test_deadline_stops_run(self):
        inventory = random_inventory(seed=22)
        optimizer = PackOptimizer(
            inventory,
            OptimizerConfig(convergence_threshold=10**9, seed=23, deadline_seconds=0.05),
        )
        progress = optimizer.run_until_converged()

        self.assertEqual(optimizer.state, OptimizerState.IDLE)
        self.assertFalse(progress.is_converged)
        self.assertGreater(progress.trials, 0)


class TestStartStop(unittest.TestCase):
    """Test the background worker lifecycle."""

    def make_optimizer(self, **kwargs):
        config = OptimizerConfig(convergence_threshold=10**9, seed=1)
        return PackOptimizer(random_inventory(seed=30), config, **kwargs)

    def test_start_and_stop(self):
        optimizer = self.make_optimizer()
        self.assertEqual(optimizer.state, OptimizerState.IDLE)

        optimizer.start()
        self.assertTrue(optimizer.is_running)

        optimizer.stop()
        self.assertEqual(optimizer.state, OptimizerState.IDLE)
        self.assertTrue(optimizer.join(5))
        self.assertFalse(optimizer.progress.is_running)

    def test_stop_is_idempotent(self):
        optimizer = self.make_optimizer()
        optimizer.stop()
        optimizer.start()
        optimizer.stop()
        optimizer.stop()
        self.assertEqual(optimizer.state, OptimizerState.IDLE)
        self.assertTrue(optimizer.join(5))

    def test_stop_from_another_thread(self):
        optimizer = self.make_optimizer()
        optimizer.start()
        stopper = threading.Thread(target=optimizer.stop)
        stopper.start()
        stopper.join(5)
        self.assertTrue(optimizer.join(5))
        self.assertEqual(optimizer.state, OptimizerState.IDLE)

    def test_start_while_running_raises(self):
        optimizer = self.make_optimizer()
        optimizer.start()
        try:
            with self.assertRaises(OptimizerBusy):
                optimizer.start()
        finally:
            optimizer.stop()

    def test_restart_after_stop(self):
        optimizer = self.make_optimizer()
        optimizer.start()
        optimizer.stop()
        optimizer.start()
        self.assertTrue(optimizer.is_running)
        optimizer.stop()
        self.assertTrue(optimizer.join(5))

    def test_snapshot_while_running(self):
        """Readers never see a pack list in the middle of a swap."""
        optimizer = self.make_optimizer()
        inventory = optimizer.inventory
        optimizer.start()
        try:
            for _ in range(200):
                with inventory.lock:
                    packs = inventory.snapshot()
                    self.assertEqual(len(packs), 10)
                    self.assertTrue(all(p.cell_count == 4 for p in packs))
        finally:
            optimizer.stop()

    def test_start_with_one_pack_fails_fast(self):
        inventory = PackInventory([Pack("0", [Cell("A", 0.5), Cell("B", 0.6)])])
        optimizer = PackOptimizer(inventory)
        with self.assertRaises(InsufficientPacks):
            optimizer.start()
        self.assertEqual(optimizer.state, OptimizerState.IDLE)

    def test_start_with_bad_config_fails_fast(self):
        optimizer = PackOptimizer(
            random_inventory(seed=31), OptimizerConfig(convergence_threshold=0)
        )
        with self.assertRaises(ConfigurationError):
            optimizer.start()
        self.assertEqual(optimizer.state, OptimizerState.IDLE)


if __name__ == "__main__":
    unittest.main(verbosity=2)
