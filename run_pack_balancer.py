#!/usr/bin/env python3
"""
Pack Balancer Launcher
======================

Launch script for the Pack Balancer.

Without arguments the GUI is started. With a CSV file the optimizer runs
headless until it converges and prints the ranked packs.

Features:
- Load cell impedance measurements from CSV (cell_id, cell_value)
- Split cells into packs of a fixed size
- Balance packs by average spread (random pairs) or by worst pack
- Export ranked results to CSV

Usage:
    python run_pack_balancer.py
    python run_pack_balancer.py cells.csv --cells-per-pack 12 --strategy worst-first
    python run_pack_balancer.py cells.csv --seed 1 --export results.csv

Requirements:
    - Python 3.8+
    - tkinter (usually included with Python)
    - numpy
    - pandas
    - matplotlib
"""

import argparse
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent))

from src.pack_balancer import (
    DEFAULT_CELLS_PER_PACK,
    DEFAULT_CONVERGENCE_THRESHOLD,
    OptimizerConfig,
    PackBalancerError,
    PackOptimizer,
    Strategy,
    export_results_csv,
    format_results,
    format_summary,
    load_inventory_from_csv,
)
from src.pack_balancer.event_log import DEFAULT_LOG_DIR, configure_event_log, install_exception_hook


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Balance cell impedance across battery packs"
    )
    parser.add_argument("csv", nargs="?", help="Measurement CSV (omit to start the GUI)")
    parser.add_argument("--cells-per-pack", type=int, default=DEFAULT_CELLS_PER_PACK)
    parser.add_argument(
        "--strategy",
        choices=["random-pair", "worst-first"],
        default="random-pair",
        help="random-pair minimizes the average spread, worst-first the highest spread",
    )
    parser.add_argument("--threshold", type=int, default=DEFAULT_CONVERGENCE_THRESHOLD,
                        help="Stop after this many consecutive non-improving trials")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--deadline", type=float, default=None,
                        help="Stop after this many seconds")
    parser.add_argument("--export", default=None, help="Write ranked results to this CSV")
    parser.add_argument("--log-dir", default=DEFAULT_LOG_DIR)
    return parser.parse_args(argv)


def run_headless(args: argparse.Namespace) -> int:
    """Optimize a CSV file without the GUI."""
    try:
        inventory = load_inventory_from_csv(args.csv, args.cells_per_pack)
        config = OptimizerConfig(
            strategy=Strategy.from_name(args.strategy),
            convergence_threshold=args.threshold,
            seed=args.seed,
            deadline_seconds=args.deadline,
        )
        optimizer = PackOptimizer(inventory, config)

        print("Before:")
        print(format_summary(inventory.statistics()))
        print()

        progress = optimizer.run_until_converged()
    except (PackBalancerError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130

    print(f"After {progress.trials:,} trials ({progress.accepted:,} accepted, "
          f"{progress.elapsed_seconds:.1f}s):")
    print(format_summary(inventory.statistics()))
    print()
    for line in format_results(inventory.snapshot()):
        print(line)

    if args.export:
        path = export_results_csv(inventory.snapshot(), args.export)
        print(f"\nResults exported to {path}")
    return 0


def main(argv=None) -> int:
    """Launch the Pack Balancer."""
    args = parse_args(argv)
    configure_event_log(args.log_dir)
    install_exception_hook()

    if args.csv:
        return run_headless(args)

    from src.ui.pack_balancer_ui import PackBalancerUI

    print("=" * 60)
    print("Pack Balancer")
    print("=" * 60)
    print()
    print("Loading GUI...")
    print()

    app = PackBalancerUI()
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
