"""
Pack Balancer Module
====================

Balances the impedance of measured battery cells across fixed-size packs.

Cells are loaded from a measurement file and split into packs. The
optimizer then repeatedly swaps single cells between two packs and keeps
a swap only when it lowers the target metric:

- RANDOM_PAIR: two random packs per trial, minimizes the average spread
- WORST_FIRST: the worst pack plus a random one, minimizes the highest spread

Pack spread is (max impedance - min impedance) / mean impedance.

Usage:
------
    from src.pack_balancer import (
        load_inventory_from_csv, PackOptimizer, OptimizerConfig, Strategy,
    )

    inventory = load_inventory_from_csv("cells.csv", cells_per_pack=12)

    optimizer = PackOptimizer(
        inventory,
        OptimizerConfig(strategy=Strategy.RANDOM_PAIR, seed=42),
        on_converged=lambda: print("Optimization complete"),
    )
    optimizer.start()
    optimizer.join()

    for pack in inventory.sorted_by_spread():
        print(pack.pack_id, f"{pack.spread() * 100:.2f}%")
"""

from .models.cell import Cell
from .models.pack import Pack, spread_key
from .models.inventory import PackInventory, InventoryStats
from .config import (
    OptimizerConfig,
    Strategy,
    DEFAULT_CONVERGENCE_THRESHOLD,
    DEFAULT_CELLS_PER_PACK,
)
from .errors import (
    PackBalancerError,
    InvalidPartition,
    InsufficientPacks,
    ConfigurationError,
    IngestionError,
    OptimizerBusy,
    TrialFailure,
)
from .optimizer import PackOptimizer, OptimizerState, OptimizerProgress, TrialOutcome
from .ingestion import build_packs, build_inventory, read_readings_csv, load_inventory_from_csv
from .reporting import (
    build_results_table,
    export_results_csv,
    format_results,
    format_spread,
    format_summary,
    summarize,
)

__all__ = [
    # Models
    "Cell",
    "Pack",
    "spread_key",
    "PackInventory",
    "InventoryStats",
    # Config
    "OptimizerConfig",
    "Strategy",
    "DEFAULT_CONVERGENCE_THRESHOLD",
    "DEFAULT_CELLS_PER_PACK",
    # Errors
    "PackBalancerError",
    "InvalidPartition",
    "InsufficientPacks",
    "ConfigurationError",
    "IngestionError",
    "OptimizerBusy",
    "TrialFailure",
    # Optimizer
    "PackOptimizer",
    "OptimizerState",
    "OptimizerProgress",
    "TrialOutcome",
    # Ingestion
    "build_packs",
    "build_inventory",
    "read_readings_csv",
    "load_inventory_from_csv",
    # Reporting
    "build_results_table",
    "export_results_csv",
    "format_results",
    "format_spread",
    "format_summary",
    "summarize",
]
