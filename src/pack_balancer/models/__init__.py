"""
Pack Balancer Models
====================

Core data models: cells, packs and the pack inventory.
"""

from .cell import Cell
from .pack import Pack, spread_key
from .inventory import (
    PackInventory,
    InventoryStats,
    average_spread,
    min_spread,
    max_spread,
    worst_pack,
    rank_by_spread,
)

__all__ = [
    "Cell",
    "Pack",
    "spread_key",
    "PackInventory",
    "InventoryStats",
    "average_spread",
    "min_spread",
    "max_spread",
    "worst_pack",
    "rank_by_spread",
]
