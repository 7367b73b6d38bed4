"""
Pack Inventory
==============

The working set of packs under optimization, plus aggregate spread
statistics and ranking.

The inventory is shared between the optimizer's worker thread and the
caller. Every public method takes ``lock`` for its full duration; the
optimizer additionally holds it across a whole trial so readers never
see a pack list in the middle of a swap.

Spread statistics are also available as plain functions over a pack
sequence (e.g. a snapshot) for use without the lock.
"""

import math
import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import numpy as np

from .pack import Pack, spread_key


# =============================================================================
# Statistics over pack sequences
# =============================================================================

def _spreads(packs: Sequence[Pack]) -> np.ndarray:
    if not packs:
        raise ValueError("Spread statistics are undefined for an empty inventory")
    return np.fromiter((p.spread() for p in packs), dtype=float, count=len(packs))


def average_spread(packs: Sequence[Pack]) -> float:
    """Mean spread across packs (independent of pack order)."""
    spreads = _spreads(packs)
    return math.fsum(spreads) / len(spreads)


def min_spread(packs: Sequence[Pack]) -> float:
    """Lowest pack spread."""
    return float(_spreads(packs).min())


def max_spread(packs: Sequence[Pack]) -> float:
    """Highest pack spread."""
    return float(_spreads(packs).max())


def worst_pack(packs: Sequence[Pack]) -> Pack:
    """Pack with the highest spread; the first one wins ties."""
    return packs[int(np.argmax(_spreads(packs)))]


def rank_by_spread(packs: Iterable[Pack]) -> List[Pack]:
    """Packs sorted by ascending spread (stable: ties keep their order)."""
    return sorted(packs, key=spread_key)


@dataclass
class InventoryStats:
    """Aggregate figures for a set of packs (spreads as fractions)."""
    pack_count: int = 0
    total_cells: int = 0
    average_spread: float = 0.0
    min_spread: float = 0.0
    max_spread: float = 0.0

    @classmethod
    def from_packs(cls, packs: Sequence[Pack]) -> "InventoryStats":
        if not packs:
            return cls()
        spreads = _spreads(packs)
        return cls(
            pack_count=len(packs),
            total_cells=sum(p.cell_count for p in packs),
            average_spread=math.fsum(spreads) / len(spreads),
            min_spread=float(spreads.min()),
            max_spread=float(spreads.max()),
        )


# =============================================================================
# Inventory
# =============================================================================

class PackInventory:
    """
    Lock-guarded, mutable collection of packs.

    Attributes:
    ----------
    lock : threading.RLock
        Guards the pack list. Reentrant so the optimizer can hold it for
        a whole trial while calling the methods below.

    Example:
    -------
        inventory = PackInventory([pack_a, pack_b, pack_c])
        print(inventory.average_spread())
        for pack in inventory.sorted_by_spread():
            print(pack.pack_id, pack.spread())
    """

    def __init__(self, packs: Optional[Iterable[Pack]] = None):
        self._packs: List[Pack] = list(packs) if packs is not None else []
        self.lock = threading.RLock()

    def __len__(self) -> int:
        with self.lock:
            return len(self._packs)

    @property
    def pack_count(self) -> int:
        return len(self)

    def total_cells(self) -> int:
        with self.lock:
            return sum(p.cell_count for p in self._packs)

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def average_spread(self) -> float:
        with self.lock:
            return average_spread(self._packs)

    def min_spread(self) -> float:
        with self.lock:
            return min_spread(self._packs)

    def max_spread(self) -> float:
        with self.lock:
            return max_spread(self._packs)

    def worst_pack(self) -> Pack:
        with self.lock:
            return worst_pack(self._packs)

    def statistics(self) -> InventoryStats:
        """All aggregate figures from a single consistent view."""
        with self.lock:
            return InventoryStats.from_packs(self._packs)

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def snapshot(self) -> List[Pack]:
        """
        Copy of the current pack list.

        The list is copied, not the packs; it is safe to iterate without
        the lock but packs in it may be modified by later trials.
        """
        with self.lock:
            return list(self._packs)

    def sorted_by_spread(self) -> List[Pack]:
        """Snapshot ranked by ascending spread."""
        with self.lock:
            return rank_by_spread(self._packs)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def add_pack(self, pack: Pack):
        with self.lock:
            self._packs.append(pack)

    def pop_pack(self, index: int) -> Pack:
        """Remove and return the pack at ``index``."""
        with self.lock:
            return self._packs.pop(index)

    def remove_pack(self, pack: Pack):
        """Remove this pack object (matched by identity)."""
        with self.lock:
            self._packs.remove(pack)

    def replace_all(self, packs: Iterable[Pack]):
        """Replace the whole pack list."""
        with self.lock:
            self._packs = list(packs)
