"""
Pack Model
==========

A Pack is an ordered group of cells that will be assembled into one
battery. Its quality is measured by the impedance spread:

    spread = (max(Z) - min(Z)) / mean(Z)

The spread changes every time a cell moves, so it is computed on demand
and never stored. Packs have no intrinsic ordering; sort them with
``spread_key``.
"""

import random
from dataclasses import dataclass, field
from typing import List, Tuple

from .cell import Cell


@dataclass(eq=False)
class Pack:
    """
    Ordered, mutable collection of cells sharing a pack id.

    Equality is identity, so a pack and its clone are different packs
    even while they hold the same cells.

    Attributes:
    ----------
    pack_id : str
        Pack identifier (e.g. "0", "1", ...)

    cells : List[Cell]
        Cells in assembly order
    """
    pack_id: str
    cells: List[Cell] = field(default_factory=list)

    # =========================================================================
    # Mutation
    # =========================================================================

    def add_cell(self, cell: Cell):
        """Append a cell. Duplicate addresses are allowed."""
        self.cells.append(cell)

    def remove_random_cell(self, rng: random.Random) -> Cell:
        """
        Remove and return a uniformly chosen cell.

        Parameters:
        ----------
        rng : random.Random
            Random source owned by the caller

        Returns:
        -------
        Cell
            The removed cell

        Raises:
        ------
        ValueError
            If the pack is empty
        """
        if not self.cells:
            raise ValueError(f"Cannot remove a cell from empty pack {self.pack_id}")
        return self.cells.pop(rng.randrange(len(self.cells)))

    def clone(self) -> "Pack":
        """Independent copy with the same id and the same (immutable) cells."""
        return Pack(self.pack_id, list(self.cells))

    # =========================================================================
    # Metrics
    # =========================================================================

    @property
    def cell_count(self) -> int:
        return len(self.cells)

    def spread(self) -> float:
        """
        Impedance spread of the pack: range divided by mean.

        Returns:
        -------
        float
            (max - min) / mean, >= 0 for positive impedances

        Raises:
        ------
        ValueError
            If the pack is empty
        """
        cells = self.cells
        if not cells:
            raise ValueError(f"Spread is undefined for empty pack {self.pack_id}")

        first = cells[0].impedance
        low = high = total = first
        for cell in cells[1:]:
            z = cell.impedance
            total += z
            if z > high:
                high = z
            elif z < low:
                low = z

        return (high - low) / (total / len(cells))

    def contents(self) -> List[Tuple[str, float]]:
        """(address, impedance) of each cell in order."""
        return [(cell.address, cell.impedance) for cell in self.cells]

    def same_contents(self, other: "Pack") -> bool:
        """True if both packs hold the same cells, cell for cell, in the same order."""
        return self.pack_id == other.pack_id and self.contents() == other.contents()


def spread_key(pack: Pack) -> float:
    """Sort key ranking packs by ascending spread."""
    return pack.spread()
