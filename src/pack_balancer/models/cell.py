"""
Cell Model
==========

Defines the Cell dataclass: a single measured battery cell identified by
its address (e.g. a tray position or serial) and its impedance.
"""

from dataclasses import dataclass

from ..config import MILLIOHMS_PER_OHM


@dataclass(frozen=True, eq=False)
class Cell:
    """
    A single measured cell.

    Cells are immutable. They are moved between packs, never copied
    or modified. Equality is identity; two cells with the same address
    and impedance are still two cells.

    Attributes:
    ----------
    address : str
        Cell address as given in the measurement file

    impedance : float
        Measured impedance (Ω)
    """
    address: str
    impedance: float

    @property
    def impedance_mohm(self) -> float:
        """Impedance in milliohms (for display)."""
        return self.impedance * MILLIOHMS_PER_OHM

    def label(self) -> str:
        """Display label, e.g. 'A12 (0.52 mΩ)'."""
        return f"{self.address} ({self.impedance_mohm:.2f} mΩ)"
