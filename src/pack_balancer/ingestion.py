"""
Measurement Ingestion
=====================

Turns cell impedance measurements into an initial pack inventory.

Input is a flat sequence of (address, impedance) readings, usually read
from a CSV file with ``cell_id`` and ``cell_value`` columns. Cells are
assembled into packs in input order: pack "0" takes the first
``cells_per_pack`` readings, pack "1" the next, and so on.

Usage:
------
    from src.pack_balancer import load_inventory_from_csv

    inventory = load_inventory_from_csv("measurements.csv", cells_per_pack=12)
"""

import math
from pathlib import Path
from typing import Iterable, List, Tuple, Union

import pandas as pd

from .config import CSV_ADDRESS_COLUMN, CSV_IMPEDANCE_COLUMN, check_cells_per_pack
from .errors import IngestionError, InvalidPartition
from .models.cell import Cell
from .models.inventory import PackInventory
from .models.pack import Pack


Reading = Tuple[str, float]


def _to_cell(row: int, address, value) -> Cell:
    """Build a cell from one reading, rejecting impedances that are not positive numbers."""
    if isinstance(value, bool):
        raise IngestionError(f"Row {row}: impedance for cell '{address}' is not numeric: {value!r}")
    try:
        impedance = float(value)
    except (TypeError, ValueError) as exc:
        raise IngestionError(
            f"Row {row}: impedance for cell '{address}' is not numeric: {value!r}"
        ) from exc
    if not math.isfinite(impedance):
        raise IngestionError(f"Row {row}: impedance for cell '{address}' is not finite: {value!r}")
    if impedance <= 0:
        raise IngestionError(f"Row {row}: impedance for cell '{address}' must be positive: {value!r}")
    return Cell(str(address), impedance)


def build_packs(readings: Iterable[Reading], cells_per_pack: int) -> List[Pack]:
    """
    Group readings into packs of ``cells_per_pack`` cells, in input order.

    Parameters:
    ----------
    readings : Iterable[Tuple[str, float]]
        (address, impedance) pairs

    cells_per_pack : int
        Number of cells in each pack

    Returns:
    -------
    List[Pack]
        Packs with ids "0", "1", ...

    Raises:
    ------
    ConfigurationError
        If cells_per_pack is not a positive integer
    IngestionError
        If any impedance is not a finite positive number
    InvalidPartition
        If the reading count is zero or not divisible by cells_per_pack
    """
    check_cells_per_pack(cells_per_pack)

    # Convert everything first so a bad row rejects the whole import
    cells = [_to_cell(i, address, value) for i, (address, value) in enumerate(readings, start=1)]

    if not cells or len(cells) % cells_per_pack != 0:
        raise InvalidPartition(len(cells), cells_per_pack)

    packs = []
    for index, start in enumerate(range(0, len(cells), cells_per_pack)):
        packs.append(Pack(str(index), cells[start:start + cells_per_pack]))
    return packs


def build_inventory(readings: Iterable[Reading], cells_per_pack: int) -> PackInventory:
    """Build a PackInventory from readings. See build_packs() for errors."""
    return PackInventory(build_packs(readings, cells_per_pack))


def read_readings_csv(csv_path: Union[str, Path]) -> List[Reading]:
    """
    Read (address, impedance) readings from a CSV file.

    The file needs a header row with ``cell_id`` and ``cell_value``
    columns (matched case-insensitively). Other columns are ignored.

    Raises:
    ------
    IngestionError
        If the file cannot be parsed or lacks the required columns
    """
    csv_path = Path(csv_path)
    try:
        df = pd.read_csv(csv_path, dtype=str, keep_default_na=False, skipinitialspace=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise IngestionError(f"Could not read {csv_path.name}: {exc}") from exc

    columns = {str(c).strip().lower(): c for c in df.columns}
    missing = [c for c in (CSV_ADDRESS_COLUMN, CSV_IMPEDANCE_COLUMN) if c not in columns]
    if missing:
        raise IngestionError(
            f"{csv_path.name} is missing required columns: {', '.join(missing)}"
        )

    addresses = df[columns[CSV_ADDRESS_COLUMN]].astype(str).str.strip()
    values = df[columns[CSV_IMPEDANCE_COLUMN]]
    return list(zip(addresses.tolist(), values.tolist()))


def load_inventory_from_csv(csv_path: Union[str, Path], cells_per_pack: int) -> PackInventory:
    """Read a measurement CSV and assemble it into packs."""
    return build_inventory(read_readings_csv(csv_path), cells_per_pack)
