"""
Results Reporting
=================

Ranked result tables, summary text and CSV export for a set of packs.

All functions take a plain pack sequence (e.g. ``inventory.snapshot()``)
and rank it by ascending spread themselves, so they never need the
inventory lock.
"""

from pathlib import Path
from typing import List, Sequence, Union

import pandas as pd

from .models.inventory import InventoryStats, rank_by_spread
from .models.pack import Pack


def format_spread(spread: float) -> str:
    """Format a spread fraction as a percentage, e.g. 0.1234 -> '12.34%'."""
    return f"{spread * 100:.2f}%"


def summarize(packs: Sequence[Pack]) -> InventoryStats:
    """Aggregate spread figures for a set of packs."""
    return InventoryStats.from_packs(packs)


def build_results_table(packs: Sequence[Pack]) -> pd.DataFrame:
    """
    Ranked results table, one row per pack.

    Columns:
    - pack_id
    - cell_1 ... cell_N: "<address> (<impedance> mΩ)"
    - spread_pct: pack spread in percent

    Packs with fewer cells than the largest pack leave trailing cell
    columns empty.

    Parameters:
    ----------
    packs : Sequence[Pack]
        Packs to report (any order)

    Returns:
    -------
    pd.DataFrame
        Rows sorted by ascending spread
    """
    ranked = rank_by_spread(packs)
    width = max((p.cell_count for p in ranked), default=0)
    cell_columns = [f"cell_{i}" for i in range(1, width + 1)]

    rows = []
    for pack in ranked:
        row = {"pack_id": pack.pack_id}
        for column, cell in zip(cell_columns, pack.cells):
            row[column] = cell.label()
        row["spread_pct"] = pack.spread() * 100
        rows.append(row)

    return pd.DataFrame(rows, columns=["pack_id", *cell_columns, "spread_pct"])


def format_summary(stats: InventoryStats) -> str:
    """Multi-line summary as shown by the command line tool."""
    lines = [
        f"Packs:           {stats.pack_count}",
        f"Cells:           {stats.total_cells}",
        f"Average spread:  {format_spread(stats.average_spread)}",
        f"Highest spread:  {format_spread(stats.max_spread)}",
        f"Lowest spread:   {format_spread(stats.min_spread)}",
    ]
    return "\n".join(lines)


def format_results(packs: Sequence[Pack]) -> List[str]:
    """One text line per ranked pack: id, cells and spread."""
    lines = []
    for pack in rank_by_spread(packs):
        cells = ", ".join(cell.label() for cell in pack.cells)
        lines.append(f"Pack {pack.pack_id}: {format_spread(pack.spread())}  [{cells}]")
    return lines


def export_results_csv(packs: Sequence[Pack], filepath: Union[str, Path]) -> Path:
    """
    Export the ranked results table to CSV.

    Parameters:
    ----------
    packs : Sequence[Pack]
        Packs to export

    filepath : str | Path
        Output file path

    Returns:
    -------
    Path
        The written file
    """
    filepath = Path(filepath)
    table = build_results_table(packs)
    table["spread_pct"] = table["spread_pct"].round(2)
    table.to_csv(filepath, index=False)
    return filepath
