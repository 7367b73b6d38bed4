"""
Spread Plotting
===============

Matplotlib chart of pack spreads, ranked from best to worst, with the
average spread marked. Used by the GUI and available for reports.
"""

from typing import Optional, Sequence

import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from .models.inventory import rank_by_spread
from .models.pack import Pack


def plot_spread_ranking(packs: Sequence[Pack], ax: Optional[Axes] = None) -> Axes:
    """
    Draw a bar chart of pack spreads (%) in ascending order.

    Parameters:
    ----------
    packs : Sequence[Pack]
        Packs to plot

    ax : Axes, optional
        Axes to draw on; a new figure is created if omitted

    Returns:
    -------
    Axes
        The axes drawn on
    """
    if ax is None:
        fig = Figure(figsize=(8, 4), dpi=100)
        ax = fig.add_subplot(111)

    ax.clear()
    ranked = rank_by_spread(packs)
    if not ranked:
        ax.set_title("No packs loaded")
        return ax

    spreads = np.array([p.spread() for p in ranked]) * 100
    positions = np.arange(len(ranked))

    ax.bar(positions, spreads, color='tab:blue', alpha=0.8)
    ax.axhline(y=spreads.mean(), color='tab:orange', linestyle='--',
               label=f'Average ({spreads.mean():.2f}%)')

    # Pack ids only fit when there are few packs
    if len(ranked) <= 40:
        ax.set_xticks(positions)
        ax.set_xticklabels([p.pack_id for p in ranked], rotation=90, fontsize=8)
    else:
        ax.set_xticks([])

    ax.set_xlabel('Pack (ranked)')
    ax.set_ylabel('Impedance spread (%)')
    ax.set_title(f'Pack spread ranking ({len(ranked)} packs)')
    ax.grid(True, axis='y', alpha=0.3)
    ax.legend(loc='upper left')
    return ax
