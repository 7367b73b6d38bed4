"""
Pack Balancer User Interface
============================

Graphical interface for balancing cell impedance across battery packs.

Features:
---------
- Load cell measurements from CSV (cell_id, cell_value)
- Choose the pack size and the optimization method
- Start/stop the background optimizer with live statistics
- Ranked results table and spread chart
- Export results to CSV

Usage:
------
    from src.ui.pack_balancer_ui import PackBalancerUI

    app = PackBalancerUI()
    app.run()
"""

import tkinter as tk
from tkinter import ttk, messagebox, filedialog, simpledialog
from typing import List, Optional
import sys
import time
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

# Import matplotlib with TkAgg backend
import matplotlib
matplotlib.use('TkAgg')
from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg
from matplotlib.figure import Figure

from src.pack_balancer import (
    Pack,
    PackInventory,
    PackOptimizer,
    OptimizerConfig,
    Strategy,
    PackBalancerError,
    DEFAULT_CELLS_PER_PACK,
    DEFAULT_CONVERGENCE_THRESHOLD,
    load_inventory_from_csv,
    export_results_csv,
    format_spread,
    summarize,
)
from src.pack_balancer.models.inventory import rank_by_spread
from src.pack_balancer.plotting import plot_spread_ranking


class PackBalancerUI:
    """
    Pack balancer GUI.

    This interface allows users to:
    1. Load cell measurements and split them into packs
    2. Pick the optimization method
    3. Run the optimizer in the background with live progress
    4. View, rank and export the resulting packs
    """

    # =========================================================================
    # UI Constants
    # =========================================================================

    WINDOW_TITLE = "Pack Balancer - Cell Impedance Optimizer"
    WINDOW_MIN_WIDTH = 1100
    WINDOW_MIN_HEIGHT = 750

    FRAME_PADDING = 10
    WIDGET_PADDING = 3

    # Milliseconds between progress polls
    POLL_INTERVAL_MS = 200

    # Chart redraws are slower than label updates
    CHART_INTERVAL_MS = 2000

    def __init__(self):
        """Initialize the Pack Balancer UI."""
        self._inventory: Optional[PackInventory] = None
        self._optimizer: Optional[PackOptimizer] = None
        self._converged = False
        self._last_chart_update = 0
        self._poll_id: Optional[str] = None

        # Create main window
        self.root = tk.Tk()
        self.root.title(self.WINDOW_TITLE)
        self.root.minsize(self.WINDOW_MIN_WIDTH, self.WINDOW_MIN_HEIGHT)
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)

        # Configure grid
        self.root.columnconfigure(0, weight=1)
        self.root.rowconfigure(0, weight=1)

        # Main container
        self.main_frame = ttk.Frame(self.root, padding=self.FRAME_PADDING)
        self.main_frame.grid(row=0, column=0, sticky="nsew")

        self.main_frame.columnconfigure(0, weight=0)  # Left panel
        self.main_frame.columnconfigure(1, weight=1)  # Right panel
        self.main_frame.rowconfigure(1, weight=1)

        # Build UI
        self._create_header()
        self._create_left_panel()
        self._create_right_panel()
        self._create_status_bar()

        self._update_button_states()

    # =========================================================================
    # Layout
    # =========================================================================

    def _create_header(self):
        """Create header section."""
        header_frame = ttk.Frame(self.main_frame)
        header_frame.grid(row=0, column=0, columnspan=2, sticky="ew", pady=(0, 10))

        ttk.Label(
            header_frame,
            text="Pack Impedance Balancer",
            font=("Helvetica", 16, "bold")
        ).pack(anchor="w")

        ttk.Label(
            header_frame,
            text="Swap cells between packs to minimize the impedance spread",
            font=("Helvetica", 10)
        ).pack(anchor="w")

        ttk.Separator(header_frame, orient="horizontal").pack(fill="x", pady=5)

    def _create_left_panel(self):
        """Create controls and live statistics."""
        left = ttk.Frame(self.main_frame)
        left.grid(row=1, column=0, sticky="nsw", padx=(0, 10))

        # --- Data ---
        data_frame = ttk.LabelFrame(left, text="Cells", padding=self.FRAME_PADDING)
        data_frame.pack(fill="x", pady=(0, 5))

        ttk.Label(data_frame, text="Cells per pack:").grid(row=0, column=0, sticky="w")
        self.cells_per_pack_var = tk.StringVar(value=str(DEFAULT_CELLS_PER_PACK))
        ttk.Spinbox(
            data_frame, from_=1, to=100, width=6,
            textvariable=self.cells_per_pack_var
        ).grid(row=0, column=1, sticky="w", padx=self.WIDGET_PADDING)

        self.open_btn = ttk.Button(data_frame, text="Open CSV", command=self._open_csv)
        self.open_btn.grid(row=1, column=0, columnspan=2, sticky="ew", pady=(5, 0))

        self.file_var = tk.StringVar(value="No file loaded")
        ttk.Label(
            data_frame, textvariable=self.file_var,
            font=("Helvetica", 8), foreground="gray"
        ).grid(row=2, column=0, columnspan=2, sticky="w")

        # --- Method ---
        method_frame = ttk.LabelFrame(left, text="Method", padding=self.FRAME_PADDING)
        method_frame.pack(fill="x", pady=5)

        self.strategy_var = tk.StringVar(value=Strategy.RANDOM_PAIR.value)
        for strategy in Strategy:
            ttk.Radiobutton(
                method_frame, text=strategy.label,
                value=strategy.value, variable=self.strategy_var
            ).pack(anchor="w")

        ttk.Label(method_frame, text="Stop after non-improving trials:").pack(anchor="w", pady=(5, 0))
        self.threshold_var = tk.StringVar(value=str(DEFAULT_CONVERGENCE_THRESHOLD))
        ttk.Entry(method_frame, textvariable=self.threshold_var, width=10).pack(anchor="w")

        # --- Run ---
        run_frame = ttk.LabelFrame(left, text="Optimizer", padding=self.FRAME_PADDING)
        run_frame.pack(fill="x", pady=5)

        self.start_btn = ttk.Button(run_frame, text="Start", command=self._start)
        self.start_btn.pack(fill="x")
        self.stop_btn = ttk.Button(run_frame, text="Stop", command=self._stop)
        self.stop_btn.pack(fill="x", pady=(3, 0))
        self.export_btn = ttk.Button(run_frame, text="Export", command=self._export_results)
        self.export_btn.pack(fill="x", pady=(3, 0))

        # --- Statistics ---
        stats_frame = ttk.LabelFrame(left, text="Statistics", padding=self.FRAME_PADDING)
        stats_frame.pack(fill="x", pady=5)

        self.pack_count_var = tk.StringVar(value="-")
        self.average_var = tk.StringVar(value="-")
        self.highest_var = tk.StringVar(value="-")
        self.lowest_var = tk.StringVar(value="-")
        self.trials_var = tk.StringVar(value="-")

        rows = [
            ("Num of Packs", self.pack_count_var),
            ("Average Spread", self.average_var),
            ("Highest Spread", self.highest_var),
            ("Lowest Spread", self.lowest_var),
            ("Trials", self.trials_var),
        ]
        for i, (label, var) in enumerate(rows):
            ttk.Label(stats_frame, text=f"{label}:").grid(row=i, column=0, sticky="w")
            ttk.Label(
                stats_frame, textvariable=var, font=("Courier", 10, "bold")
            ).grid(row=i, column=1, sticky="e", padx=(10, 0))

    def _create_right_panel(self):
        """Create results table and chart tabs."""
        right = ttk.Frame(self.main_frame)
        right.grid(row=1, column=1, sticky="nsew")
        right.columnconfigure(0, weight=1)
        right.rowconfigure(0, weight=1)

        self.results_notebook = ttk.Notebook(right)
        self.results_notebook.grid(row=0, column=0, sticky="nsew")

        # Results tab
        table_frame = ttk.Frame(self.results_notebook, padding=5)
        self.results_notebook.add(table_frame, text="Results")
        table_frame.columnconfigure(0, weight=1)
        table_frame.rowconfigure(0, weight=1)

        self.results_tree = ttk.Treeview(table_frame, show="headings")
        self.results_tree.grid(row=0, column=0, sticky="nsew")

        yscroll = ttk.Scrollbar(table_frame, orient="vertical", command=self.results_tree.yview)
        yscroll.grid(row=0, column=1, sticky="ns")
        xscroll = ttk.Scrollbar(table_frame, orient="horizontal", command=self.results_tree.xview)
        xscroll.grid(row=1, column=0, sticky="ew")
        self.results_tree.configure(yscrollcommand=yscroll.set, xscrollcommand=xscroll.set)

        # Chart tab
        chart_frame = ttk.Frame(self.results_notebook, padding=5)
        self.results_notebook.add(chart_frame, text="Spread Chart")

        self.fig = Figure(figsize=(7, 4), dpi=100)
        self.ax = self.fig.add_subplot(111)
        self.canvas = FigureCanvasTkAgg(self.fig, master=chart_frame)
        self.canvas.draw()
        self.canvas.get_tk_widget().pack(fill="both", expand=True)

    def _create_status_bar(self):
        """Create status bar."""
        self.status_var = tk.StringVar(value="Ready - Open a CSV file of cell measurements")
        ttk.Label(
            self.main_frame,
            textvariable=self.status_var,
            relief="sunken",
            anchor="w"
        ).grid(row=2, column=0, columnspan=2, sticky="ew", pady=(10, 0))

    # =========================================================================
    # Actions
    # =========================================================================

    def _open_csv(self):
        """Load measurements and build packs."""
        if self._optimizer is not None and self._optimizer.is_running:
            messagebox.showwarning("Optimizer Running", "Stop the optimizer before loading new data")
            return

        filepath = filedialog.askopenfilename(
            filetypes=[("CSV files", "*.csv"), ("All files", "*.*")],
            title="Open Cell Measurements"
        )
        if not filepath:
            return

        try:
            cells_per_pack = int(self.cells_per_pack_var.get())
        except ValueError:
            cells_per_pack = simpledialog.askinteger(
                "Cells per Pack", "Number of cells per pack:",
                parent=self.root, minvalue=1, initialvalue=DEFAULT_CELLS_PER_PACK
            )
            if cells_per_pack is None:
                return
            self.cells_per_pack_var.set(str(cells_per_pack))

        try:
            self._inventory = load_inventory_from_csv(filepath, cells_per_pack)
        except (PackBalancerError, OSError) as e:
            messagebox.showerror("Load Error", str(e))
            return

        self._optimizer = None
        self.file_var.set(Path(filepath).name)
        self.status_var.set(
            f"Loaded {self._inventory.total_cells()} cells into "
            f"{self._inventory.pack_count} packs"
        )
        self._refresh_display(redraw_chart=True)
        self._update_button_states()

    def _build_config(self) -> OptimizerConfig:
        """Build optimizer config from the UI values."""
        return OptimizerConfig(
            strategy=Strategy(self.strategy_var.get()),
            convergence_threshold=int(self.threshold_var.get()),
        )

    def _start(self):
        """Start the optimizer."""
        if self._inventory is None:
            return

        try:
            config = self._build_config()
            if self._optimizer is None:
                self._optimizer = PackOptimizer(
                    self._inventory, config, on_converged=self._on_converged
                )
            else:
                self._optimizer.config = config
            self._converged = False
            self._optimizer.start()
        except ValueError as e:
            messagebox.showerror("Configuration Error", str(e))
            return
        except PackBalancerError as e:
            messagebox.showerror("Error", str(e))
            return

        self.status_var.set(f"Optimizing ({config.strategy.label})...")
        self._update_button_states()
        self._cancel_poll()
        self._poll_progress()

    def _stop(self):
        """Stop the optimizer and show ranked results."""
        if self._optimizer is not None:
            self._optimizer.stop()
        self.status_var.set("Stopped")
        self._refresh_display(redraw_chart=True)
        self._update_button_states()

    def _on_converged(self):
        """Handle convergence (called from the worker thread)."""
        # Widgets are only touched from the polling loop
        self._converged = True

    def _cancel_poll(self):
        """Cancel a scheduled progress poll."""
        if self._poll_id is not None:
            self.root.after_cancel(self._poll_id)
            self._poll_id = None

    def _poll_progress(self):
        """Poll optimizer progress and update the display."""
        self._poll_id = None
        if self._optimizer is None:
            return

        progress = self._optimizer.progress
        now = time.monotonic() * 1000
        redraw = now - self._last_chart_update >= self.CHART_INTERVAL_MS
        self._refresh_display(redraw_chart=redraw)

        self.trials_var.set(
            f"{progress.trials:,} ({progress.rate_per_second:,.0f}/s)"
        )

        if self._optimizer.is_running:
            self._poll_id = self.root.after(self.POLL_INTERVAL_MS, self._poll_progress)
            return

        self._refresh_display(redraw_chart=True)
        self._update_button_states()
        if self._converged:
            self.status_var.set(
                f"Optimization complete after {progress.trials:,} trials"
            )
            messagebox.showinfo("Pack Balancer", "Optimization Complete")

    def _export_results(self):
        """Export ranked results to CSV."""
        if self._inventory is None:
            messagebox.showwarning("No Results", "No packs to export")
            return

        filepath = filedialog.asksaveasfilename(
            defaultextension=".csv",
            filetypes=[("CSV files", "*.csv"), ("All files", "*.*")],
            title="Export Results"
        )
        if not filepath:
            return

        try:
            export_results_csv(self._frozen_packs(), filepath)
            messagebox.showinfo("Export Complete", f"Results exported to:\n{filepath}")
        except OSError as e:
            messagebox.showerror("Export Error", str(e))

    # =========================================================================
    # Display
    # =========================================================================

    def _frozen_packs(self) -> List[Pack]:
        """Clones of all packs, taken in one consistent view."""
        # The worker keeps swapping cells in the live packs
        with self._inventory.lock:
            return [pack.clone() for pack in self._inventory.snapshot()]

    def _refresh_display(self, redraw_chart: bool = False):
        """Update statistics, results table and (optionally) the chart."""
        if self._inventory is None:
            return

        packs = self._frozen_packs()
        stats = summarize(packs)

        self.pack_count_var.set(str(stats.pack_count))
        self.average_var.set(format_spread(stats.average_spread))
        self.highest_var.set(format_spread(stats.max_spread))
        self.lowest_var.set(format_spread(stats.min_spread))

        self._update_results_table(packs)

        if redraw_chart:
            plot_spread_ranking(packs, ax=self.ax)
            self.fig.tight_layout()
            self.canvas.draw_idle()
            self._last_chart_update = time.monotonic() * 1000

    def _update_results_table(self, packs: List):
        """Fill the results table with ranked packs."""
        ranked = rank_by_spread(packs)
        width = max((p.cell_count for p in ranked), default=0)
        columns = ["pack"] + [f"cell_{i}" for i in range(1, width + 1)] + ["spread"]

        if list(self.results_tree["columns"]) != columns:
            self.results_tree["columns"] = columns
            self.results_tree.heading("pack", text="Pack:")
            self.results_tree.column("pack", width=60, anchor="center")
            for i in range(1, width + 1):
                self.results_tree.heading(f"cell_{i}", text=f"{i}:")
                self.results_tree.column(f"cell_{i}", width=130, anchor="w")
            self.results_tree.heading("spread", text="Spread:")
            self.results_tree.column("spread", width=80, anchor="e")

        self.results_tree.delete(*self.results_tree.get_children())
        for pack in ranked:
            values = [pack.pack_id]
            values += [cell.label() for cell in pack.cells]
            values += [""] * (width - pack.cell_count)
            values.append(format_spread(pack.spread()))
            self.results_tree.insert("", "end", values=values)

    def _update_button_states(self):
        """Enable buttons that make sense in the current state."""
        loaded = self._inventory is not None
        running = self._optimizer is not None and self._optimizer.is_running

        self.open_btn.config(state="disabled" if running else "normal")
        self.start_btn.config(state="normal" if loaded and not running else "disabled")
        self.stop_btn.config(state="normal" if running else "disabled")
        self.export_btn.config(state="normal" if loaded else "disabled")

    def _on_close(self):
        """Stop the worker before closing."""
        self._cancel_poll()
        if self._optimizer is not None:
            self._optimizer.stop()
        self.root.destroy()

    def run(self):
        """Start the UI main loop."""
        self.root.mainloop()


# =============================================================================
# Main Entry Point
# =============================================================================

def main():
    """Launch the Pack Balancer UI."""
    app = PackBalancerUI()
    app.run()


if __name__ == "__main__":
    main()
