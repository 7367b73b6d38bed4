"""
Pack Balancer Configuration
===========================

Contains configuration settings and default values for pack ingestion
and the balancing optimizer.

Units:
- Impedance: Ohms (displayed as mΩ)
- Spread: fraction (displayed as %)
- Time: seconds
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .errors import ConfigurationError


# =============================================================================
# Defaults
# =============================================================================

# Consecutive non-improving trials after which the optimizer stops.
# Empirical: by then further random swaps very rarely improve the metric.
DEFAULT_CONVERGENCE_THRESHOLD = 10_000

# Cells per pack for a 12-cell LiFePO4 module
DEFAULT_CELLS_PER_PACK = 12

# Minimum seconds between progress notifications (0 = every trial)
DEFAULT_PROGRESS_INTERVAL = 0.0

# Seconds stop() waits for the worker thread to finish its current trial
DEFAULT_STOP_TIMEOUT = 2.0

# Ohms -> milliohms for display
MILLIOHMS_PER_OHM = 1000.0

# CSV column names for measurement files
CSV_ADDRESS_COLUMN = "cell_id"
CSV_IMPEDANCE_COLUMN = "cell_value"


# =============================================================================
# Strategy
# =============================================================================

class Strategy(Enum):
    """Pack selection heuristic used by each trial."""
    RANDOM_PAIR = "random_pair"   # Two random packs, minimize average spread
    WORST_FIRST = "worst_first"   # Worst pack + random pack, minimize max spread

    @property
    def label(self) -> str:
        """Human-readable name used by the front ends."""
        if self is Strategy.RANDOM_PAIR:
            return "True Random"
        return "Highest Spread"

    @classmethod
    def from_name(cls, name: str) -> "Strategy":
        """Parse a strategy from its value ("random_pair") or a CLI spelling ("random-pair")."""
        key = name.strip().lower().replace("-", "_")
        for strategy in cls:
            if strategy.value == key or strategy.name.lower() == key:
                return strategy
        raise ConfigurationError(
            f"Unknown strategy '{name}', expected one of: "
            + ", ".join(s.value for s in cls)
        )


# =============================================================================
# Optimizer Configuration
# =============================================================================

@dataclass
class OptimizerConfig:
    """
    Configuration for a balancing run.

    Attributes:
    ----------
    strategy : Strategy
        Pack selection heuristic

    convergence_threshold : int
        Number of consecutive non-improving trials after which the
        optimizer stops on its own

    seed : int | None
        Seed for the optimizer's private random generator
        (None = nondeterministic)

    deadline_seconds : float | None
        Optional wall-clock limit for the whole run

    progress_interval : float
        Minimum seconds between progress callbacks (0 = every trial)
    """
    strategy: Strategy = Strategy.RANDOM_PAIR
    convergence_threshold: int = DEFAULT_CONVERGENCE_THRESHOLD
    seed: Optional[int] = None
    deadline_seconds: Optional[float] = None
    progress_interval: float = DEFAULT_PROGRESS_INTERVAL

    def validate(self) -> Tuple[bool, str]:
        """
        Validate configuration parameters.

        Returns:
        -------
        Tuple[bool, str]
            (is_valid, error_message)
        """
        errors = []

        if not isinstance(self.strategy, Strategy):
            errors.append(f"Strategy must be a Strategy, got {self.strategy!r}")
        if isinstance(self.convergence_threshold, bool) or not isinstance(self.convergence_threshold, int):
            errors.append("Convergence threshold must be an integer")
        elif self.convergence_threshold <= 0:
            errors.append("Convergence threshold must be positive")
        if self.deadline_seconds is not None and self.deadline_seconds <= 0:
            errors.append("Deadline must be positive")
        if self.progress_interval < 0:
            errors.append("Progress interval cannot be negative")

        if errors:
            return False, "; ".join(errors)
        return True, ""

    def check(self):
        """Raise ConfigurationError if the configuration is invalid."""
        is_valid, error = self.validate()
        if not is_valid:
            raise ConfigurationError(f"Invalid configuration: {error}")


def check_cells_per_pack(cells_per_pack: int):
    """Raise ConfigurationError unless cells_per_pack is a positive integer."""
    if isinstance(cells_per_pack, bool) or not isinstance(cells_per_pack, int):
        raise ConfigurationError(
            f"Cells per pack must be an integer, got {cells_per_pack!r}"
        )
    if cells_per_pack <= 0:
        raise ConfigurationError(
            f"Cells per pack must be positive, got {cells_per_pack}"
        )
