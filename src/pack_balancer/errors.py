"""
Pack Balancer Errors
====================

Exception types raised by ingestion and the optimizer.

Fatal errors (raised synchronously to the caller):
- InvalidPartition: cell count not divisible by the pack size
- InsufficientPacks: fewer than two packs to swap between
- ConfigurationError: invalid optimizer or ingestion settings
- IngestionError: unreadable or malformed measurement data
- OptimizerBusy: start() called while the optimizer is running

Recovered errors:
- TrialFailure: a single swap trial failed; it is rolled back and logged
"""


class PackBalancerError(Exception):
    """Base class for all pack balancer errors."""


class InvalidPartition(PackBalancerError, ValueError):
    """Cell count cannot be split evenly into packs of the requested size."""

    def __init__(self, cell_count: int, cells_per_pack: int):
        self.cell_count = cell_count
        self.cells_per_pack = cells_per_pack
        super().__init__(
            f"The number of cells provided ({cell_count}) is not divisible "
            f"by the specified pack size ({cells_per_pack})"
        )


class InsufficientPacks(PackBalancerError, ValueError):
    """The inventory holds fewer than two packs."""

    def __init__(self, pack_count: int):
        self.pack_count = pack_count
        super().__init__(
            f"At least 2 packs are required to optimize, got {pack_count}"
        )


class ConfigurationError(PackBalancerError, ValueError):
    """Invalid configuration value."""


class IngestionError(PackBalancerError, ValueError):
    """Measurement data could not be turned into cells."""


class OptimizerBusy(PackBalancerError, RuntimeError):
    """The optimizer is already running."""


class TrialFailure(PackBalancerError, RuntimeError):
    """A single trial failed and was rolled back."""

    def __init__(self, trial: int, cause: BaseException):
        self.trial = trial
        self.cause = cause
        super().__init__(f"Trial {trial} failed: {cause!r}")
