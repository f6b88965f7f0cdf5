"""
Exception hierarchy for the job harvester.

Per-source failures are carried on CycleResult objects and never escape a
cycle; only the cycle-level conditions below are raised to callers.
"""
from typing import Optional


class HarvesterError(Exception):
    """Base class for all harvester errors."""


class ConfigurationError(HarvesterError):
    """Invalid or incomplete configuration."""


class NoEnabledSourcesError(ConfigurationError):
    """Raised when a cycle is started with zero enabled sources."""

    def __init__(self, message: str = "no enabled sources found"):
        super().__init__(message)


class CycleInProgressError(HarvesterError):
    """Raised when a cycle is requested while another one is still running."""


class CycleCancelledError(HarvesterError):
    """The cancellation signal fired at a suspension point."""

    def __init__(self, message: str = "ingestion cycle cancelled", source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class AdmissionCancelledError(CycleCancelledError):
    """Cancellation observed while waiting for a rate-limit token."""


class SourceFetchError(HarvesterError):
    """A source adapter failed to fetch or parse its listings."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class PersistenceError(HarvesterError):
    """The storage backend rejected a write."""
