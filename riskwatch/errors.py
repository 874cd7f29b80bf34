"""
Error taxonomy for the risk evaluation pipeline.

Expected failures are returned as ``Result.err(...)`` values carrying one of
these exceptions; they are only raised where a caller unwraps a result.
"""


class RiskWatchError(Exception):
    """Base class for all expected pipeline failures."""


class InvalidReading(RiskWatchError):
    """A reading cannot be scored, e.g. an unsplittable blood-pressure field."""


class StorageUnavailable(RiskWatchError):
    """A store call failed. Reads may be retried, writes are surfaced."""

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Storage operation '{operation}' failed{detail}")


class NotFound(RiskWatchError):
    """A lookup that must succeed found nothing (patient mapping, owned alert)."""


class AccessDenied(RiskWatchError):
    """The request context lacks the capability required for an operation."""
