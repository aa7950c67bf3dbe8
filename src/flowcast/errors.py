"""
Error taxonomy for the forecast core.

Only DataError is raised inside the engine, and it is caught per record.
RefreshFailure and PersistenceFailure describe failures that the
orchestrator and cache report instead of propagating.
"""


class FlowcastError(Exception):
    """Base class for all forecast-core errors."""


class DataError(FlowcastError):
    """A sales record is malformed or missing required fields."""

    def __init__(self, message: str, record=None):
        super().__init__(message)
        self.record = record


class RefreshFailure(FlowcastError):
    """A recompute operation failed for a cache key."""

    def __init__(self, key, cause: BaseException):
        super().__init__(f"Recompute failed for {key}: {cause}")
        self.key = key
        self.cause = cause


class PersistenceFailure(FlowcastError):
    """Reading or writing the cache's backing store failed."""
