"""Analytics core error taxonomy.

Each error kind is distinguishable by type so the HTTP layer can map it to a
response without inspecting messages.
"""

from typing import Any


class AnalyticsError(Exception):
    """Base class for analytics core errors."""


class ValidationError(AnalyticsError):
    """A batch or argument is malformed. Nothing was written."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class StorageUnavailableError(AnalyticsError):
    """The underlying store could not be reached."""


class NotFoundError(AnalyticsError):
    """A specific, known entity does not exist.

    Reserved for lookups by id. Absent data in a window is an empty result and
    deleting an unknown heatmap page is a no-op, so neither raises this.
    """


class QueryTimeoutError(AnalyticsError):
    """A query exceeded its caller-supplied deadline."""

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(f"{operation} exceeded timeout of {timeout}s")
        self.operation = operation
        self.timeout = timeout
