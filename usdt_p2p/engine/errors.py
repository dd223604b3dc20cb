"""Typed errors surfaced by the search service."""

from __future__ import annotations

from typing import Any, Optional


class InvalidRequestError(ValueError):
    """A search request failed validation; the cache was not touched."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(message)


class ServiceUnavailableError(Exception):
    """No usable data for the requested direction.  Retryable.

    Attributes:
        details: Per-source error or staleness message.
    """

    retryable = True

    def __init__(
        self,
        message: str = "Service temporarily unavailable. Please try again in a moment.",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)
