"""
Custom exception hierarchy for the response cache store.

All exceptions inherit from CacheStoreError, which provides optional context
for structured error handling and logging. Errors raised by the SQLite
engine itself are not wrapped and reach the caller unchanged.
"""

from __future__ import annotations

from typing import Any


class CacheStoreError(Exception):
    """Base exception for all cache store errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ValidationError(CacheStoreError, TypeError):
    """Raised when a cache key or value has the wrong shape.

    Context should include:
        - field: The offending field (e.g., "key.origin")
        - expected: Description of what was expected
        - got: Name of the type that was received
    """

    pass


class ConfigurationError(CacheStoreError, ValueError):
    """Raised when store options are invalid.

    Examples:
        - Negative max_count
        - Non-integer max_entry_size
        - Unknown journal mode
    """

    pass


class StoreClosedError(CacheStoreError):
    """Raised when an operation is attempted on a closed store."""

    pass


class StreamClosedError(CacheStoreError):
    """Raised when writing to a write stream that has already finished."""

    pass
