"""
Core types for the response cache store.

This module defines the data structures exchanged with the HTTP cache
interceptor and the shape of a persisted row:
- CacheKey: request identity used for lookups (never persisted)
- CacheValue: captured response, both written and returned by the store
- StoredEntry: a row as read back from the entries table
- Helpers for timestamps
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Mapping, Union

HeaderValue = Union[str, list[str], None]
Headers = Mapping[str, HeaderValue]


def now_ms() -> int:
    """Get the current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def _pick(data: Mapping[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    """Read a field from an interceptor-style mapping, accepting either casing."""
    if snake in data:
        return data[snake]
    return data.get(camel, default)


@dataclass(frozen=True)
class CacheKey:
    """Identity of a request as seen by the cache interceptor.

    Only origin, path and method are used to select rows; headers are
    consulted when a stored entry carries vary rules.
    """

    origin: str
    method: str
    path: str
    headers: Headers | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CacheKey:
        """Build a key from a plain mapping.

        Missing fields are passed through as None so that shape validation,
        not the constructor, reports them.
        """
        return cls(
            origin=data.get("origin"),  # type: ignore[arg-type]
            method=data.get("method"),  # type: ignore[arg-type]
            path=data.get("path"),  # type: ignore[arg-type]
            headers=data.get("headers"),
        )


@dataclass(frozen=True)
class CacheValue:
    """A captured response.

    Timestamps are milliseconds since the epoch and are supplied by the
    caller; the store only ever compares delete_at against the clock.
    """

    status_code: int
    status_message: str
    cached_at: int
    stale_at: int
    delete_at: int
    headers: Headers | None = None
    vary: Headers | None = None
    etag: str | None = None
    cache_control_directives: Mapping[str, Any] | None = None
    body: bytes | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CacheValue:
        """Build a value from a plain mapping (snake_case or camelCase keys)."""
        return cls(
            status_code=_pick(data, "status_code", "statusCode"),
            status_message=_pick(data, "status_message", "statusMessage"),
            cached_at=_pick(data, "cached_at", "cachedAt"),
            stale_at=_pick(data, "stale_at", "staleAt"),
            delete_at=_pick(data, "delete_at", "deleteAt"),
            headers=data.get("headers"),
            vary=data.get("vary"),
            etag=data.get("etag"),
            cache_control_directives=_pick(
                data, "cache_control_directives", "cacheControlDirectives"
            ),
            body=data.get("body"),
        )


@dataclass(frozen=True)
class StoredEntry:
    """A persisted row from the entries table.

    headers, vary and cache_control_directives are still in their
    serialized (JSON text) form.
    """

    id: int
    url: str
    method: str
    body: bytes | None
    status_code: int
    status_message: str
    headers: str | None
    etag: str | None
    vary: str | None
    cache_control_directives: str | None
    cached_at: int
    stale_at: int
    delete_at: int
