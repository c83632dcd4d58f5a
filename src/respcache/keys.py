"""Canonical lookup keys for stored entries."""

from __future__ import annotations

from respcache.types import CacheKey


def canonical_url(origin: str, path: str) -> str:
    """Join origin and path into the url column value.

    No normalization is applied: case, trailing slashes and query strings
    are kept exactly as supplied.
    """
    return f"{origin}/{path}"


def url_for_key(key: CacheKey) -> str:
    """Get the canonical url for a cache key."""
    return canonical_url(key.origin, key.path)
