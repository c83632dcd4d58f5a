"""
Serialization between cache values and table rows.

Header, vary and cache-control mappings are stored as JSON text (orjson);
bodies are stored as raw BLOBs.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Mapping

import orjson

from respcache.types import CacheValue, StoredEntry


def dump_mapping(mapping: Mapping[str, Any] | None) -> str | None:
    """Serialize a mapping to JSON text, or None when absent."""
    if mapping is None:
        return None
    return orjson.dumps(dict(mapping)).decode("utf-8")


def load_mapping(text: str | bytes | None) -> dict[str, Any] | None:
    """Parse JSON text back into a dict."""
    if text is None:
        return None
    return orjson.loads(text)


def row_to_entry(row: sqlite3.Row) -> StoredEntry:
    """Convert a database row to a StoredEntry."""
    body = row["body"]
    return StoredEntry(
        id=row["id"],
        url=row["url"],
        method=row["method"],
        body=bytes(body) if body is not None else None,
        status_code=row["statusCode"],
        status_message=row["statusMessage"],
        headers=row["headers"],
        etag=row["etag"],
        vary=row["vary"],
        cache_control_directives=row["cacheControlDirectives"],
        cached_at=row["cachedAt"],
        stale_at=row["staleAt"],
        delete_at=row["deleteAt"],
    )


def entry_to_value(entry: StoredEntry) -> CacheValue:
    """Rebuild the caller-facing value from a stored entry."""
    return CacheValue(
        status_code=entry.status_code,
        status_message=entry.status_message,
        cached_at=entry.cached_at,
        stale_at=entry.stale_at,
        delete_at=entry.delete_at,
        headers=load_mapping(entry.headers),
        vary=load_mapping(entry.vary),
        etag=entry.etag,
        cache_control_directives=load_mapping(entry.cache_control_directives),
        body=entry.body,
    )


def value_columns(value: CacheValue) -> dict[str, Any]:
    """Column values shared by INSERT and UPDATE, keyed by column name.

    vary is not included: it is only written when a row is first inserted.
    """
    return {
        "deleteAt": value.delete_at,
        "statusCode": value.status_code,
        "statusMessage": value.status_message,
        "headers": dump_mapping(value.headers),
        "etag": value.etag or None,
        "cacheControlDirectives": dump_mapping(value.cache_control_directives),
        "cachedAt": value.cached_at,
        "staleAt": value.stale_at,
    }
