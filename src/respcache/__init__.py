"""
respcache - SQLite storage backend for an HTTP response cache.

Stores captured responses keyed by origin, path and method, with one row per
Vary-qualified variant, under a row-count bound and a per-entry size cap.
"""

from respcache.config import MAX_ENTRY_SIZE
from respcache.exceptions import (
    CacheStoreError,
    ConfigurationError,
    StoreClosedError,
    StreamClosedError,
    ValidationError,
)
from respcache.ingestion import CacheWriteStream
from respcache.store import SqliteCacheStore
from respcache.types import CacheKey, CacheValue

__all__ = [
    "SqliteCacheStore",
    "CacheWriteStream",
    "CacheKey",
    "CacheValue",
    "MAX_ENTRY_SIZE",
    "CacheStoreError",
    "ConfigurationError",
    "StoreClosedError",
    "StreamClosedError",
    "ValidationError",
]

__version__ = "0.1.0"
