"""
SqliteCacheStore: persistent storage backend for an HTTP response cache.

Entries are keyed by origin + "/" + path and method, with one row per
vary-qualified variant. All calls are synchronous and single-writer: the
lookup-then-write and count-then-delete sequences are separate statements,
so two processes writing the same database can race.
"""

from __future__ import annotations

import math
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, get_args

from respcache.config import MAX_ENTRY_SIZE, MEMORY_LOCATION, JournalMode
from respcache.eviction import EvictionPolicy
from respcache.exceptions import ConfigurationError, StoreClosedError
from respcache.ingestion import CacheWriteStream, WriteIngestion
from respcache.keys import url_for_key
from respcache.logging import get_logger
from respcache.matching import MatchEngine
from respcache.schema import ensure_schema, set_journal_mode
from respcache.serialization import entry_to_value
from respcache.types import CacheKey, CacheValue, now_ms
from respcache.validation import assert_cache_key, assert_cache_value

if TYPE_CHECKING:
    from respcache.config import Settings

logger = get_logger(__name__)

_JOURNAL_MODES = frozenset(get_args(JournalMode))


def _check_max_count(max_count: Any) -> float:
    if max_count is None:
        return math.inf
    if isinstance(max_count, bool) or not isinstance(max_count, (int, float)):
        raise ConfigurationError(
            "max_count must be a number",
            context={"max_count": max_count},
        )
    if math.isnan(max_count) or max_count < 0:
        raise ConfigurationError(
            "max_count must be non-negative",
            context={"max_count": max_count},
        )
    return max_count


def _check_max_entry_size(max_entry_size: Any) -> int:
    if isinstance(max_entry_size, bool) or not isinstance(max_entry_size, int):
        raise ConfigurationError(
            "max_entry_size must be an integer",
            context={"max_entry_size": max_entry_size},
        )
    if max_entry_size < 0:
        raise ConfigurationError(
            "max_entry_size must be non-negative",
            context={"max_entry_size": max_entry_size},
        )
    return max_entry_size


class SqliteCacheStore:
    """SQLite-backed store for cached HTTP responses.

    Owns its connection exclusively. Not safe to share between threads.
    """

    def __init__(
        self,
        location: str | Path = MEMORY_LOCATION,
        max_count: float | None = math.inf,
        max_entry_size: int = MAX_ENTRY_SIZE,
        loose: bool = False,
        journal_mode: str = "WAL",
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Open (or create) a cache store.

        Args:
            location: Path to the SQLite file, or ":memory:".
            max_count: Row count bound that triggers eviction; None or
                math.inf means unbounded.
            max_entry_size: Bodies larger than this many bytes are dropped.
            loose: Skip shape validation of keys and values.
            journal_mode: SQLite journal mode to apply.
            clock: Returns the current time in milliseconds.

        Raises:
            ConfigurationError: If an option is invalid.
        """
        self.max_count = _check_max_count(max_count)
        self.max_entry_size = _check_max_entry_size(max_entry_size)
        self.loose = loose
        self._clock = clock

        mode = str(journal_mode).upper()
        if mode not in _JOURNAL_MODES:
            raise ConfigurationError(
                "Unknown journal mode",
                context={"journal_mode": journal_mode, "allowed": sorted(_JOURNAL_MODES)},
            )

        self.location = str(location)
        if self.location != MEMORY_LOCATION:
            Path(self.location).parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = sqlite3.connect(
            self.location,
            timeout=30.0,
            isolation_level="DEFERRED",
        )
        self._conn.row_factory = sqlite3.Row

        self.journal_mode = set_journal_mode(self._conn, mode)
        self.table = ensure_schema(self._conn)

        self._matcher = MatchEngine(self._conn, self.table)
        self._eviction = EvictionPolicy(self._conn, self.table, self.max_count)
        self._ingestion = WriteIngestion(
            self._conn,
            self.table,
            self._matcher,
            self._eviction,
            self.max_entry_size,
            self._clock,
        )

        logger.info(
            "Cache store opened",
            location=self.location,
            table=self.table,
            journal_mode=self.journal_mode,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> SqliteCacheStore:
        """Create a store from environment settings.

        Keyword overrides take precedence over the settings values.
        """
        options: dict[str, Any] = {
            "location": settings.CACHE_LOCATION,
            "max_count": settings.max_count,
            "max_entry_size": settings.CACHE_MAX_ENTRY_SIZE,
            "loose": settings.CACHE_LOOSE,
            "journal_mode": settings.CACHE_JOURNAL_MODE,
        }
        options.update(overrides)
        return cls(**options)

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreClosedError("Cache store is closed", context={"location": self.location})
        return self._conn

    @property
    def closed(self) -> bool:
        return self._conn is None

    def close(self) -> None:
        """Close the database connection. Further operations raise StoreClosedError."""
        if self._conn is not None:
            self._ingestion.close()
            self._conn.close()
            self._conn = None
            logger.info("Cache store closed", location=self.location)

    def __enter__(self) -> SqliteCacheStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get(self, key: CacheKey) -> CacheValue | None:
        """Look up the response for a request.

        Args:
            key: The request identity.

        Returns:
            The stored value, or None if nothing fresh matches.
        """
        if not self.loose:
            assert_cache_key(key)
        self._get_conn()

        entry = self._matcher.find(key, self._clock())
        if entry is None:
            return None

        return entry_to_value(entry)

    def set(self, key: CacheKey, value: CacheValue) -> bool:
        """Store a response whose body is already complete.

        Bodies over max_entry_size are silently dropped.

        Returns:
            True if a row was inserted or updated.
        """
        if not self.loose:
            assert_cache_key(key)
            assert_cache_value(value)
        self._get_conn()

        return self._ingestion.commit(key, value, value.body)

    def create_write_stream(self, key: CacheKey, value: CacheValue) -> CacheWriteStream:
        """Open a sink for a streamed response body.

        value.body is ignored; the body is whatever is written to the sink.
        The row is written when the sink is closed.
        """
        if not self.loose:
            assert_cache_key(key)
            assert_cache_value(value, check_body=False)
        self._get_conn()

        return CacheWriteStream(self._ingestion, key, value)

    def delete(self, key: CacheKey) -> int:
        """Remove every row for the key's url, across all methods and variants.

        Returns:
            Number of rows removed.
        """
        if not self.loose:
            assert_cache_key(key)
        conn = self._get_conn()

        url = url_for_key(key)
        with conn:
            removed = conn.execute(f"DELETE FROM {self.table} WHERE url = ?", (url,)).rowcount
        logger.debug("Deleted entries", url=url, removed=removed)
        return removed

    @property
    def size(self) -> int:
        """Total number of rows, including expired rows not yet pruned."""
        self._get_conn()
        return self._eviction.count()

    def prune(self) -> int:
        """Run capacity eviction now, as if a new row were about to be inserted.

        Returns:
            Number of rows removed.
        """
        conn = self._get_conn()
        with conn:
            removed = self._eviction.prune(self._clock())
        return removed

    def delete_expired(self) -> int:
        """Remove every row past its deleteAt, regardless of capacity.

        Returns:
            Number of rows removed.
        """
        conn = self._get_conn()
        with conn:
            removed = self._eviction.delete_expired(self._clock())
        logger.info("Deleted expired entries", removed=removed)
        return removed

    def stats(self) -> dict[str, Any]:
        """Get statistics about stored entries.

        Returns:
            Dict with totals, expired count and counts by method.
        """
        conn = self._get_conn()
        stats: dict[str, Any] = {
            "location": self.location,
            "table": self.table,
            "journal_mode": self.journal_mode,
            "max_count": self.max_count,
            "max_entry_size": self.max_entry_size,
        }

        stats["total"] = self._eviction.count()

        row = conn.execute(
            f"SELECT COUNT(*) FROM {self.table} WHERE deleteAt <= ?",
            (self._clock(),),
        ).fetchone()
        stats["expired"] = row[0] if row else 0

        rows = conn.execute(
            f"SELECT method, COUNT(*) FROM {self.table} GROUP BY method ORDER BY method"
        ).fetchall()
        stats["by_method"] = {r[0]: r[1] for r in rows}

        return stats
