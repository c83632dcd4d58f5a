"""
Write path: body accumulation and the insert-or-update decision.

Both store.set() and the streaming sink end in WriteIngestion.commit().
A write whose body is over the size cap is dropped without an error, and
an aborted stream never touches storage.
"""

from __future__ import annotations

import sqlite3
from typing import Callable

from respcache.eviction import EvictionPolicy
from respcache.exceptions import StoreClosedError, StreamClosedError
from respcache.keys import url_for_key
from respcache.logging import get_logger
from respcache.matching import MatchEngine
from respcache.serialization import dump_mapping, value_columns
from respcache.types import CacheKey, CacheValue

logger = get_logger(__name__)


class WriteIngestion:
    """Commits finished bodies to the entries table."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        table: str,
        matcher: MatchEngine,
        eviction: EvictionPolicy,
        max_entry_size: int,
        clock: Callable[[], int],
    ) -> None:
        self._conn = conn
        self._matcher = matcher
        self._eviction = eviction
        self._clock = clock
        self.max_entry_size = max_entry_size
        self.closed = False

        self._insert_sql = f"""
            INSERT INTO {table} (
                url,
                method,
                body,
                deleteAt,
                statusCode,
                statusMessage,
                headers,
                etag,
                cacheControlDirectives,
                vary,
                cachedAt,
                staleAt
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        self._update_sql = f"""
            UPDATE {table} SET
                body = ?,
                deleteAt = ?,
                statusCode = ?,
                statusMessage = ?,
                headers = ?,
                etag = ?,
                cacheControlDirectives = ?,
                cachedAt = ?,
                staleAt = ?
            WHERE
                id = ?
        """

    def close(self) -> None:
        self.closed = True

    def commit(self, key: CacheKey, value: CacheValue, body: bytes | None) -> bool:
        """Store a finished body for a key.

        An existing row for the key (expired or not) is overwritten in place,
        keeping its id and vary rules. Otherwise the table is pruned and a new
        row is inserted.

        Args:
            key: The request identity.
            value: Response metadata.
            body: The complete body, or None for bodiless responses.

        Returns:
            True if a row was written, False if the body was over the cap.

        Raises:
            StoreClosedError: If the owning store has been closed.
        """
        if self.closed:
            raise StoreClosedError("Cache store is closed")

        size = len(body) if body is not None else 0
        if size > self.max_entry_size:
            logger.debug(
                "Dropped oversize entry",
                url=url_for_key(key),
                size=size,
                max_entry_size=self.max_entry_size,
            )
            return False

        now = self._clock()
        url = url_for_key(key)
        columns = value_columns(value)
        vary = dump_mapping(value.vary)
        blob = bytes(body) if body is not None else None
        shared = (
            blob,
            columns["deleteAt"],
            columns["statusCode"],
            columns["statusMessage"],
            columns["headers"],
            columns["etag"],
            columns["cacheControlDirectives"],
        )
        times = (columns["cachedAt"], columns["staleAt"])

        # Lookup, prune and write commit together or roll back together
        with self._conn:
            existing = self._matcher.find(key, now, allow_expired=True)
            if existing is not None:
                self._conn.execute(self._update_sql, (*shared, *times, existing.id))
                row_id = existing.id
            else:
                self._eviction.prune(now)
                cursor = self._conn.execute(
                    self._insert_sql, (url, key.method, *shared, vary, *times)
                )
                row_id = cursor.lastrowid

        logger.debug(
            "Updated entry" if existing is not None else "Inserted entry",
            id=row_id,
            url=url,
            size=size,
        )
        return True


class CacheWriteStream:
    """Sink that buffers a streamed response body.

    Chunks are held in memory until close(). Once the running byte count
    reaches the ingestion's max_entry_size the stream aborts and nothing is
    written for this attempt.

    Usage:
        with store.create_write_stream(key, value) as stream:
            for chunk in response:
                stream.write(chunk)
    """

    def __init__(self, ingestion: WriteIngestion, key: CacheKey, value: CacheValue) -> None:
        self._ingestion = ingestion
        self._key = key
        self._value = value
        self._chunks: list[bytes] = []
        self._size = 0
        self._aborted = False
        self._finished = False
        self._written = False

    @property
    def bytes_written(self) -> int:
        """Bytes received so far, including any that caused an abort."""
        return self._size

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def closed(self) -> bool:
        return self._aborted or self._finished

    def write(self, chunk: bytes | bytearray | memoryview | str, encoding: str = "utf-8") -> int:
        """Append a chunk to the body.

        Args:
            chunk: Body bytes; str chunks are encoded with `encoding`.
            encoding: Encoding for str chunks.

        Returns:
            Number of bytes accepted (0 once the stream is aborted).

        Raises:
            StreamClosedError: If the stream has already been finished.
            TypeError: If the chunk is neither bytes-like nor str.
        """
        if self._finished:
            raise StreamClosedError(
                "Write stream already finished",
                context={"url": url_for_key(self._key)},
            )
        if self._aborted:
            return 0

        if isinstance(chunk, str):
            data = chunk.encode(encoding)
        elif isinstance(chunk, (bytes, bytearray, memoryview)):
            data = bytes(chunk)
        else:
            raise TypeError(f"expected bytes-like or str chunk, got {type(chunk).__name__}")

        self._size += len(data)
        if self._size < self._ingestion.max_entry_size:
            self._chunks.append(data)
            return len(data)

        logger.debug(
            "Aborted write stream over size cap",
            url=url_for_key(self._key),
            size=self._size,
            max_entry_size=self._ingestion.max_entry_size,
        )
        self.abort()
        return 0

    def abort(self) -> None:
        """Discard the buffered body without writing anything."""
        self._aborted = True
        self._chunks.clear()

    def close(self) -> bool:
        """Finish the stream and commit the body.

        Calling close() again, or after abort(), does nothing.

        Returns:
            True if a row was inserted or updated.
        """
        if self.closed:
            return self._written

        self._finished = True
        body = b"".join(self._chunks)
        self._chunks.clear()
        self._written = self._ingestion.commit(self._key, self._value, body)
        return self._written

    def __enter__(self) -> CacheWriteStream:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.abort()
        else:
            self.close()
