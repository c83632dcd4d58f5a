"""
Capacity-bounded eviction.

Runs before a brand-new row is inserted (never before an in-place update).
Expired rows are removed first; only when none are expired is a slice of
the table removed, selected by cachedAt descending.
"""

from __future__ import annotations

import math
import sqlite3

from respcache.logging import get_logger

logger = get_logger(__name__)

# Share of max_count removed when nothing has expired
EVICTION_FRACTION = 0.1


class EvictionPolicy:
    """Keeps the entries table within max_count rows."""

    def __init__(self, conn: sqlite3.Connection, table: str, max_count: float) -> None:
        self._conn = conn
        self._table = table
        self.max_count = max_count

        self._count_sql = f"SELECT COUNT(*) AS total FROM {table}"
        self._delete_expired_sql = f"DELETE FROM {table} WHERE deleteAt <= ?"

        # Unbounded stores never bulk-delete
        self._delete_newest_sql: str | None = None
        if not math.isinf(max_count):
            self._delete_newest_sql = f"""
                DELETE FROM {table}
                WHERE id IN (
                    SELECT
                        id
                    FROM {table}
                    ORDER BY cachedAt DESC
                    LIMIT ?
                )
            """

    @property
    def batch_size(self) -> int:
        """Rows removed by one bulk delete."""
        if math.isinf(self.max_count):
            return 0
        return max(math.floor(self.max_count * EVICTION_FRACTION), 1)

    def count(self) -> int:
        """Total rows, expired or not."""
        row = self._conn.execute(self._count_sql).fetchone()
        return row[0] if row else 0

    def delete_expired(self, now: int) -> int:
        """Delete every row whose deleteAt has passed.

        Returns:
            Number of rows removed.
        """
        return self._conn.execute(self._delete_expired_sql, (now,)).rowcount

    def prune(self, now: int) -> int:
        """Make room for one more row.

        Args:
            now: Current time in milliseconds.

        Returns:
            Number of rows removed (0 when the table has room).
        """
        total = self.count()
        # Counts the row about to be inserted
        if total + 1 <= self.max_count:
            return 0

        removed = self.delete_expired(now)
        if removed > 0:
            logger.info("Pruned expired entries", removed=removed, total=total)
            return removed

        if self._delete_newest_sql is not None:
            removed = self._conn.execute(self._delete_newest_sql, (self.batch_size,)).rowcount
            if removed > 0:
                logger.info("Pruned entries over capacity", removed=removed, total=total)
                return removed

        return 0
