"""
Selection of the stored entry that satisfies a request.

Several rows can share a (url, method) pair, one per vary-qualified
variant. Candidates are examined in ascending deleteAt order and the first
one whose vary rules the request satisfies wins.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Mapping

from respcache.keys import url_for_key
from respcache.serialization import load_mapping, row_to_entry
from respcache.types import CacheKey, StoredEntry

_MISSING = object()


def header_value_equals(actual: Any, expected: Any) -> bool:
    """Compare a request header value against a stored vary rule value.

    Scalars compare with ==. When both sides are lists they must have the
    same length and, beyond that, no element of the request's list may
    appear in the rule's list: two lists are "equal" only when they are
    disjoint. A header missing from the request never equals anything.
    """
    if actual is _MISSING:
        return False

    if isinstance(actual, (list, tuple)) and isinstance(expected, (list, tuple)):
        if len(actual) != len(expected):
            return False

        for item in actual:
            if item in expected:
                return False

        return True

    return actual == expected


def vary_matches(headers: Mapping[str, Any], rules: Mapping[str, Any]) -> bool:
    """Check that request headers satisfy every vary rule."""
    for name, expected in rules.items():
        if not header_value_equals(headers.get(name, _MISSING), expected):
            return False
    return True


class MatchEngine:
    """Finds the entry that answers a cache key."""

    def __init__(self, conn: sqlite3.Connection, table: str) -> None:
        self._conn = conn
        self._table = table
        self._select_sql = f"""
            SELECT
                id,
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
            FROM {table}
            WHERE
                url = ?
                AND method = ?
            ORDER BY
                deleteAt ASC
        """

    def candidates(self, key: CacheKey) -> list[StoredEntry]:
        """All rows for the key's url and method, soonest-to-expire first."""
        cursor = self._conn.execute(self._select_sql, (url_for_key(key), key.method))
        return [row_to_entry(row) for row in cursor.fetchall()]

    def find(
        self,
        key: CacheKey,
        now: int,
        allow_expired: bool = False,
    ) -> StoredEntry | None:
        """Find the entry that satisfies the key.

        Args:
            key: The request identity.
            now: Current time in milliseconds.
            allow_expired: Whether rows past their deleteAt are eligible.

        Returns:
            The matching entry, or None.
        """
        headers = key.headers

        for entry in self.candidates(key):
            # Ordered by deleteAt, so an expired front row ends the search
            if now >= entry.delete_at and not allow_expired:
                return None

            if entry.vary is None:
                return entry

            if headers is None:
                return None

            rules = load_mapping(entry.vary) or {}
            if vary_matches(headers, rules):
                return entry

        return None
