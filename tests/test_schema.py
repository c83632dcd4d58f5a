"""
Tests for schema creation.
"""

from __future__ import annotations

import sqlite3

from respcache.schema import SCHEMA_VERSION, ensure_schema, table_name


def _index_names(conn: sqlite3.Connection, table: str) -> set[str]:
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = ?",
        (table,),
    ).fetchall()
    return {row[0] for row in rows}


class TestSchema:
    """Test ensure_schema."""

    def test_table_name_embeds_version(self) -> None:
        """Test the versioned table name."""
        assert table_name() == f"entries_v{SCHEMA_VERSION}"
        assert table_name(7) == "entries_v7"

    def test_creates_table_and_indexes(self) -> None:
        """Test that the table and its three indexes exist."""
        conn = sqlite3.connect(":memory:")
        table = ensure_schema(conn)

        columns = [row[1] for row in conn.execute(f"PRAGMA table_info({table})")]
        assert columns == [
            "id",
            "url",
            "method",
            "body",
            "deleteAt",
            "statusCode",
            "statusMessage",
            "headers",
            "cacheControlDirectives",
            "etag",
            "vary",
            "cachedAt",
            "staleAt",
        ]
        assert _index_names(conn, table) == {
            f"idx_{table}_url",
            f"idx_{table}_method",
            f"idx_{table}_deleteAt",
        }
        conn.close()

    def test_idempotent(self) -> None:
        """Test that running twice keeps existing rows."""
        conn = sqlite3.connect(":memory:")
        table = ensure_schema(conn)
        conn.execute(
            f"INSERT INTO {table} (url, method, deleteAt, statusCode, statusMessage, cachedAt, staleAt)"
            " VALUES ('a/b', 'GET', 1, 200, 'OK', 0, 0)"
        )
        conn.commit()

        ensure_schema(conn)

        assert conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0] == 1
        conn.close()

    def test_version_bump_uses_disjoint_table(self) -> None:
        """Test that a new version neither migrates nor drops old rows."""
        conn = sqlite3.connect(":memory:")
        old = ensure_schema(conn, version=2)
        conn.execute(
            f"INSERT INTO {old} (url, method, deleteAt, statusCode, statusMessage, cachedAt, staleAt)"
            " VALUES ('a/b', 'GET', 1, 200, 'OK', 0, 0)"
        )
        conn.commit()

        new = ensure_schema(conn, version=3)

        assert new != old
        assert conn.execute(f"SELECT COUNT(*) FROM {new}").fetchone()[0] == 0
        assert conn.execute(f"SELECT COUNT(*) FROM {old}").fetchone()[0] == 1
        conn.close()
