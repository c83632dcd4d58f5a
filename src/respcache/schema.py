"""
Schema management for the entries table.

The schema version is part of the table name. Bumping SCHEMA_VERSION makes
the store use a fresh, disjoint table; rows written under an older version
are left in place but are never read again.
"""

from __future__ import annotations

import sqlite3

SCHEMA_VERSION = 3

TABLE_PREFIX = "entries_v"


def table_name(version: int = SCHEMA_VERSION) -> str:
    """Get the entries table name for a schema version."""
    return f"{TABLE_PREFIX}{version}"


def ensure_schema(conn: sqlite3.Connection, version: int = SCHEMA_VERSION) -> str:
    """Create the entries table and its indexes if they don't exist.

    Safe to call on every construction.

    Args:
        conn: Open SQLite connection.
        version: Schema version to create.

    Returns:
        Name of the entries table.
    """
    table = table_name(version)
    cursor = conn.cursor()

    cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS {table} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            url TEXT NOT NULL,
            method TEXT NOT NULL,

            body BLOB NULL,
            deleteAt INTEGER NOT NULL,
            statusCode INTEGER NOT NULL,
            statusMessage TEXT NOT NULL,
            headers TEXT NULL,
            cacheControlDirectives TEXT NULL,
            etag TEXT NULL,
            vary TEXT NULL,
            cachedAt INTEGER NOT NULL,
            staleAt INTEGER NOT NULL
        )
    """)

    # Lookups filter on url + method; eviction scans deleteAt
    cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_url ON {table}(url)")
    cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_method ON {table}(method)")
    cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_deleteAt ON {table}(deleteAt)")

    conn.commit()
    return table


def set_journal_mode(conn: sqlite3.Connection, mode: str) -> str:
    """Apply a journal mode and return the mode SQLite actually selected.

    In-memory databases always report "memory".
    """
    row = conn.execute(f"PRAGMA journal_mode={mode}").fetchone()
    return str(row[0]).lower() if row else mode.lower()
