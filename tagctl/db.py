"""
Tag Database — SQLite Persistent Backend

Tables:
    tag          - Tag vocabulary (unique names)
    value        - Value vocabulary (unique names, shared across tags)
    file         - Tracked files (directory stored root-relative)
    file_tag     - Tag assignments (value_id 0 = tag only)
    implication  - Tag/value implication rules
    schema_meta  - Schema metadata

Every operation runs against a Tx obtained from Database.transaction(); the
caller owns commit/rollback. No locking is done here, isolation is SQLite's.

Author: tagctl developers
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS tag (
    id   INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    CONSTRAINT con_tag_name UNIQUE (name)
);

CREATE TABLE IF NOT EXISTS value (
    id   INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    CONSTRAINT con_value_name UNIQUE (name)
);

CREATE TABLE IF NOT EXISTS file (
    id          INTEGER PRIMARY KEY,
    directory   TEXT NOT NULL,
    name        TEXT NOT NULL,
    fingerprint TEXT NOT NULL DEFAULT '',
    mod_time    TEXT NOT NULL,
    size        INTEGER NOT NULL DEFAULT 0,
    is_dir      INTEGER NOT NULL DEFAULT 0,
    CONSTRAINT con_file_path UNIQUE (directory, name)
);

CREATE TABLE IF NOT EXISTS file_tag (
    file_id  INTEGER NOT NULL,
    tag_id   INTEGER NOT NULL,
    value_id INTEGER NOT NULL DEFAULT 0,  -- 0 = tag only
    PRIMARY KEY (file_id, tag_id, value_id),
    FOREIGN KEY (file_id) REFERENCES file(id),
    FOREIGN KEY (tag_id) REFERENCES tag(id)
);

CREATE TABLE IF NOT EXISTS implication (
    tag_id           INTEGER NOT NULL,
    value_id         INTEGER NOT NULL DEFAULT 0,
    implied_tag_id   INTEGER NOT NULL,
    implied_value_id INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (tag_id, value_id, implied_tag_id, implied_value_id)
);

-- Schema metadata for forward compatibility
CREATE TABLE IF NOT EXISTS schema_meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_file_fingerprint ON file(fingerprint);
CREATE INDEX IF NOT EXISTS idx_file_directory ON file(directory);
CREATE INDEX IF NOT EXISTS idx_file_tag_file ON file_tag(file_id);
CREATE INDEX IF NOT EXISTS idx_file_tag_tag ON file_tag(tag_id);
CREATE INDEX IF NOT EXISTS idx_file_tag_value ON file_tag(value_id);
CREATE INDEX IF NOT EXISTS idx_implication_implied
    ON implication(implied_tag_id, implied_value_id);
"""


# ---------------------------------------------------------------------------
# Transaction handle
# ---------------------------------------------------------------------------

class Tx:
    """
    Transaction handle passed explicitly to every storage operation.

    Thin wrapper over the connection: ``execute`` for statements whose row
    count matters, ``query``/``query_one`` for reads.
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Run a statement; the cursor exposes rowcount and lastrowid."""
        return self._conn.execute(sql, tuple(params))

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        """Run a SELECT and return all rows."""
        return self._conn.execute(sql, tuple(params)).fetchall()

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        """Run a SELECT and return the first row, or None."""
        return self._conn.execute(sql, tuple(params)).fetchone()

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

class Database:
    """SQLite-backed tag database."""

    def __init__(self, db_path: str = ":memory:", wal_mode: bool = True):
        """Open (and create if needed) the database at *db_path*.

        Args:
            db_path: SQLite database path (or ":memory:" for in-memory).
            wal_mode: Enable WAL journal mode for concurrent readers.
        """
        self._db_path = db_path
        # Auto-create parent directory for disk-backed databases.
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        if wal_mode and db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA_SQL)
        self._conn.execute(
            "INSERT OR IGNORE INTO schema_meta (key, value) VALUES ('schema_version', ?)",
            (str(SCHEMA_VERSION),),
        )
        self._conn.execute(
            "INSERT OR IGNORE INTO schema_meta (key, value) VALUES ('created_by', 'tagctl')",
        )
        self._conn.commit()
        logger.info("Tag database opened: %s (schema v%d)", db_path, SCHEMA_VERSION)

    @property
    def path(self) -> str:
        return self._db_path

    @contextmanager
    def transaction(self) -> Iterator[Tx]:
        """Scoped transaction: commit on normal exit, roll back on error."""
        tx = Tx(self._conn)
        try:
            yield tx
        except BaseException:
            tx.rollback()
            raise
        else:
            tx.commit()

    def schema_version(self) -> Optional[int]:
        """Schema version recorded in schema_meta, or None."""
        row = self._conn.execute(
            "SELECT value FROM schema_meta WHERE key='schema_version'"
        ).fetchone()
        return int(row["value"]) if row else None

    def close(self) -> None:
        """Close the underlying SQLite connection."""
        self._conn.close()
