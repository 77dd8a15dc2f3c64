"""
Tag, value and file-tag persistence.

Tags and values are two independent vocabularies with unique names. A
file_tag row assigns a (tag, value) pair to a file; value_id 0 assigns the
tag alone.

Author: tagctl developers
"""

from __future__ import annotations

import logging
from typing import List, Optional

from tagctl.db import Tx
from tagctl.types import NO_VALUE_ID, FileTag, Tag, Value

logger = logging.getLogger(__name__)


# -- Tags ------------------------------------------------------------------

def tags(tx: Tx) -> List[Tag]:
    """All tags ordered by name."""
    rows = tx.query("SELECT id, name FROM tag ORDER BY name")
    return [Tag(r["id"], r["name"]) for r in rows]


def tag_by_name(tx: Tx, name: str) -> Optional[Tag]:
    row = tx.query_one("SELECT id, name FROM tag WHERE name = ?", (name,))
    return Tag(row["id"], row["name"]) if row else None


def insert_tag(tx: Tx, name: str) -> Tag:
    cursor = tx.execute("INSERT INTO tag (name) VALUES (?)", (name,))
    return Tag(cursor.lastrowid, name)


def delete_tag(tx: Tx, tag_id: int) -> bool:
    """Delete the tag row only. Cascades are the storage layer's job."""
    cursor = tx.execute("DELETE FROM tag WHERE id = ?", (tag_id,))
    return cursor.rowcount > 0


# -- Values ----------------------------------------------------------------

def values(tx: Tx) -> List[Value]:
    """All values ordered by name."""
    rows = tx.query("SELECT id, name FROM value ORDER BY name")
    return [Value(r["id"], r["name"]) for r in rows]


def value_by_name(tx: Tx, name: str) -> Optional[Value]:
    row = tx.query_one("SELECT id, name FROM value WHERE name = ?", (name,))
    return Value(row["id"], row["name"]) if row else None


def insert_value(tx: Tx, name: str) -> Value:
    cursor = tx.execute("INSERT INTO value (name) VALUES (?)", (name,))
    return Value(cursor.lastrowid, name)


def delete_value(tx: Tx, value_id: int) -> bool:
    """Delete the value row only. Cascades are the storage layer's job."""
    cursor = tx.execute("DELETE FROM value WHERE id = ?", (value_id,))
    return cursor.rowcount > 0


# -- File tags -------------------------------------------------------------

def file_tags_by_file_id(tx: Tx, file_id: int) -> List[FileTag]:
    rows = tx.query(
        "SELECT file_id, tag_id, value_id FROM file_tag WHERE file_id = ? "
        "ORDER BY tag_id, value_id",
        (file_id,),
    )
    return [FileTag(r["file_id"], r["tag_id"], r["value_id"]) for r in rows]


def file_tag_count_by_file_id(tx: Tx, file_id: int) -> int:
    row = tx.query_one(
        "SELECT COUNT(*) AS cnt FROM file_tag WHERE file_id = ?", (file_id,)
    )
    return row["cnt"]


def file_ids_by_tag_id(tx: Tx, tag_id: int) -> List[int]:
    rows = tx.query(
        "SELECT DISTINCT file_id FROM file_tag WHERE tag_id = ? ORDER BY file_id",
        (tag_id,),
    )
    return [r["file_id"] for r in rows]


def file_ids_by_value_id(tx: Tx, value_id: int) -> List[int]:
    rows = tx.query(
        "SELECT DISTINCT file_id FROM file_tag WHERE value_id = ? ORDER BY file_id",
        (value_id,),
    )
    return [r["file_id"] for r in rows]


def add_file_tag(tx: Tx, file_id: int, tag_id: int, value_id: int = NO_VALUE_ID) -> FileTag:
    """Assign a tag (and optional value) to a file. Idempotent."""
    tx.execute(
        "INSERT OR IGNORE INTO file_tag (file_id, tag_id, value_id) VALUES (?,?,?)",
        (file_id, tag_id, value_id),
    )
    return FileTag(file_id, tag_id, value_id)


def delete_file_tag(tx: Tx, file_id: int, tag_id: int, value_id: int = NO_VALUE_ID) -> bool:
    cursor = tx.execute(
        "DELETE FROM file_tag WHERE file_id = ? AND tag_id = ? AND value_id = ?",
        (file_id, tag_id, value_id),
    )
    return cursor.rowcount > 0


def delete_file_tags_by_file_id(tx: Tx, file_id: int) -> int:
    cursor = tx.execute("DELETE FROM file_tag WHERE file_id = ?", (file_id,))
    return cursor.rowcount


def delete_file_tags_by_tag_id(tx: Tx, tag_id: int) -> int:
    cursor = tx.execute("DELETE FROM file_tag WHERE tag_id = ?", (tag_id,))
    logger.debug("Removed %d file tag(s) for tag #%d", cursor.rowcount, tag_id)
    return cursor.rowcount


def delete_file_tags_by_value_id(tx: Tx, value_id: int) -> int:
    cursor = tx.execute("DELETE FROM file_tag WHERE value_id = ?", (value_id,))
    logger.debug("Removed %d file tag(s) for value #%d", cursor.rowcount, value_id)
    return cursor.rowcount
