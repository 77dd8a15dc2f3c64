"""
File rows — SQL CRUD and query translation.

Paths handed to this module are already in storage form: root-relative
(``.`` for the root itself) or absolute when outside the root. The storage
layer does the conversion in both directions.

Query translation maps an expression tree onto correlated EXISTS subqueries
over file_tag:

    TagExpr("a")              EXISTS(file_tag with tag a)
    Comparison("a", "=", "1") EXISTS(file_tag with tag a and value 1)
    Comparison("a", "!=", x)  NOT (a = x)
    And / Or / Not            SQL AND / OR / NOT
    Empty                     1=1

Author: tagctl developers
"""

from __future__ import annotations

import logging
import math
import os
import sqlite3
from datetime import datetime, timezone
from itertools import groupby
from typing import Any, Iterable, List, Optional, Tuple

from tagctl.db import Tx
from tagctl.errors import UnsupportedExpression
from tagctl.query import And, Comparison, Empty, Expression, Not, Or, TagExpr
from tagctl.types import File

logger = logging.getLogger(__name__)

SORT_KEYS = {
    "none": "",
    "id": "ORDER BY file.id",
    "name": "ORDER BY file.directory, file.name",
    "time": "ORDER BY file.mod_time, file.directory, file.name",
    "size": "ORDER BY file.size, file.directory, file.name",
}

# SQLite's default host-parameter limit is 999; stay well below it
_CHUNK_SIZE = 500

_COLUMNS = "file.id, file.directory, file.name, file.fingerprint, file.mod_time, file.size, file.is_dir"


def _order_by(sort: str) -> str:
    try:
        return SORT_KEYS[sort]
    except KeyError:
        raise ValueError(
            f"Invalid sort key: {sort!r} (expected one of {', '.join(sorted(SORT_KEYS))})"
        ) from None


# -- Reads -----------------------------------------------------------------

def file_count(tx: Tx) -> int:
    """Total number of tracked files."""
    return tx.query_one("SELECT COUNT(*) AS cnt FROM file")["cnt"]


def files(tx: Tx, sort: str = "name") -> List[File]:
    """The complete set of tracked files."""
    return _read_files(tx.query(f"SELECT {_COLUMNS} FROM file {_order_by(sort)}"))


def file(tx: Tx, file_id: int) -> Optional[File]:
    row = tx.query_one(f"SELECT {_COLUMNS} FROM file WHERE id = ?", (file_id,))
    return _row_to_file(row) if row else None


def file_by_path(tx: Tx, path: str) -> Optional[File]:
    directory, name = split_path(path)
    row = tx.query_one(
        f"SELECT {_COLUMNS} FROM file WHERE directory = ? AND name = ?",
        (directory, name),
    )
    return _row_to_file(row) if row else None


def files_by_directory(tx: Tx, directory: str) -> List[File]:
    """Files within *directory* or any of its subdirectories."""
    where, params = _directory_filter(directory)
    rows = tx.query(
        f"SELECT {_COLUMNS} FROM file WHERE {where} ORDER BY file.directory, file.name",
        params,
    )
    return _read_files(rows)


def file_count_by_fingerprint(tx: Tx, fingerprint: str) -> int:
    row = tx.query_one(
        "SELECT COUNT(*) AS cnt FROM file WHERE fingerprint = ?", (fingerprint,)
    )
    return row["cnt"]


def files_by_fingerprint(tx: Tx, fingerprint: str) -> List[File]:
    rows = tx.query(
        f"SELECT {_COLUMNS} FROM file WHERE fingerprint = ? "
        "ORDER BY file.directory, file.name",
        (fingerprint,),
    )
    return _read_files(rows)


def untagged_files(tx: Tx) -> List[File]:
    """Files with no tag assignment."""
    rows = tx.query(
        f"""SELECT {_COLUMNS} FROM file
            WHERE id NOT IN (SELECT DISTINCT file_id FROM file_tag)
            ORDER BY file.directory, file.name"""
    )
    return _read_files(rows)


def duplicate_files(tx: Tx) -> List[List[File]]:
    """Groups of two or more files sharing a non-empty fingerprint."""
    rows = tx.query(
        f"""SELECT {_COLUMNS} FROM file
            WHERE fingerprint IN (
                SELECT fingerprint FROM file
                WHERE fingerprint != ''
                GROUP BY fingerprint
                HAVING COUNT(1) > 1
            )
            ORDER BY fingerprint, directory, name"""
    )
    return [
        list(group)
        for _, group in groupby(_read_files(rows), key=lambda f: f.fingerprint)
    ]


# -- Writes ----------------------------------------------------------------

def insert_file(
    tx: Tx, path: str, fingerprint: str, mod_time: datetime,
    size: int, is_dir: bool,
) -> File:
    directory, name = split_path(path)
    cursor = tx.execute(
        """INSERT INTO file (directory, name, fingerprint, mod_time, size, is_dir)
           VALUES (?,?,?,?,?,?)""",
        (directory, name, fingerprint, _timestamp(mod_time), size, int(is_dir)),
    )
    return File(cursor.lastrowid, directory, name, fingerprint, _utc(mod_time), size, is_dir)


def update_file(
    tx: Tx, file_id: int, path: str, fingerprint: str, mod_time: datetime,
    size: int, is_dir: bool,
) -> Optional[File]:
    """Rewrite a file row. Returns None if *file_id* does not exist."""
    directory, name = split_path(path)
    cursor = tx.execute(
        """UPDATE file
           SET directory = ?, name = ?, fingerprint = ?, mod_time = ?, size = ?, is_dir = ?
           WHERE id = ?""",
        (directory, name, fingerprint, _timestamp(mod_time), size, int(is_dir), file_id),
    )
    if cursor.rowcount == 0:
        return None
    return File(file_id, directory, name, fingerprint, _utc(mod_time), size, is_dir)


def delete_file(tx: Tx, file_id: int) -> bool:
    cursor = tx.execute("DELETE FROM file WHERE id = ?", (file_id,))
    return cursor.rowcount > 0


def delete_untagged_files(tx: Tx, file_ids: Iterable[int]) -> int:
    """Delete those of *file_ids* that have no tag assignment."""
    ids = list(file_ids)
    deleted = 0
    for start in range(0, len(ids), _CHUNK_SIZE):
        chunk = ids[start:start + _CHUNK_SIZE]
        placeholders = ",".join("?" * len(chunk))
        cursor = tx.execute(
            f"""DELETE FROM file
                WHERE id IN ({placeholders})
                  AND id NOT IN (SELECT DISTINCT file_id FROM file_tag)""",
            chunk,
        )
        deleted += cursor.rowcount
    logger.debug("Deleted %d untagged file(s) of %d candidate(s)", deleted, len(ids))
    return deleted


# -- Queries ---------------------------------------------------------------

def query_file_count(tx: Tx, expression: Expression, path: str = "") -> int:
    """Number of files matching *expression* under *path* (empty = anywhere)."""
    where, params = build_query(expression, path)
    row = tx.query_one(f"SELECT COUNT(*) AS cnt FROM file WHERE {where}", params)
    return row["cnt"]


def query_files(
    tx: Tx, expression: Expression, path: str = "", sort: str = "name",
) -> List[File]:
    """Files matching *expression* under *path* (empty = anywhere)."""
    order = _order_by(sort)
    where, params = build_query(expression, path)
    rows = tx.query(f"SELECT {_COLUMNS} FROM file WHERE {where} {order}", params)
    return _read_files(rows)


def build_query(expression: Expression, path: str = "") -> Tuple[str, List[Any]]:
    """Translate *expression* and an optional path scope into a WHERE clause."""
    params: List[Any] = []
    where = _expression_sql(expression, params)
    if path:
        scope, scope_params = _path_filter(path)
        where = f"({where}) AND {scope}"
        params.extend(scope_params)
    return where, params


def _expression_sql(expression: Expression, params: List[Any]) -> str:
    if isinstance(expression, Empty):
        return "1=1"
    if isinstance(expression, TagExpr):
        params.append(expression.name)
        return """EXISTS (SELECT 1 FROM file_tag ft
                  INNER JOIN tag t ON t.id = ft.tag_id
                  WHERE ft.file_id = file.id AND t.name = ?)"""
    if isinstance(expression, Comparison):
        return _comparison_sql(expression, params)
    if isinstance(expression, And):
        left = _expression_sql(expression.left, params)
        right = _expression_sql(expression.right, params)
        return f"({left} AND {right})"
    if isinstance(expression, Or):
        left = _expression_sql(expression.left, params)
        right = _expression_sql(expression.right, params)
        return f"({left} OR {right})"
    if isinstance(expression, Not):
        return f"NOT ({_expression_sql(expression.operand, params)})"
    raise UnsupportedExpression(expression)


def _comparison_sql(expression: Comparison, params: List[Any]) -> str:
    if expression.operator == "!=":
        equal = Comparison(expression.tag, "=", expression.value)
        return f"NOT ({_comparison_sql(equal, params)})"

    number = _as_number(expression.value)
    if expression.operator == "=" or number is None:
        value_sql = f"v.name {expression.operator} ?"
        params.extend([expression.tag, expression.value])
    else:
        # Ordering on numbers only considers values that look numeric
        value_sql = (
            "v.name != '' AND v.name NOT GLOB '*[^0-9.eE+-]*' "
            f"AND CAST(v.name AS REAL) {expression.operator} ?"
        )
        params.extend([expression.tag, number])
    return f"""EXISTS (SELECT 1 FROM file_tag ft
              INNER JOIN tag t ON t.id = ft.tag_id
              INNER JOIN value v ON v.id = ft.value_id
              WHERE ft.file_id = file.id AND t.name = ? AND {value_sql})"""


def _as_number(text: str) -> Optional[float]:
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


# -- Path helpers ----------------------------------------------------------

def split_path(path: str) -> Tuple[str, str]:
    """Split a storage path into (directory, name); a bare name lives in ``.``."""
    directory, name = os.path.split(path)
    return directory or ".", name


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _directory_filter(directory: str) -> Tuple[str, List[Any]]:
    """WHERE fragment selecting files within *directory*, recursively."""
    if directory == ".":
        # root: everything stored relative
        return "(file.directory = '.' OR file.directory NOT LIKE '/%')", []
    prefix = directory.rstrip(os.sep) + os.sep
    return (
        "(file.directory = ? OR file.directory LIKE ? ESCAPE '\\')",
        [directory, _escape_like(prefix) + "%"],
    )


def _path_filter(path: str) -> Tuple[str, List[Any]]:
    """WHERE fragment selecting the file at *path* or anything beneath it."""
    where, params = _directory_filter(path)
    return (
        f"""({where} OR
             (CASE WHEN file.directory = '.' THEN file.name
                   ELSE file.directory || '/' || file.name END) = ?)""",
        params + [path],
    )


# -- Internal helpers ------------------------------------------------------

def _utc(moment: datetime) -> datetime:
    """*moment* in UTC; naive datetimes are taken to be UTC already."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _timestamp(moment: datetime) -> str:
    # fixed-width UTC text, so ORDER BY mod_time is chronological
    return _utc(moment).isoformat(timespec="microseconds")


def _row_to_file(row: sqlite3.Row) -> File:
    """Convert a SQLite Row to File."""
    return File(
        id=row["id"],
        directory=row["directory"],
        name=row["name"],
        fingerprint=row["fingerprint"],
        mod_time=datetime.fromisoformat(row["mod_time"]),
        size=row["size"],
        is_dir=bool(row["is_dir"]),
    )


def _read_files(rows: List[sqlite3.Row]) -> List[File]:
    return [_row_to_file(row) for row in rows]
