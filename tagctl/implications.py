"""
Implication Store — CRUD over the implication relation.

An implication row is identified by its four ids. Listings join tag and
value names and are ordered by (implying tag, implying value, implied tag,
implied value) names so that query rewriting and display are reproducible.

Author: tagctl developers
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable, List

from tagctl.db import Tx
from tagctl.errors import InvariantViolation, NoSuchImplication
from tagctl.types import Implication, Implications, Tag, TagValuePair, Value

logger = logging.getLogger(__name__)

_SELECT_SQL = """
SELECT tag.id AS tag_id, tag.name AS tag_name,
       value.id AS value_id, value.name AS value_name,
       implied_tag.id AS implied_tag_id, implied_tag.name AS implied_tag_name,
       implied_value.id AS implied_value_id, implied_value.name AS implied_value_name
FROM implication
INNER JOIN tag tag ON implication.tag_id = tag.id
LEFT OUTER JOIN value value ON implication.value_id = value.id
INNER JOIN tag implied_tag ON implication.implied_tag_id = implied_tag.id
LEFT OUTER JOIN value implied_value ON implication.implied_value_id = implied_value.id
"""

_ORDER_SQL = """
ORDER BY tag.name, value.name, implied_tag.name, implied_value.name"""

# Two bound parameters per pair; stay well below SQLite's default limit of 999
_CHUNK_SIZE = 250


def implications(tx: Tx) -> Implications:
    """Retrieve the complete set of implications."""
    rows = tx.query(_SELECT_SQL + _ORDER_SQL)
    return _read_implications(rows)


def implications_for(tx: Tx, pairs: Iterable[TagValuePair]) -> Implications:
    """Retrieve implications whose implying side matches any of *pairs*."""
    keys = list(dict.fromkeys(pair.as_tuple() for pair in pairs))
    found = Implications()
    for start in range(0, len(keys), _CHUNK_SIZE):
        chunk = keys[start:start + _CHUNK_SIZE]
        clauses = ["(implication.tag_id = ? AND implication.value_id = ?)"] * len(chunk)
        params = [key for pair in chunk for key in pair]
        sql = _SELECT_SQL + "WHERE " + "\n   OR ".join(clauses) + _ORDER_SQL
        found.extend(_read_implications(tx.query(sql, params)))

    # each chunk is ordered on its own
    if len(keys) > _CHUNK_SIZE:
        found.sort(key=_sort_key)
    return found


def add_implication(tx: Tx, pair: TagValuePair, implied_pair: TagValuePair) -> None:
    """Add an implication. Adding one that already exists is a no-op."""
    tx.execute(
        """INSERT OR IGNORE INTO implication
           (tag_id, value_id, implied_tag_id, implied_value_id)
           VALUES (?,?,?,?)""",
        (pair.tag_id, pair.value_id, implied_pair.tag_id, implied_pair.value_id),
    )


def delete_implication(tx: Tx, pair: TagValuePair, implied_pair: TagValuePair) -> None:
    """Delete exactly one implication.

    Raises:
        NoSuchImplication: If no such implication is stored.
        InvariantViolation: If more than one row matched.
    """
    cursor = tx.execute(
        """DELETE FROM implication
           WHERE tag_id = ? AND value_id = ?
             AND implied_tag_id = ? AND implied_value_id = ?""",
        (pair.tag_id, pair.value_id, implied_pair.tag_id, implied_pair.value_id),
    )
    if cursor.rowcount == 0:
        raise NoSuchImplication(pair, implied_pair)
    if cursor.rowcount > 1:
        raise InvariantViolation(
            f"expected exactly one implication row to be deleted, got {cursor.rowcount}"
        )


def delete_implications_by_tag_id(tx: Tx, tag_id: int) -> int:
    """Delete implications naming *tag_id* on either side. Returns row count."""
    cursor = tx.execute(
        "DELETE FROM implication WHERE tag_id = ?1 OR implied_tag_id = ?1",
        (tag_id,),
    )
    logger.debug("Deleted %d implication(s) for tag #%d", cursor.rowcount, tag_id)
    return cursor.rowcount


def delete_implications_by_value_id(tx: Tx, value_id: int) -> int:
    """Delete implications naming *value_id* on either side. Returns row count."""
    cursor = tx.execute(
        "DELETE FROM implication WHERE value_id = ?1 OR implied_value_id = ?1",
        (value_id,),
    )
    logger.debug("Deleted %d implication(s) for value #%d", cursor.rowcount, value_id)
    return cursor.rowcount


# -- Internal helpers ------------------------------------------------------

def _value(value_id, value_name) -> Value:
    # value_id 0 has no row in the value table, so the outer join yields NULL
    if value_id is None:
        return Value()
    return Value(value_id, value_name)


def _row_to_implication(row: sqlite3.Row) -> Implication:
    """Convert a joined SQLite Row to an Implication."""
    return Implication(
        implying_tag=Tag(row["tag_id"], row["tag_name"]),
        implying_value=_value(row["value_id"], row["value_name"]),
        implied_tag=Tag(row["implied_tag_id"], row["implied_tag_name"]),
        implied_value=_value(row["implied_value_id"], row["implied_value_name"]),
    )


def _sort_key(imp: Implication):
    # same order as _ORDER_SQL; the empty value sorts first like SQL NULL
    return (
        imp.implying_tag.name, imp.implying_value.name,
        imp.implied_tag.name, imp.implied_value.name,
    )


def _read_implications(rows: List[sqlite3.Row]) -> Implications:
    return Implications(_row_to_implication(row) for row in rows)
