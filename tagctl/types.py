"""
Tag Data Model — Tags, Values, Implications and Files

Defines the entities persisted by the store. Tags and values are independent
vocabularies; a file is tagged with (tag, value) pairs where value id 0 means
"tag only, no value".

Author: tagctl developers
"""

from __future__ import annotations

import os
from collections import defaultdict
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

# Value id of an unqualified tag assignment / implication side.
NO_VALUE_ID = 0


def _epoch() -> datetime:
    """The zero modification time used for freshly constructed files."""
    return datetime.fromtimestamp(0, timezone.utc)


# ---------------------------------------------------------------------------
# Tags and values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Tag:
    """A named label applicable to a file."""

    id: int = 0
    name: str = ""


@dataclass(frozen=True)
class Value:
    """A named qualifier that may accompany any tag. Id 0 is "no value"."""

    id: int = NO_VALUE_ID
    name: str = ""

    @property
    def is_empty(self) -> bool:
        return self.id == NO_VALUE_ID


@dataclass(frozen=True)
class TagValuePair:
    """A (tag id, value id) pair; value_id 0 means the tag alone."""

    tag_id: int
    value_id: int = NO_VALUE_ID

    def as_tuple(self) -> Tuple[int, int]:
        return (self.tag_id, self.value_id)


# ---------------------------------------------------------------------------
# Implications
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Implication:
    """
    Directed rule: a file carrying implying_tag[=implying_value] is treated
    as also carrying implied_tag[=implied_value].

    Identity is the four ids; names ride along for display and for the
    query rewriting, which works on names.
    """

    implying_tag: Tag
    implying_value: Value
    implied_tag: Tag
    implied_value: Value

    @property
    def implying_pair(self) -> TagValuePair:
        return TagValuePair(self.implying_tag.id, self.implying_value.id)

    @property
    def implied_pair(self) -> TagValuePair:
        return TagValuePair(self.implied_tag.id, self.implied_value.id)

    def __str__(self) -> str:
        def side(tag: Tag, value: Value) -> str:
            return tag.name if value.is_empty else f"{tag.name}={value.name}"

        return (
            f"{side(self.implying_tag, self.implying_value)} -> "
            f"{side(self.implied_tag, self.implied_value)}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize implication to a plain dictionary."""
        return asdict(self)


class Implications(List[Implication]):
    """Ordered list of implications with lookups by implied side."""

    def index_by_implied(self) -> Dict[Tuple[str, str], List[Implication]]:
        """Group implications by implied (tag name, value name), order kept."""
        index: Dict[Tuple[str, str], List[Implication]] = defaultdict(list)
        for imp in self:
            index[(imp.implied_tag.name, imp.implied_value.name)].append(imp)
        return dict(index)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

@dataclass
class File:
    """A tracked file or directory.

    ``directory`` is root-relative as stored, and absolute once the storage
    layer has materialized the record for a caller.
    """

    id: int = 0
    directory: str = ""
    name: str = ""
    fingerprint: str = ""
    mod_time: datetime = field(default_factory=_epoch)
    size: int = 0
    is_dir: bool = False

    @property
    def path(self) -> str:
        """Directory joined with name."""
        if not self.directory:
            return self.name
        return os.path.join(self.directory, self.name)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (JSON-safe)."""
        d = asdict(self)
        d["mod_time"] = self.mod_time.isoformat()
        return d


@dataclass(frozen=True)
class FileTag:
    """One tag assignment on a file."""

    file_id: int
    tag_id: int
    value_id: int = NO_VALUE_ID

    @property
    def pair(self) -> TagValuePair:
        return TagValuePair(self.tag_id, self.value_id)
