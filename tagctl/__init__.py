"""
tagctl — tag files, store tag implications, query with implied tags.

One SQLite database holds tags, values, tracked files and "A implies B"
rules. Queries are boolean expression trees; unless explicit-only matching is
requested they are rewritten so that implied tags match too.

Author: tagctl developers
"""

__version__ = "0.1.0"

from tagctl.types import (
    File,
    FileTag,
    Implication,
    Implications,
    Tag,
    TagValuePair,
    Value,
)
from tagctl.db import Database, Tx, SCHEMA_VERSION
from tagctl.errors import (
    InvariantViolation,
    NoSuchFile,
    NoSuchImplication,
    TagctlError,
    UnsupportedExpression,
)
from tagctl.storage import Storage
from tagctl.config import TagctlConfig

__all__ = [
    "__version__",
    "File",
    "FileTag",
    "Implication",
    "Implications",
    "Tag",
    "TagValuePair",
    "Value",
    "Database",
    "Tx",
    "SCHEMA_VERSION",
    "InvariantViolation",
    "NoSuchFile",
    "NoSuchImplication",
    "TagctlError",
    "UnsupportedExpression",
    "Storage",
    "TagctlConfig",
]
