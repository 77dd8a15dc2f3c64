"""
tagctl Configuration

Configuration dataclasses for the store and query defaults, load_config()
for reading a JSON config file with silent fallback to compiled defaults,
and resolvers applying the precedence

    explicit argument  >  TAGCTL_* env var  >  config value

Environment variables:
    TAGCTL_DB    Path to the SQLite database (default: .tagctl/db.sqlite)
    TAGCTL_ROOT  Root path files are stored relative to (default: none)

Author: tagctl developers
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from tagctl.db import Database
from tagctl.files import SORT_KEYS
from tagctl.storage import Storage


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(ValueError):
    """Raised when config values are out of valid range."""

    pass


@dataclass
class StoreConfig:
    """SQLite store configuration."""
    db_path: str = ".tagctl/db.sqlite"
    root_path: str = ""
    wal_mode: bool = True

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        if not self.db_path:
            errors.append("store.db_path: must not be empty")
        if self.root_path and not os.path.isabs(self.root_path):
            errors.append(f"store.root_path: {self.root_path!r} is not absolute")
        return errors


@dataclass
class QueryConfig:
    """Query defaults."""
    explicit_only: bool = False
    default_sort: str = "name"

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        if self.default_sort not in SORT_KEYS:
            errors.append(
                f"query.default_sort: {self.default_sort!r} not in "
                f"{sorted(SORT_KEYS)}"
            )
        return errors


@dataclass
class TagctlConfig:
    """Top-level tagctl configuration."""
    store: StoreConfig = field(default_factory=StoreConfig)
    query: QueryConfig = field(default_factory=QueryConfig)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> TagctlConfig:
        """Build config from a nested dict (e.g. JSON)."""
        kwargs: Dict[str, Any] = {}
        if "store" in d:
            kwargs["store"] = StoreConfig(**d["store"])
        if "query" in d:
            kwargs["query"] = QueryConfig(**d["query"])
        return cls(**kwargs)

    def validate(self) -> List[str]:
        """Validate all config sections. Returns list of error messages."""
        errors: List[str] = []
        errors.extend(self.store.validate())
        errors.extend(self.query.validate())
        return errors


def load_config(
    path: Optional[str] = None, *, strict: bool = False,
) -> TagctlConfig:
    """Load config from a JSON file. Returns defaults if file missing/invalid.

    Args:
        path: Path to config.json. If None, returns compiled defaults.
        strict: If True, raise ValidationError on invalid config values.

    Returns:
        TagctlConfig with values from file or defaults.

    Raises:
        ValidationError: If strict=True and config values are out of range.
    """
    if path is None:
        cfg = TagctlConfig()
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            cfg = TagctlConfig.from_dict(data)
        except (FileNotFoundError, json.JSONDecodeError, TypeError, KeyError):
            cfg = TagctlConfig()

    if strict:
        errors = cfg.validate()
        if errors:
            raise ValidationError(
                f"Config validation failed: {'; '.join(errors)}"
            )

    return cfg


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


def resolve_db_path(
    explicit: Optional[str] = None, cfg: Optional[TagctlConfig] = None,
) -> str:
    """Resolve database path: explicit > TAGCTL_DB > config."""
    if explicit:
        return explicit
    cfg = cfg or TagctlConfig()
    return os.environ.get("TAGCTL_DB") or cfg.store.db_path


def resolve_root_path(
    explicit: Optional[str] = None, cfg: Optional[TagctlConfig] = None,
) -> str:
    """Resolve root path: explicit > TAGCTL_ROOT > config."""
    if explicit:
        return explicit
    cfg = cfg or TagctlConfig()
    return os.environ.get("TAGCTL_ROOT") or cfg.store.root_path


def open_storage(cfg: Optional[TagctlConfig] = None) -> Tuple[Database, Storage]:
    """Open the configured database and a Storage rooted at the configured root."""
    cfg = cfg or TagctlConfig()
    db = Database(db_path=resolve_db_path(cfg=cfg), wal_mode=cfg.store.wal_mode)
    storage = Storage(
        resolve_root_path(cfg=cfg),
        explicit_only=cfg.query.explicit_only,
        default_sort=cfg.query.default_sort,
    )
    return db, storage
