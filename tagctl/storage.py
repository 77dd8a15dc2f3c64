"""
Storage — file/tag store facade over the database layer.

Paths cross this boundary in absolute form. Inbound paths under the root are
stored root-relative; paths outside it are stored verbatim. Outbound file
records get their relative directory joined back onto the root.

Queries run through the closure expander unless the caller asks for
explicit-only matching, so that files tagged ``puppy`` answer a query for
``animal`` when ``puppy -> dog -> animal`` is stored.

Every method takes the caller's transaction first; Storage itself holds only
the root path.

Author: tagctl developers
"""

from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime
from typing import Iterable, List, Optional

from tagctl import closure, files as _files, implications as _implications, tags as _tags
from tagctl.db import Tx
from tagctl.errors import NoSuchFile, TagctlError
from tagctl.query import Expression
from tagctl.types import NO_VALUE_ID, File, FileTag, Implications, TagValuePair

logger = logging.getLogger(__name__)


def clean_path(path: str) -> str:
    """Lexically normalise *path*: no trailing separator, no . or .. segments."""
    path = os.path.normpath(path)
    # normpath keeps a leading double separator (POSIX implementation-defined)
    if path.startswith(os.sep * 2):
        path = os.sep + path.lstrip(os.sep)
    return path


def rel_to(path: str, root: str) -> str:
    """Express *path* relative to *root* when it lies beneath it.

    Returns ``.`` for the root itself and *path* unchanged when it is
    outside the root (or when no root is configured).
    """
    if not root:
        return path
    root = root.rstrip(os.sep) or os.sep
    if path == root:
        return "."
    prefix = root if root == os.sep else root + os.sep
    if path.startswith(prefix):
        return path[len(prefix):]
    return path


class Storage:
    """
    File/tag relational store rooted at *root_path*.

    Stateless apart from the root; safe to share between transactions.
    """

    def __init__(
        self, root_path: str = "", *,
        explicit_only: bool = False, default_sort: str = "name",
    ):
        self.root_path = clean_path(root_path) if root_path else ""
        self.explicit_only = explicit_only
        self.default_sort = default_sort

    # -- Implications ------------------------------------------------------

    def implications(self, tx: Tx) -> Implications:
        """The complete, ordered implication set."""
        return _implications.implications(tx)

    def implications_for(self, tx: Tx, pairs: Iterable[TagValuePair]) -> Implications:
        """Implications whose implying side is any of *pairs*."""
        return _implications.implications_for(tx, pairs)

    def add_implication(self, tx: Tx, pair: TagValuePair, implied_pair: TagValuePair) -> None:
        _implications.add_implication(tx, pair, implied_pair)

    def delete_implication(self, tx: Tx, pair: TagValuePair, implied_pair: TagValuePair) -> None:
        _implications.delete_implication(tx, pair, implied_pair)

    # -- Tags and values ---------------------------------------------------

    def delete_tag(self, tx: Tx, tag_id: int, keep_untagged: bool = False) -> bool:
        """Delete a tag with its assignments and implications.

        Files left without tags are deleted unless *keep_untagged*.
        """
        file_ids = _tags.file_ids_by_tag_id(tx, tag_id)
        _tags.delete_file_tags_by_tag_id(tx, tag_id)
        _implications.delete_implications_by_tag_id(tx, tag_id)
        deleted = _tags.delete_tag(tx, tag_id)
        if not keep_untagged:
            _files.delete_untagged_files(tx, file_ids)
        logger.debug("Deleted tag #%d (%d file(s) affected)", tag_id, len(file_ids))
        return deleted

    def delete_value(self, tx: Tx, value_id: int, keep_untagged: bool = False) -> bool:
        """Delete a value with its assignments and implications.

        Files left without tags are deleted unless *keep_untagged*.
        """
        file_ids = _tags.file_ids_by_value_id(tx, value_id)
        _tags.delete_file_tags_by_value_id(tx, value_id)
        _implications.delete_implications_by_value_id(tx, value_id)
        deleted = _tags.delete_value(tx, value_id)
        if not keep_untagged:
            _files.delete_untagged_files(tx, file_ids)
        logger.debug("Deleted value #%d (%d file(s) affected)", value_id, len(file_ids))
        return deleted

    # -- File tags ---------------------------------------------------------

    def file_tags(self, tx: Tx, file_id: int) -> List[FileTag]:
        return _tags.file_tags_by_file_id(tx, file_id)

    def file_tag_count(self, tx: Tx, file_id: int) -> int:
        return _tags.file_tag_count_by_file_id(tx, file_id)

    def tag_file(self, tx: Tx, file_id: int, tag_id: int, value_id: int = NO_VALUE_ID) -> FileTag:
        return _tags.add_file_tag(tx, file_id, tag_id, value_id)

    def untag_file(
        self, tx: Tx, file_id: int, tag_id: int, value_id: int = NO_VALUE_ID,
        keep_untagged: bool = False,
    ) -> bool:
        """Remove one assignment; drop the file once untagged unless *keep_untagged*."""
        removed = _tags.delete_file_tag(tx, file_id, tag_id, value_id)
        if removed and not keep_untagged:
            self.delete_file_if_untagged(tx, file_id)
        return removed

    # -- Files: reads ------------------------------------------------------

    def file_count(self, tx: Tx) -> int:
        """Total number of tracked files."""
        return _files.file_count(tx)

    def files(self, tx: Tx, sort: Optional[str] = None) -> List[File]:
        """The complete set of tracked files."""
        return self._abs_paths(_files.files(tx, sort or self.default_sort))

    def file(self, tx: Tx, file_id: int) -> Optional[File]:
        return self._abs_path(_files.file(tx, file_id))

    def file_by_path(self, tx: Tx, path: str) -> Optional[File]:
        return self._abs_path(_files.file_by_path(tx, self.rel_path(path)))

    def files_by_directory(self, tx: Tx, path: str) -> List[File]:
        """Files under the specified directory."""
        return self._abs_paths(_files.files_by_directory(tx, self.rel_path(path)))

    def files_by_directories(self, tx: Tx, paths: Iterable[str]) -> List[File]:
        """Files under any of the specified directories.

        Raises:
            TagctlError: naming the directory whose lookup failed.
        """
        result: List[File] = []
        for path in paths:
            try:
                result.extend(_files.files_by_directory(tx, self.rel_path(path)))
            except sqlite3.Error as exc:
                raise TagctlError(
                    f"{path!r}: could not retrieve files for directory: {exc}"
                ) from exc
        return self._abs_paths(result)

    def file_count_by_fingerprint(self, tx: Tx, fingerprint: str) -> int:
        return _files.file_count_by_fingerprint(tx, fingerprint)

    def files_by_fingerprint(self, tx: Tx, fingerprint: str) -> List[File]:
        return self._abs_paths(_files.files_by_fingerprint(tx, fingerprint))

    def untagged_files(self, tx: Tx) -> List[File]:
        return self._abs_paths(_files.untagged_files(tx))

    def duplicate_files(self, tx: Tx) -> List[List[File]]:
        """Groups of files sharing a fingerprint."""
        return [self._abs_paths(group) for group in _files.duplicate_files(tx)]

    # -- Files: queries ----------------------------------------------------

    def query_file_count(
        self, tx: Tx, expression: Expression, path: str = "",
        explicit_only: Optional[bool] = None,
    ) -> int:
        """Number of files matching *expression* under *path*."""
        if not self._explicit_only(explicit_only):
            expression = self._add_implied_tags(tx, expression)
        return _files.query_file_count(tx, expression, self.rel_path(path))

    def query_files(
        self, tx: Tx, expression: Expression, path: str = "",
        explicit_only: Optional[bool] = None, sort: Optional[str] = None,
    ) -> List[File]:
        """Files matching *expression* under *path*.

        *explicit_only* and *sort* default to the values Storage was built with.
        """
        if not self._explicit_only(explicit_only):
            expression = self._add_implied_tags(tx, expression)
        found = _files.query_files(
            tx, expression, self.rel_path(path), sort or self.default_sort,
        )
        return self._abs_paths(found)

    # -- Files: writes -----------------------------------------------------

    def add_file(
        self, tx: Tx, path: str, fingerprint: str, mod_time: datetime,
        size: int, is_dir: bool = False,
    ) -> File:
        f = _files.insert_file(tx, self.rel_path(path), fingerprint, mod_time, size, is_dir)
        return self._abs_path(f)

    def update_file(
        self, tx: Tx, file_id: int, path: str, fingerprint: str,
        mod_time: datetime, size: int, is_dir: bool = False,
    ) -> File:
        """Rewrite a file record.

        Raises:
            NoSuchFile: If *file_id* is not tracked.
        """
        f = _files.update_file(
            tx, file_id, self.rel_path(path), fingerprint, mod_time, size, is_dir,
        )
        if f is None:
            raise NoSuchFile(file_id)
        return self._abs_path(f)

    def delete_file(self, tx: Tx, file_id: int) -> bool:
        """Delete a file and its tag assignments."""
        _tags.delete_file_tags_by_file_id(tx, file_id)
        return _files.delete_file(tx, file_id)

    def delete_file_if_untagged(self, tx: Tx, file_id: int) -> bool:
        """Delete the file only if it has no tag assignment."""
        if self.file_tag_count(tx, file_id) > 0:
            return False
        return self.delete_file(tx, file_id)

    def delete_untagged_files(self, tx: Tx, file_ids: Iterable[int]) -> int:
        """Delete those of *file_ids* that have no tag assignment."""
        return _files.delete_untagged_files(tx, file_ids)

    # -- Paths -------------------------------------------------------------

    def rel_path(self, path: str) -> str:
        """Storage form of an absolute path, cleaned first. Empty paths are left alone."""
        if path == "":
            return ""
        return rel_to(clean_path(path), self.root_path)

    def abs_path(self, directory: str) -> str:
        """Caller form of a stored directory."""
        if directory == "" or directory.startswith(os.sep):
            return directory
        return os.path.normpath(os.path.join(self.root_path, directory))

    def _abs_path(self, f: Optional[File]) -> Optional[File]:
        if f is not None:
            f.directory = self.abs_path(f.directory)
        return f

    def _abs_paths(self, found: List[File]) -> List[File]:
        for f in found:
            self._abs_path(f)
        return found

    # -- Implied tags ------------------------------------------------------

    def _explicit_only(self, explicit_only: Optional[bool]) -> bool:
        return self.explicit_only if explicit_only is None else explicit_only

    def _add_implied_tags(self, tx: Tx, expression: Expression) -> Expression:
        implications = self.implications(tx)
        return closure.expand(expression, implications)
