"""
Error taxonomy for tagctl.

Recoverable conditions derive from TagctlError and are reported to the caller
unchanged. InvariantViolation marks "this must never happen" states (a
uniqueness guarantee broken, an unknown expression node); it deliberately does
not derive from TagctlError so callers catching ordinary failures never
swallow it.

Author: tagctl developers
"""

from __future__ import annotations

from typing import Any


class TagctlError(Exception):
    """Base class for recoverable tagctl errors."""

    pass


class NoSuchImplication(TagctlError):
    """Raised when deleting an implication that is not stored."""

    def __init__(self, pair: Any, implied_pair: Any):
        self.pair = pair
        self.implied_pair = implied_pair
        super().__init__(
            f"no such implication: {pair.tag_id}/{pair.value_id} -> "
            f"{implied_pair.tag_id}/{implied_pair.value_id}"
        )


class NoSuchFile(TagctlError):
    """Raised when a file id does not exist."""

    def __init__(self, file_id: int):
        self.file_id = file_id
        super().__init__(f"no such file: #{file_id}")


class InvariantViolation(RuntimeError):
    """Unrecoverable defect; the operation must abort."""

    pass


class UnsupportedExpression(InvariantViolation):
    """An expression node outside the closed variant set was encountered."""

    def __init__(self, expression: Any):
        self.expression = expression
        super().__init__(
            f"unsupported expression type '{type(expression).__name__}'"
        )
