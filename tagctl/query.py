"""
Query expression model.

Expression trees are built by the query-language front end and consumed by
the closure expander and the SQL translation. The variant set is closed:

    Empty                       no constraint
    TagExpr(name)               file carries the tag (any value)
    Comparison(tag, op, value)  file carries tag with a value satisfying op
    And(left, right)
    Or(left, right)
    Not(operand)

Nodes are immutable; rewriting builds new nodes.

Author: tagctl developers
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Union

# ── Comparison operators ────────────────────────────────────────────────

OPERATORS = frozenset({"=", "!=", "<", ">", "<=", ">="})

_KEYWORDS = frozenset({"and", "or", "not"})
_SPECIAL = frozenset(' ()=<>!"')

# Spellings accepted from the front end, normalized at construction
_OPERATOR_ALIASES = {
    "==": "=",
    "eq": "=",
    "ne": "!=",
    "lt": "<",
    "gt": ">",
    "le": "<=",
    "ge": ">=",
}


# ── Variants ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Empty:
    """Matches every file."""

    def __str__(self) -> str:
        return ""


@dataclass(frozen=True)
class TagExpr:
    """File carries tag *name*, with or without a value."""

    name: str

    def __str__(self) -> str:
        return _quote(self.name)


@dataclass(frozen=True)
class Comparison:
    """File carries *tag* with a value satisfying ``value <operator> value``."""

    tag: str
    operator: str
    value: str

    def __post_init__(self):
        op = _OPERATOR_ALIASES.get(self.operator, self.operator)
        if op not in OPERATORS:
            raise ValueError(f"Invalid comparison operator: {self.operator!r}")
        object.__setattr__(self, "operator", op)

    def __str__(self) -> str:
        return f"{_quote(self.tag)} {self.operator} {_quote(self.value)}"


@dataclass(frozen=True)
class And:
    left: "Expression"
    right: "Expression"

    def __str__(self) -> str:
        return f"{_operand(self.left, And)} and {_operand(self.right, And)}"


@dataclass(frozen=True)
class Or:
    left: "Expression"
    right: "Expression"

    def __str__(self) -> str:
        return f"{_operand(self.left, Or)} or {_operand(self.right, Or)}"


@dataclass(frozen=True)
class Not:
    operand: "Expression"

    def __str__(self) -> str:
        return f"not {_operand(self.operand, Not)}"


Expression = Union[Empty, TagExpr, Comparison, And, Or, Not]


# ── Helpers ─────────────────────────────────────────────────────────────

def is_empty(expression: Expression) -> bool:
    """Return True if the expression places no constraint."""
    return isinstance(expression, Empty)


def tag_names(expression: Expression) -> List[str]:
    """Distinct tag names referenced by the expression, in first-seen order."""
    names: List[str] = []

    def visit(expr: Expression) -> None:
        if isinstance(expr, TagExpr):
            name = expr.name
        elif isinstance(expr, Comparison):
            name = expr.tag
        elif isinstance(expr, (And, Or)):
            visit(expr.left)
            visit(expr.right)
            return
        elif isinstance(expr, Not):
            visit(expr.operand)
            return
        else:
            return
        if name not in names:
            names.append(name)

    visit(expression)
    return names


def _operand(expr: Expression, parent: type) -> str:
    """Render a child, parenthesized when it binds looser than its parent."""
    text = str(expr)
    if isinstance(expr, Or) and parent is not Or:
        return f"({text})"
    if isinstance(expr, (And, Comparison)) and parent is Not:
        return f"({text})"
    return text


def _quote(word: str) -> str:
    # Words containing spaces, operators or parentheses need quoting
    if not word or word.lower() in _KEYWORDS or any(c in word for c in _SPECIAL):
        escaped = word.replace('"', '\\"')
        return f'"{escaped}"'
    return word
