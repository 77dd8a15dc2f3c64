"""
Closure expansion — rewrite a query to account for tag implications.

Given an expression E and the implication set I, expand(E, I) returns E'
such that a file matches E' on its explicit tags iff it matches E once
implied tags are taken into account. Each Tag leaf and each equality
Comparison leaf is OR'd with every tag/value pair that implies it, directly
or through a chain of implications:

    implications: cat -> animal, dog -> animal, puppy -> dog
    animal  ==>  ((animal or cat) or dog) or puppy

Expansion is breadth-first from the leaf. A pair already queued is never
queued again, which bounds the work on cyclic implication graphs
(a -> b, b -> a): each implying pair contributes at most one OR-term.

Pure: reads I, builds new nodes, no side effects.

Author: tagctl developers
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, List, Set, Tuple

from tagctl.errors import UnsupportedExpression
from tagctl.query import And, Comparison, Empty, Expression, Not, Or, TagExpr
from tagctl.types import Implication, Implications

logger = logging.getLogger(__name__)

_Index = Dict[Tuple[str, str], List[Implication]]


def expand(expression: Expression, implications: Implications) -> Expression:
    """Rewrite *expression* so that implied tags also match.

    Args:
        expression: Query tree built from the closed variant set.
        implications: Complete implication set, fetched once per query.

    Returns:
        The rewritten tree. And/Or/Not keep their shape; leaves may become
        disjunctions.

    Raises:
        UnsupportedExpression: If a node outside the variant set is found.
    """
    index = Implications(implications).index_by_implied()
    return _expand(expression, index)


def expand_leaf(
    expression: Expression, tag_name: str, value_name: str,
    implications: Implications,
) -> Expression:
    """Expand one leaf whose (tag, value) is (*tag_name*, *value_name*)."""
    index = Implications(implications).index_by_implied()
    return _expand_pair(expression, tag_name, value_name, index)


def _expand(expression: Expression, index: _Index) -> Expression:
    if isinstance(expression, Or):
        return Or(_expand(expression.left, index), _expand(expression.right, index))
    if isinstance(expression, And):
        return And(_expand(expression.left, index), _expand(expression.right, index))
    if isinstance(expression, Not):
        return Not(_expand(expression.operand, index))
    if isinstance(expression, TagExpr):
        return _expand_pair(expression, expression.name, "", index)
    if isinstance(expression, Comparison):
        # implications only establish equality facts
        if expression.operator != "=":
            return expression
        return _expand_pair(expression, expression.tag, expression.value, index)
    if isinstance(expression, Empty):
        return expression
    raise UnsupportedExpression(expression)


def _expand_pair(
    expression: Expression, tag_name: str, value_name: str, index: _Index,
) -> Expression:
    """OR *expression* with every pair implying (tag_name, value_name)."""
    queue: Deque[Implication] = deque(index.get((tag_name, value_name), ()))
    seen: Set[Tuple[int, int]] = {imp.implying_pair.as_tuple() for imp in queue}

    terms = 0
    while queue:
        implication = queue.popleft()
        expression = Or(expression, _implying_term(implication))
        terms += 1

        key = (implication.implying_tag.name, implication.implying_value.name)
        for further in index.get(key, ()):
            pair = further.implying_pair.as_tuple()
            if pair not in seen:
                seen.add(pair)
                queue.append(further)

    if terms:
        logger.debug(
            "Expanded %s=%r with %d implied term(s)", tag_name, value_name, terms,
        )
    return expression


def _implying_term(implication: Implication) -> Expression:
    if implication.implying_value.is_empty:
        return TagExpr(implication.implying_tag.name)
    return Comparison(
        implication.implying_tag.name, "=", implication.implying_value.name,
    )
