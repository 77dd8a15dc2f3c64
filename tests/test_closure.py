"""
Tests for tagctl.closure — implied-tag expansion of query trees.

Works on in-memory Implications; no database needed.

Author: tagctl developers
"""

from dataclasses import dataclass

import pytest

from tagctl.closure import expand, expand_leaf
from tagctl.errors import InvariantViolation, UnsupportedExpression
from tagctl.query import And, Comparison, Empty, Not, Or, TagExpr
from tagctl.types import Implication, Implications, Tag, Value

_TAG_IDS = {}
_VALUE_IDS = {}


def tag(name):
    return Tag(_TAG_IDS.setdefault(name, len(_TAG_IDS) + 1), name)


def value(name):
    if not name:
        return Value()
    return Value(_VALUE_IDS.setdefault(name, len(_VALUE_IDS) + 1), name)


def imp(implying, implied):
    """Build an implication from "tag" or "tag=value" strings."""
    def split(side):
        name, _, val = side.partition("=")
        return tag(name), value(val)

    a_tag, a_value = split(implying)
    b_tag, b_value = split(implied)
    return Implication(a_tag, a_value, b_tag, b_value)


def or_terms(expr):
    """Flatten a left-nested Or chain into its terms."""
    if isinstance(expr, Or):
        return or_terms(expr.left) + or_terms(expr.right)
    return [expr]


@pytest.fixture
def animals():
    return Implications([
        imp("cat", "animal"),
        imp("dog", "animal"),
        imp("puppy", "dog"),
    ])


# ---------------------------------------------------------------------------
# Leaf expansion
# ---------------------------------------------------------------------------


class TestLeafExpansion:
    def test_transitive_order(self, animals):
        result = expand(TagExpr("animal"), animals)
        assert or_terms(result) == [
            TagExpr("animal"), TagExpr("cat"), TagExpr("dog"), TagExpr("puppy"),
        ]

    def test_left_nested_shape(self, animals):
        result = expand(TagExpr("animal"), animals)
        assert result == Or(
            Or(Or(TagExpr("animal"), TagExpr("cat")), TagExpr("dog")),
            TagExpr("puppy"),
        )

    def test_no_implications_unchanged(self, animals):
        assert expand(TagExpr("puppy"), animals) == TagExpr("puppy")

    def test_intermediate_leaf(self, animals):
        result = expand(TagExpr("dog"), animals)
        assert result == Or(TagExpr("dog"), TagExpr("puppy"))

    def test_empty_implication_set(self):
        assert expand(TagExpr("animal"), Implications()) == TagExpr("animal")

    def test_valued_implying_side_becomes_comparison(self):
        implications = Implications([imp("rating=5", "good")])
        result = expand(TagExpr("good"), implications)
        assert result == Or(TagExpr("good"), Comparison("rating", "=", "5"))

    def test_equality_comparison_expanded(self):
        implications = Implications([imp("film=alien", "genre=scifi")])
        result = expand(Comparison("genre", "=", "scifi"), implications)
        assert result == Or(
            Comparison("genre", "=", "scifi"), Comparison("film", "=", "alien"),
        )

    def test_comparison_value_must_match(self):
        implications = Implications([imp("film=alien", "genre=scifi")])
        leaf = Comparison("genre", "=", "western")
        assert expand(leaf, implications) == leaf

    def test_bare_tag_does_not_match_valued_implication(self):
        implications = Implications([imp("film=alien", "genre=scifi")])
        assert expand(TagExpr("genre"), implications) == TagExpr("genre")

    @pytest.mark.parametrize("op", ["!=", "<", ">", "<=", ">="])
    def test_non_equality_left_untouched(self, op):
        implications = Implications([imp("big", "size=100"), imp("huge", "size")])
        leaf = Comparison("size", op, "100")
        assert expand(leaf, implications) is leaf


# ---------------------------------------------------------------------------
# Termination and uniqueness
# ---------------------------------------------------------------------------


class TestCycles:
    def test_two_cycle_terminates(self):
        implications = Implications([imp("a", "b"), imp("b", "a")])
        result = expand(TagExpr("b"), implications)
        # each implying pair contributes one term
        assert or_terms(result)[1:] == [TagExpr("a"), TagExpr("b")]

    def test_self_implication(self):
        implications = Implications([imp("a", "a")])
        assert expand(TagExpr("a"), implications) == Or(TagExpr("a"), TagExpr("a"))

    def test_long_cycle_each_pair_once(self):
        names = [f"t{i}" for i in range(20)]
        implications = Implications(
            imp(names[i], names[(i + 1) % len(names)]) for i in range(len(names))
        )
        terms = or_terms(expand(TagExpr("t0"), implications))[1:]
        assert len(terms) == len(names)
        assert len(set(terms)) == len(terms)

    def test_diamond_reached_twice_expanded_once(self):
        implications = Implications([
            imp("left", "top"),
            imp("right", "top"),
            imp("bottom", "left"),
            imp("bottom", "right"),
        ])
        terms = or_terms(expand(TagExpr("top"), implications))
        assert terms == [TagExpr("top"), TagExpr("left"), TagExpr("right"), TagExpr("bottom")]

    def test_expand_leaf_directly(self, animals):
        result = expand_leaf(TagExpr("animal"), "animal", "", animals)
        assert len(or_terms(result)) == 4


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


class TestTraversal:
    def test_structure_preserved(self, animals):
        expr = And(Not(TagExpr("dog")), Or(TagExpr("cat"), Empty()))
        result = expand(expr, animals)
        assert result == And(
            Not(Or(TagExpr("dog"), TagExpr("puppy"))),
            Or(TagExpr("cat"), Empty()),
        )

    def test_every_leaf_expanded(self, animals):
        expr = Or(TagExpr("animal"), TagExpr("dog"))
        result = expand(expr, animals)
        assert isinstance(result, Or)
        assert len(or_terms(result.left)) == 4
        assert len(or_terms(result.right)) == 2

    def test_empty_passes_through(self, animals):
        empty = Empty()
        assert expand(empty, animals) is empty

    def test_input_not_mutated(self, animals):
        expr = And(TagExpr("animal"), TagExpr("cat"))
        expand(expr, animals)
        assert expr == And(TagExpr("animal"), TagExpr("cat"))

    def test_unsupported_node_is_invariant_violation(self, animals):
        @dataclass(frozen=True)
        class Xor:
            left: object
            right: object

        with pytest.raises(UnsupportedExpression) as excinfo:
            expand(And(TagExpr("a"), Xor(TagExpr("b"), TagExpr("c"))), animals)
        assert isinstance(excinfo.value, InvariantViolation)
        assert "Xor" in str(excinfo.value)
