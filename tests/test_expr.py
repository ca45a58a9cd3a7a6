"""
Tests for iestagram.query.expr predicates.

Covers in-memory evaluation (SQL null semantics included) and rendering
into WHERE fragments for both placeholder styles.
"""

import pytest

from iestagram.query.expr import (
    Eq, Neq, In, ILike, Or, like_to_regex, split_predicates, condition,
)
from iestagram.query.sql import _Context


@pytest.fixture
def ctx():
    """Numeric-placeholder context with native ILIKE."""
    return _Context('numeric', native_ilike=True)


# =============================================================================
# Evaluation
# =============================================================================

class TestEqEvaluate:
    """Tests for Eq.evaluate."""

    def test_matches_equal_value(self):
        assert Eq('username', 'alice').evaluate({'username': 'alice'}) is True

    def test_rejects_other_value(self):
        assert Eq('username', 'alice').evaluate({'username': 'bob'}) is False

    def test_missing_field_does_not_match(self):
        assert Eq('username', 'alice').evaluate({}) is False

    def test_none_matches_null(self):
        """Eq with None behaves like IS NULL."""
        assert Eq('user_id', None).evaluate({'user_id': None}) is True
        assert Eq('user_id', None).evaluate({}) is True
        assert Eq('user_id', None).evaluate({'user_id': 'u1'}) is False


class TestNeqEvaluate:
    """Tests for Neq.evaluate."""

    def test_matches_different_value(self):
        assert Neq('type', 'video').evaluate({'type': 'photo'}) is True

    def test_rejects_equal_value(self):
        assert Neq('type', 'video').evaluate({'type': 'video'}) is False

    def test_null_never_matches(self):
        """NULL != 'x' is unknown in SQL, so the row is excluded."""
        assert Neq('type', 'video').evaluate({'type': None}) is False
        assert Neq('type', 'video').evaluate({}) is False

    def test_none_means_is_not_null(self):
        assert Neq('type', None).evaluate({'type': 'text'}) is True
        assert Neq('type', None).evaluate({'type': None}) is False


class TestInEvaluate:
    """Tests for In.evaluate."""

    def test_member_matches(self):
        assert In('id', ['a', 'b']).evaluate({'id': 'b'}) is True

    def test_non_member_rejected(self):
        assert In('id', ['a', 'b']).evaluate({'id': 'c'}) is False

    def test_null_never_matches(self):
        assert In('id', ['a', None]).evaluate({'id': None}) is False

    def test_empty_set_matches_nothing(self):
        pred = In('id', [])
        assert pred.forces_empty is True
        assert pred.evaluate({'id': 'a'}) is False

    def test_duplicates_collapsed(self):
        assert In('id', ['a', 'b', 'a']).values == ['a', 'b']


class TestILikeEvaluate:
    """Tests for ILike.evaluate."""

    @pytest.mark.parametrize("value,expected", [
        ('bob', True),
        ('Bobby', True),
        ('alice', False),
    ])
    def test_percent_wildcard(self, value, expected):
        assert ILike('username', '%bo%').evaluate({'username': value}) is expected

    @pytest.mark.parametrize("value,expected", [
        ('bob', True),
        ('BOB', True),
        ('bb', False),
        ('boob', False),
    ])
    def test_underscore_matches_exactly_one(self, value, expected):
        assert ILike('username', 'b_b').evaluate({'username': value}) is expected

    def test_pattern_is_anchored(self):
        assert ILike('username', 'bo').evaluate({'username': 'bob'}) is False

    def test_regex_metacharacters_are_literal(self):
        pred = ILike('email', 'a.b%')
        assert pred.evaluate({'email': 'a.b@example.com'}) is True
        assert pred.evaluate({'email': 'axb@example.com'}) is False

    def test_non_string_never_matches(self):
        assert ILike('username', '%').evaluate({'username': None}) is False
        assert ILike('username', '%').evaluate({'username': 42}) is False

    def test_null_pattern_never_matches(self):
        assert ILike('username', None).evaluate({'username': 'bob'}) is False
        assert ILike('username', None).evaluate({'username': None}) is False


class TestOrEvaluate:
    """Tests for Or.evaluate."""

    def test_any_condition_suffices(self):
        pred = Or([Eq('a', 'x'), Eq('a', 'z')])
        assert pred.evaluate({'a': 'z'}) is True
        assert pred.evaluate({'a': 'y'}) is False

    def test_empty_group_matches_nothing(self):
        assert Or([]).evaluate({'a': 'x'}) is False


# =============================================================================
# SQL rendering
# =============================================================================

class TestToSql:
    """Tests for predicate SQL fragments."""

    def test_eq(self, ctx):
        assert Eq('username', 'alice').to_sql(ctx) == "username = $1"
        assert ctx.params == ['alice']

    def test_eq_none_is_null(self, ctx):
        assert Eq('user_id', None).to_sql(ctx) == "user_id IS NULL"
        assert ctx.params == []

    def test_neq(self, ctx):
        assert Neq('type', 'video').to_sql(ctx) == "type != $1"

    def test_in(self, ctx):
        assert In('id', ['a', 'b', 'c']).to_sql(ctx) == "id IN ($1, $2, $3)"
        assert ctx.params == ['a', 'b', 'c']

    def test_empty_in_is_false(self, ctx):
        assert In('id', []).to_sql(ctx) == "1 = 0"

    def test_native_ilike(self, ctx):
        assert ILike('username', '%bo%').to_sql(ctx) == "username ILIKE $1"

    def test_emulated_ilike(self):
        ctx = _Context('named', native_ilike=False)
        assert ILike('username', '%bo%').to_sql(ctx) == "LOWER(username) LIKE LOWER(:p1)"
        assert ctx.params == ['%bo%']

    def test_or_is_parenthesized(self, ctx):
        pred = Or([Eq('email', 'a@b.c'), Eq('username', 'alice')])
        assert pred.to_sql(ctx) == "(email = $1 OR username = $2)"

    def test_qualified_columns(self):
        ctx = _Context('numeric', native_ilike=True, qualifier='posts')
        assert Eq('id', 'p1').to_sql(ctx) == "posts.id = $1"

    def test_placeholders_continue_across_predicates(self, ctx):
        Eq('a', 1).to_sql(ctx)
        assert In('b', [2, 3]).to_sql(ctx) == "b IN ($2, $3)"


# =============================================================================
# Helpers
# =============================================================================

class TestHelpers:
    """Tests for module helpers."""

    def test_like_to_regex_is_case_insensitive(self):
        assert like_to_regex('ab%').fullmatch('ABC') is not None

    def test_like_to_regex_spans_newlines(self):
        assert like_to_regex('a%b').fullmatch('a\nb') is not None

    def test_split_predicates(self):
        group = Or([Eq('a', 1)])
        regular, groups = split_predicates([Eq('b', 2), group, Neq('c', 3)])
        assert len(regular) == 2
        assert groups == [group]

    def test_condition_builds_known_ops(self):
        assert condition('a', 'eq', 'x') == Eq('a', 'x')
        assert condition('a', 'neq', 'x') == Neq('a', 'x')
        assert condition('a', 'in', ['x', 'y']) == In('a', ['x', 'y'])

    def test_condition_rejects_unknown_op(self):
        assert condition('a', 'gt', 'x') is None
