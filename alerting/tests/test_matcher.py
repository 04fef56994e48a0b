"""Tests for the condition matcher — lookup, operators, absence, rule filters."""

import copy

import pytest

from alerting.matcher import MISSING, _OPS, compare, lookup, matches, stringify
from alerting.rules import (
    DetectionRule,
    FieldCondition,
    Operator,
    RuleConditions,
    Severity,
)


def _event(event_type="authentication", event_action="login_failure",
           user="alice", ip="10.0.0.9", **extra):
    """Helper to build a normalized event with sane defaults."""
    e = {
        "id": "evt-1",
        "timestamp": "2026-01-01T00:00:00Z",
        "event_type": event_type,
        "event_action": event_action,
        "actor": {"user": user, "ip": ip, "geo": {"country": "US", "city": "Chicago"}},
        "target": {"type": "host", "name": "web-01", "port": 22},
        "metadata": {"attempts": 3, "tags": ["ssh", "prod"], "mfa": False},
    }
    e.update(extra)
    return e


def _rule(event_type=None, event_action=None, field_conditions=()):
    return DetectionRule(
        id="r1",
        name="Rule One",
        severity=Severity.HIGH,
        conditions=RuleConditions(
            event_type=event_type,
            event_action=event_action,
            field_conditions=tuple(FieldCondition(*c) for c in field_conditions),
        ),
    )


# ---------------------------------------------------------------------------
# lookup
# ---------------------------------------------------------------------------

class TestLookup:
    def test_top_level_field(self):
        assert lookup(_event(), "event_type") == "authentication"

    def test_nested_field(self):
        assert lookup(_event(), "actor.geo.country") == "US"

    def test_missing_leaf(self):
        assert lookup(_event(), "actor.email") is MISSING

    def test_missing_intermediate(self):
        assert lookup(_event(), "source.ip") is MISSING

    def test_stops_at_non_container(self):
        """actor.user is a string; descending into it yields MISSING, not a crash."""
        assert lookup(_event(), "actor.user.name") is MISSING

    def test_null_intermediate_is_missing(self):
        assert lookup(_event(actor=None), "actor.ip") is MISSING

    def test_present_null_is_none_not_missing(self):
        assert lookup(_event(actor=None), "actor") is None

    def test_list_index(self):
        assert lookup(_event(), "metadata.tags.1") == "prod"

    def test_list_index_out_of_range(self):
        assert lookup(_event(), "metadata.tags.5") is MISSING

    def test_non_mapping_event(self):
        assert lookup("not an event", "event_type") is MISSING


# ---------------------------------------------------------------------------
# stringify
# ---------------------------------------------------------------------------

class TestStringify:
    def test_string_passthrough(self):
        assert stringify("10.0.0.9") == "10.0.0.9"

    def test_int(self):
        assert stringify(22) == "22"

    def test_integral_float_renders_like_int(self):
        assert stringify(22.0) == "22"

    def test_float(self):
        assert stringify(1.5) == "1.5"

    def test_bool(self):
        assert stringify(True) == "true"
        assert stringify(False) == "false"

    def test_mapping_is_canonical_json(self):
        assert stringify({"b": 1, "a": 2}) == stringify({"a": 2, "b": 1}) == '{"a":2,"b":1}'

    def test_list(self):
        assert stringify(["x", 1]) == '["x",1]'

    def test_missing_and_none(self):
        assert stringify(MISSING) is None
        assert stringify(None) is None


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------

class TestOperatorTable:
    def test_every_operator_has_a_handler(self):
        assert set(_OPS) == set(Operator)

    def test_unknown_operator_fails_closed(self):
        assert compare("a", "regex", "a") is False

    def test_unhashable_operator_fails_closed(self):
        assert compare("a", ["eq"], "a") is False


class TestEquality:
    def test_eq_same_string(self):
        assert compare("root", "eq", "root")

    def test_eq_string_vs_number_never_equal(self):
        assert not compare("22", "eq", 22)
        assert compare("22", "neq", 22)

    def test_eq_bool_vs_number_never_equal(self):
        assert not compare(True, "eq", 1)
        assert not compare(0, "eq", False)

    def test_eq_int_and_float(self):
        assert compare(22, "eq", 22.0)

    def test_eq_nested_bool_vs_number_never_equal(self):
        assert compare([1], "eq", [True]) is False
        assert compare({"a": 1}, "eq", {"a": True}) is False
        assert compare({"a": [0]}, "neq", {"a": [False]}) is True

    def test_eq_containers_structural(self):
        assert compare(["ssh", "prod"], "eq", ["ssh", "prod"])
        assert compare({"a": 1, "b": [2.0]}, "eq", {"b": [2], "a": 1})
        assert not compare(["ssh"], "eq", ["ssh", "prod"])
        assert not compare({"a": 1}, "eq", {"a": 1, "b": 2})
        assert not compare(["a"], "eq", {"0": "a"})

    def test_eq_null(self):
        assert compare(None, "eq", None)
        assert not compare(None, "eq", "")

    def test_neq(self):
        assert compare("alice", "neq", "bob")
        assert not compare("alice", "neq", "alice")


class TestContains:
    def test_substring(self):
        assert compare("/etc/shadow", "contains", "shadow")
        assert not compare("/etc/passwd", "contains", "shadow")

    def test_non_string_actual(self):
        assert compare(["shadow"], "contains", "shadow") is False
        assert compare(["shadow"], "not_contains", "shadow") is True

    def test_non_string_expected(self):
        assert compare("123", "contains", 1) is False
        assert compare("123", "not_contains", 1) is True

    def test_not_contains_substring(self):
        assert not compare("/etc/shadow", "not_contains", "shadow")
        assert compare("/etc/passwd", "not_contains", "shadow")


class TestMembership:
    def test_in_list(self):
        assert compare("root", "in", ["root", "admin"])
        assert not compare("alice", "in", ["root", "admin"])

    def test_in_uses_type_sensitive_equality(self):
        assert not compare("22", "in", [22, 23])
        assert not compare(True, "in", [1])

    def test_in_with_container_candidates(self):
        assert compare([1], "in", [[1], [2]])
        assert not compare([1], "in", [[True]])
        assert compare({"a": 1}, "not_in", [{"a": True}])

    def test_expected_not_a_sequence(self):
        assert compare("root", "in", "root") is False
        assert compare("root", "not_in", "root") is True

    def test_not_in(self):
        assert compare("alice", "not_in", ["root", "admin"])
        assert not compare("root", "not_in", ["root", "admin"])


class TestNumeric:
    @pytest.mark.parametrize("op,expected", [
        ("gt", False), ("gte", True), ("lt", False), ("lte", True),
    ])
    def test_boundaries(self, op, expected):
        assert compare(5, op, 5) is expected

    def test_gt_lt(self):
        assert compare(6, "gt", 5)
        assert compare(4, "lt", 5)

    def test_string_operand_is_false(self):
        assert compare("6", "gt", 5) is False
        assert compare(6, "gt", "5") is False

    def test_bool_is_not_numeric(self):
        assert compare(True, "gte", 0) is False


class TestAbsence:
    """A missing field fails the positive operators and passes the negated ones."""

    @pytest.mark.parametrize("op,value", [
        ("eq", "x"), ("eq", None), ("gt", 0), ("lt", 0), ("gte", 0), ("lte", 0),
        ("contains", "x"), ("in", ["x"]),
    ])
    def test_positive_operators_false(self, op, value):
        assert compare(MISSING, op, value) is False

    @pytest.mark.parametrize("op,value", [
        ("neq", "x"), ("neq", None), ("not_contains", "x"), ("not_in", ["x"]),
    ])
    def test_negated_operators_true(self, op, value):
        assert compare(MISSING, op, value) is True


# ---------------------------------------------------------------------------
# Rule matching
# ---------------------------------------------------------------------------

class TestMatches:
    def test_empty_rule_matches_anything(self):
        assert matches(_event(), _rule())
        assert matches({}, _rule())

    def test_event_type_exact(self):
        assert matches(_event(), _rule(event_type="authentication"))
        assert not matches(_event(event_type="network"), _rule(event_type="authentication"))

    def test_event_type_any_of(self):
        rule = _rule(event_type=("network", "authentication"))
        assert matches(_event(), rule)
        assert not matches(_event(event_type="file"), rule)

    def test_event_action(self):
        assert matches(_event(), _rule(event_action="login_failure"))
        assert not matches(_event(event_action="login_success"),
                           _rule(event_action="login_failure"))

    def test_missing_event_type_fails_filter(self):
        event = _event()
        del event["event_type"]
        assert not matches(event, _rule(event_type="authentication"))

    def test_field_conditions_are_anded(self):
        rule = _rule(field_conditions=[
            ("actor.user", "eq", "alice"),
            ("metadata.attempts", "gte", 3),
        ])
        assert matches(_event(), rule)
        assert not matches(_event(user="bob"), rule)

    def test_unknown_operator_makes_rule_not_match(self):
        rule = _rule(field_conditions=[("actor.user", "like", "alice")])
        assert not matches(_event(), rule)

    def test_pure_and_repeatable(self):
        event = _event()
        snapshot = copy.deepcopy(event)
        rule = _rule(event_type="authentication",
                     field_conditions=[("actor.geo.country", "in", ["US", "CA"])])
        results = {matches(event, rule) for _ in range(5)}
        assert results == {True}
        assert event == snapshot

    def test_garbage_event_does_not_raise(self):
        rule = _rule(event_type="authentication",
                     field_conditions=[("actor.ip", "eq", "10.0.0.9")])
        assert matches(None, rule) is False
        assert matches(["a", "b"], rule) is False
