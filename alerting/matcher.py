"""Condition matching — does one event satisfy one rule's structural filters?

Pure functions only; no state, no I/O.  Events are the decoded JSON dicts
coming off the bus, so any field may be present, missing, null, or of an
unexpected type.  Every path through here returns a bool rather than
raising: a malformed condition makes its rule not match, it never aborts
the evaluation of other rules.
"""

import json
from collections.abc import Mapping
from typing import Any, Callable

from alerting.rules import DetectionRule, FieldCondition, Operator


class _Missing:
    """Sentinel for a path that does not resolve inside the event."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


# ---------------------------------------------------------------------------
# Field access
# ---------------------------------------------------------------------------

def lookup(event: Any, path: str) -> Any:
    """Resolve a dotted path such as ``actor.geo.country`` inside *event*.

    Descends one segment at a time through mappings (and through lists when
    the segment is a decimal index).  Returns MISSING the moment a segment
    is absent or the current value is not a container.  A present ``null``
    is returned as None, distinct from MISSING.
    """
    current = event
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def stringify(value: Any) -> str | None:
    """Render a field value as an aggregation key, or None if there is none.

    Objects and arrays serialise to canonical JSON so two events carrying the
    same structure land in the same bucket regardless of key order.
    """
    if value is MISSING or value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return str(value)


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    # bool is an int subclass; a JSON true is not the number 1
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equal(actual: Any, expected: Any) -> bool:
    """Type-sensitive equality: "1" != 1, True != 1, 1 == 1.0.

    Lists and mappings compare element by element with the same rules, so
    [1] != [True].
    """
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual is expected
    if _is_number(actual) or _is_number(expected):
        return _is_number(actual) and _is_number(expected) and actual == expected
    if isinstance(actual, str) or isinstance(expected, str):
        return isinstance(actual, str) and isinstance(expected, str) and actual == expected
    if actual is None or expected is None:
        return actual is expected
    if isinstance(actual, Mapping) or isinstance(expected, Mapping):
        return (isinstance(actual, Mapping) and isinstance(expected, Mapping)
                and actual.keys() == expected.keys()
                and all(_equal(actual[k], expected[k]) for k in actual))
    if isinstance(actual, (list, tuple)) or isinstance(expected, (list, tuple)):
        return (isinstance(actual, (list, tuple)) and isinstance(expected, (list, tuple))
                and len(actual) == len(expected)
                and all(_equal(a, e) for a, e in zip(actual, expected)))
    return actual == expected


def _contains(actual: Any, expected: Any) -> bool:
    return isinstance(actual, str) and isinstance(expected, str) and expected in actual


def _member(actual: Any, expected: Any) -> bool:
    if not isinstance(expected, _SEQUENCE_TYPES):
        return False
    return any(_equal(actual, candidate) for candidate in expected)


def _numeric(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    return lambda a, b: _is_number(a) and _is_number(b) and op(a, b)


# Every Operator member must have an entry; test_matcher checks this.
# MISSING needs no special case: it equals nothing, contains nothing and
# is not a number, so the negated operators come out True for free.
_OPS: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQ: _equal,
    Operator.NEQ: lambda a, b: not _equal(a, b),
    Operator.CONTAINS: _contains,
    Operator.NOT_CONTAINS: lambda a, b: not _contains(a, b),
    Operator.IN: _member,
    Operator.NOT_IN: lambda a, b: not _member(a, b),
    Operator.GT: _numeric(lambda a, b: a > b),
    Operator.LT: _numeric(lambda a, b: a < b),
    Operator.GTE: _numeric(lambda a, b: a >= b),
    Operator.LTE: _numeric(lambda a, b: a <= b),
}


def compare(actual: Any, operator: str | Operator, expected: Any) -> bool:
    """Apply *operator* to (actual, expected).  Unknown operators are False."""
    try:
        op = Operator(operator)
    except (ValueError, TypeError):
        return False
    return _OPS[op](actual, expected)


# ---------------------------------------------------------------------------
# Rule matching
# ---------------------------------------------------------------------------

def _matches_filter(actual: Any, expected: Any) -> bool:
    if expected is None or expected == "":
        return True
    if isinstance(expected, _SEQUENCE_TYPES):
        return _member(actual, expected)
    return _equal(actual, expected)


def evaluate_condition(event: Any, condition: FieldCondition) -> bool:
    return compare(lookup(event, condition.field), condition.operator, condition.value)


def matches(event: Any, rule: DetectionRule) -> bool:
    """True if *event* passes the rule's type, action and field filters.

    Checked in that order, stopping at the first failure.  An empty
    field-condition list is vacuously true.
    """
    conditions = rule.conditions
    if not _matches_filter(lookup(event, "event_type"), conditions.event_type):
        return False
    if not _matches_filter(lookup(event, "event_action"), conditions.event_action):
        return False
    return all(evaluate_condition(event, c) for c in conditions.field_conditions)
