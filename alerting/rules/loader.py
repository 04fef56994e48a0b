"""Load detection rules from YAML files.

Each *.yml / *.yaml file holds a top-level ``rules:`` list.  Loading a
directory is forgiving: a file that cannot be read or parsed is skipped,
an invalid rule is skipped, and every skip is logged.  Zero rules is a
valid (inert) result, never an error.  ``load_rules_from_string`` is the
strict variant for tests and tooling.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from alerting.rules import (
    AggregationCondition,
    DetectionRule,
    FieldCondition,
    NotifierConfig,
    Operator,
    RuleConditions,
    Severity,
)

log = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("id", "name", "severity", "conditions")
_REQUIRED_AGGREGATION = ("field", "count_threshold", "time_window_seconds")
_PATTERNS = ("*.yml", "*.yaml")
_OPERATOR_NAMES = frozenset(op.value for op in Operator)


def load_rules(directory: str | Path) -> list[DetectionRule]:
    """Load every enabled rule from the YAML files in *directory*."""
    directory = Path(directory)
    if not directory.is_dir():
        log.warning("Rules directory not found: %s", directory)
        return []

    paths = sorted(p for pattern in _PATTERNS for p in directory.glob(pattern))
    rules: list[DetectionRule] = []
    seen: set[str] = set()

    for path in paths:
        try:
            with open(path, encoding="utf-8") as f:
                document = yaml.safe_load(f)
            definitions = _rule_definitions(document)
        except (OSError, yaml.YAMLError, ValueError) as e:
            log.error("Skipping rules file %s: %s", path.name, e)
            continue

        for definition in definitions:
            if isinstance(definition, dict) and definition.get("enabled") is False:
                log.debug("%s: rule %s disabled", path.name, definition.get("id"))
                continue
            try:
                rule = parse_rule(definition)
            except ValueError as e:
                log.error("%s: skipping rule: %s", path.name, e)
                continue
            if rule.id in seen:
                log.error("%s: skipping duplicate rule id '%s'", path.name, rule.id)
                continue
            seen.add(rule.id)
            rules.append(rule)

    log.info("Loaded %d detection rules from %d files in %s",
             len(rules), len(paths), directory)
    return rules


def load_rules_from_string(content: str) -> list[DetectionRule]:
    """Parse a YAML document; raise ValueError on the first invalid rule."""
    definitions = _rule_definitions(yaml.safe_load(content))
    return [
        parse_rule(d) for d in definitions
        if not (isinstance(d, dict) and d.get("enabled") is False)
    ]


def parse_rule(definition: Any) -> DetectionRule:
    """Validate one rule mapping and build a DetectionRule from it."""
    if not isinstance(definition, dict):
        raise ValueError(f"rule must be a mapping, got {type(definition).__name__}")

    for name in _REQUIRED_FIELDS:
        if name not in definition:
            raise ValueError(f"rule {definition.get('id', '?')}: missing required field '{name}'")

    rule_id = definition["id"]
    if not isinstance(rule_id, str) or not rule_id:
        raise ValueError("rule id must be a non-empty string")

    try:
        severity = Severity(definition["severity"])
    except ValueError:
        raise ValueError(
            f"rule {rule_id}: unknown severity {definition['severity']!r}"
        ) from None

    return DetectionRule(
        id=rule_id,
        name=str(definition["name"]),
        severity=severity,
        conditions=_parse_conditions(rule_id, definition["conditions"]),
        actions=_parse_actions(rule_id, definition.get("actions") or []),
        description=str(definition.get("description") or ""),
        enabled=True,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _rule_definitions(document: Any) -> list:
    if document is None:
        return []
    if not isinstance(document, dict):
        raise ValueError("top level must be a mapping with a 'rules' list")
    definitions = document.get("rules") or []
    if not isinstance(definitions, list):
        raise ValueError("'rules' must be a list")
    return definitions


def _parse_conditions(rule_id: str, raw: Any) -> RuleConditions:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"rule {rule_id}: conditions must be a mapping")
    field_conditions = raw.get("field_conditions") or []
    if not isinstance(field_conditions, list):
        raise ValueError(f"rule {rule_id}: field_conditions must be a list")

    return RuleConditions(
        event_type=_parse_filter(rule_id, "event_type", raw.get("event_type")),
        event_action=_parse_filter(rule_id, "event_action", raw.get("event_action")),
        field_conditions=tuple(
            _parse_field_condition(rule_id, c) for c in field_conditions
        ),
        aggregation=_parse_aggregation(rule_id, raw.get("aggregation")),
    )


def _parse_filter(rule_id: str, name: str, value: Any) -> str | tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise ValueError(f"rule {rule_id}: {name} must be a string or a list of strings")


def _parse_field_condition(rule_id: str, raw: Any) -> FieldCondition:
    if not isinstance(raw, dict):
        raise ValueError(f"rule {rule_id}: field condition must be a mapping")
    field = raw.get("field")
    operator = raw.get("operator")
    if not isinstance(field, str) or not field:
        raise ValueError(f"rule {rule_id}: field condition needs a 'field' path")
    if not isinstance(operator, str):
        raise ValueError(f"rule {rule_id}: field condition on '{field}' needs an 'operator'")
    if operator not in _OPERATOR_NAMES:
        # Kept: the condition evaluates False at runtime.
        log.warning("rule %s: unknown operator '%s' on '%s'; condition will never match",
                    rule_id, operator, field)
    return FieldCondition(field=field, operator=operator, value=raw.get("value"))


def _parse_aggregation(rule_id: str, raw: Any) -> AggregationCondition | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"rule {rule_id}: aggregation must be a mapping")
    for name in _REQUIRED_AGGREGATION:
        if name not in raw:
            raise ValueError(f"rule {rule_id}: aggregation missing '{name}'")

    field = raw["field"]
    threshold = raw["count_threshold"]
    window = raw["time_window_seconds"]
    if not isinstance(field, str) or not field:
        raise ValueError(f"rule {rule_id}: aggregation field must be a non-empty string")
    if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 1:
        raise ValueError(f"rule {rule_id}: count_threshold must be a positive integer")
    if isinstance(window, bool) or not isinstance(window, (int, float)) or window <= 0:
        raise ValueError(f"rule {rule_id}: time_window_seconds must be a positive number")

    return AggregationCondition(
        field=field, count_threshold=threshold, time_window_seconds=window,
    )


def _parse_actions(rule_id: str, raw: Any) -> tuple[NotifierConfig, ...]:
    if not isinstance(raw, list):
        raise ValueError(f"rule {rule_id}: actions must be a list")
    actions = []
    for entry in raw:
        if not isinstance(entry, dict) or not isinstance(entry.get("type"), str):
            raise ValueError(f"rule {rule_id}: each action needs a 'type'")
        config = entry.get("config") or {}
        if not isinstance(config, dict):
            raise ValueError(f"rule {rule_id}: action config must be a mapping")
        actions.append(NotifierConfig(type=entry["type"], config=config))
    return tuple(actions)
