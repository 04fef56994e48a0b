"""Rule evaluation — one (event, rule) pair in, at most one alert out.

  1. Match  structural filters (matcher.matches)
  2. Count  only for rules with an aggregation block (tracker.track)
  3. Alert  immediate for plain rules, once per trigger for aggregated ones
"""

from typing import Any

from alerting.aggregator import AggregationTracker
from alerting.matcher import lookup, matches, stringify
from alerting.models import Alert, EvaluationResult
from alerting.rules import DetectionRule


class RuleContractError(RuntimeError):
    """A rule was used in a way its definition does not support."""


class RuleEvaluator:

    def __init__(self, tracker: AggregationTracker | None = None):
        self.tracker = tracker if tracker is not None else AggregationTracker()

    def evaluate(self, event: dict[str, Any], rule: DetectionRule) -> EvaluationResult:
        if not matches(event, rule):
            return EvaluationResult()

        aggregation = rule.conditions.aggregation
        if aggregation is None:
            return EvaluationResult(alert=self.build_alert(event, rule))

        result = self.tracker.track(rule.id, event, aggregation)
        if not result.triggered:
            return EvaluationResult(aggregation_count=result.count)

        return EvaluationResult(
            alert=self.build_aggregated_alert(event, rule, result.count),
            aggregation_count=result.count,
        )

    def build_alert(self, event: dict[str, Any], rule: DetectionRule) -> Alert:
        return Alert(
            rule_id=rule.id,
            rule_name=rule.name,
            severity=rule.severity.value,
            event=event,
            message=format_message(event, rule),
        )

    def build_aggregated_alert(self, event: dict[str, Any], rule: DetectionRule,
                               count: int) -> Alert:
        aggregation = rule.conditions.aggregation
        if aggregation is None:
            raise RuleContractError(
                f"rule '{rule.id}' has no aggregation condition; "
                f"cannot build an aggregated alert"
            )
        value = stringify(lookup(event, aggregation.field))
        return Alert(
            rule_id=rule.id,
            rule_name=rule.name,
            severity=rule.severity.value,
            event=event,
            message=format_aggregated_message(
                rule, count, value, aggregation.time_window_seconds,
            ),
        )

    def close(self) -> None:
        self.tracker.close()


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

def actor_label(event: dict[str, Any]) -> str:
    """Best available identifier for who did it: user, email, ip, 'unknown'."""
    for path in ("actor.user", "actor.email", "actor.ip"):
        value = lookup(event, path)
        if isinstance(value, str) and value:
            return value
    return "unknown"


def format_message(event: dict[str, Any], rule: DetectionRule) -> str:
    action = stringify(lookup(event, "event_action")) or "unknown"
    return f"{rule.name}: {action} by {actor_label(event)}"


def format_aggregated_message(rule: DetectionRule, count: int, value: str | None,
                              window_seconds: float) -> str:
    if float(window_seconds).is_integer():
        window_seconds = int(window_seconds)
    return f"{rule.name}: {count} occurrences from {value} in {window_seconds}s"
