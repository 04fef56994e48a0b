"""Alert engine — the per-event dispatch loop.

Pure business logic, no Kafka dependency.  The service in alerting.main
feeds events in and publishes the resulting alerts.

For each event every loaded rule is evaluated independently, in load
order.  Each alert is handed to that rule's notifiers before the next rule
runs.  Nothing a single rule or notifier does can make process() raise.
"""

import logging
from typing import Any, Callable, Iterable

from alerting import metrics
from alerting.aggregator import AggregationTracker
from alerting.evaluator import RuleEvaluator
from alerting.models import Alert
from alerting.notifiers import Notifier, create_notifier
from alerting.rules import DetectionRule, NotifierConfig

log = logging.getLogger(__name__)


class AlertEngine:

    def __init__(self, rules: Iterable[DetectionRule],
                 evaluator: RuleEvaluator | None = None,
                 notifier_factory: Callable[[NotifierConfig], Notifier] = create_notifier):
        self._rules: tuple[DetectionRule, ...] = tuple(rules)
        self.evaluator = evaluator if evaluator is not None else RuleEvaluator()

        # Notifiers are built once per rule; a bad target descriptor costs
        # that target only, not the rule.
        self._notifiers: dict[str, list[Notifier]] = {}
        for rule in self._rules:
            targets = []
            for action in rule.actions:
                try:
                    targets.append(notifier_factory(action))
                except ValueError as e:
                    log.error("Rule %s: skipping notification target %r: %s",
                              rule.id, action.type, e)
            self._notifiers[rule.id] = targets

        retention = self.evaluator.tracker.retention_seconds
        for rule in self._rules:
            agg = rule.conditions.aggregation
            if agg is not None and agg.time_window_seconds >= retention:
                log.warning("Rule %s: window %ss is not shorter than bucket "
                            "retention %ss; its buckets may be evicted mid-window",
                            rule.id, agg.time_window_seconds, retention)

        metrics.publish_rules(self._rules)

    @property
    def rules(self) -> tuple[DetectionRule, ...]:
        return self._rules

    @property
    def tracker(self) -> AggregationTracker:
        return self.evaluator.tracker

    def process(self, event: dict[str, Any]) -> list[Alert]:
        """Feed one event, get back every alert it produced."""
        alerts = []
        metrics.events_processed_total.inc()

        for rule in self._rules:
            try:
                result = self.evaluator.evaluate(event, rule)
            except Exception:
                metrics.rule_errors_total.labels(rule_id=rule.id).inc()
                log.exception("Rule %s failed on event %s",
                              rule.id, _event_id(event))
                continue

            if result.alert is None:
                continue

            alerts.append(result.alert)
            metrics.alerts_total.labels(
                rule_id=rule.id, severity=result.alert.severity,
            ).inc()
            self._notify(rule.id, result.alert)

        return alerts

    def aggregation_count(self, rule_id: str, value: str) -> int:
        """Current in-window count for (rule, grouping value)."""
        return self.evaluator.tracker.count(rule_id, value)

    def close(self) -> None:
        self.evaluator.close()

    def _notify(self, rule_id: str, alert: Alert) -> None:
        for notifier in self._notifiers.get(rule_id, []):
            target = getattr(notifier, "type", type(notifier).__name__)
            try:
                delivered = notifier.notify(alert)
            except Exception:
                log.exception("Notification via %s failed for rule %s (alert %s)",
                              target, rule_id, alert.id)
                delivered = False
            else:
                if not delivered:
                    log.error("Notification via %s rejected for rule %s (alert %s)",
                              target, rule_id, alert.id)
            if not delivered:
                metrics.notification_failures_total.labels(
                    rule_id=rule_id, target=target,
                ).inc()


def _event_id(event: Any) -> str:
    if isinstance(event, dict):
        return str(event.get("id", "?"))
    return "?"
