"""Prometheus metrics for the alerting service.

Each metric registers itself in prometheus_client's global REGISTRY on
construction.  The service calls start_http_server() once and every
GET /metrics serialises the current values; no extra wiring needed.
"""

from prometheus_client import Counter, Gauge

# ---------------------------------------------------------------------------
# Throughput
# ---------------------------------------------------------------------------
events_processed_total = Counter(
    "alerting_events_processed_total",
    "Events run through the dispatch loop",
)
alerts_total = Counter(
    "alerting_alerts_total",
    "Alerts produced",
    ["rule_id", "severity"],
)

# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------
notification_failures_total = Counter(
    "alerting_notification_failures_total",
    "Notification targets that failed or raised",
    ["rule_id", "target"],
)
rule_errors_total = Counter(
    "alerting_rule_errors_total",
    "Rule evaluations that raised instead of returning a result",
    ["rule_id"],
)

# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------
# Updated by the tracker's sweeper on every pass.
aggregation_buckets = Gauge(
    "alerting_aggregation_buckets",
    "Live aggregation buckets after the last sweep",
)
# One series per loaded rule (value always 1) so the loaded rule set can be
# read straight off /metrics.
rule_info = Gauge(
    "alerting_rule_info",
    "Loaded detection rules",
    ["rule_id", "name", "severity"],
)


def publish_rules(rules) -> None:
    """Replace the rule_info series with the given rule set."""
    rule_info.clear()
    for rule in rules:
        rule_info.labels(
            rule_id=rule.id, name=rule.name, severity=rule.severity.value,
        ).set(1)
