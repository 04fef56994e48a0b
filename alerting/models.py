"""Records produced by the engine: alerts and per-step results.

Alerts are frozen once built.  ``to_dict()`` is the wire form the service
publishes to the alerts topic and the webhook notifier builds on.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Alert:
    rule_id: str
    rule_name: str
    severity: str
    event: dict[str, Any]
    message: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    triggered_at: str = field(default_factory=_utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "severity": self.severity,
            "triggered_at": self.triggered_at,
            "event": self.event,
            "message": self.message,
        }


@dataclass(frozen=True)
class AggregationResult:
    triggered: bool
    count: int


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of one (event, rule) evaluation.

    ``aggregation_count`` is only set for aggregating rules that matched;
    it is reported even when no alert fired so callers can watch a key
    approach its threshold.
    """

    alert: Alert | None = None
    aggregation_count: int | None = None
