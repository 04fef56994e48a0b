# Detection rules are declarative data, loaded from YAML.
#
# A rule is a filter (event_type / event_action), an AND-list of field
# comparisons, and optionally a counting threshold over a tumbling window.
# Rules carry no behaviour of their own: the matcher, tracker and evaluator
# interpret them.  Keeping rules as frozen records means the engine can
# hand the loaded set out for inspection without anyone mutating it.

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Operator(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IN = "in"
    NOT_IN = "not_in"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"


@dataclass(frozen=True)
class FieldCondition:
    """One comparison between a (dotted-path) event field and a literal.

    ``operator`` is kept as written in the rule file.  It is resolved
    against :class:`Operator` at evaluation time so that a typo makes the
    condition fail closed instead of rejecting the whole rule file.
    """

    field: str
    operator: str
    value: Any = None


@dataclass(frozen=True)
class AggregationCondition:
    field: str
    count_threshold: int
    time_window_seconds: float


@dataclass(frozen=True)
class RuleConditions:
    # str = exact match, tuple = any-of, None = match everything
    event_type: str | tuple[str, ...] | None = None
    event_action: str | tuple[str, ...] | None = None
    field_conditions: tuple[FieldCondition, ...] = ()
    aggregation: AggregationCondition | None = None


@dataclass(frozen=True)
class NotifierConfig:
    type: str  # console | webhook | slack
    config: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DetectionRule:
    id: str
    name: str
    severity: Severity
    conditions: RuleConditions = field(default_factory=RuleConditions)
    actions: tuple[NotifierConfig, ...] = ()
    description: str = ""
    enabled: bool = True

    @property
    def aggregation(self) -> AggregationCondition | None:
        return self.conditions.aggregation
