"""Normalization schema primitives.

Defines lightweight dataclasses describing how to normalize records:
- `FieldMapping`: source field -> target field, directly or via a named transform
- `TypeMapping`: target type for a field after mapping
- `ValidationRule`: one check with a severity
- `TransformationRule` / `Condition`: computed fields gated by structured conditions
- `QualityThreshold`: weighted quality metric
- `NormalizationSchema`: the full rule set for a family of engines

Transform logic is referenced through `TransformFunction` members only; the
callable bound to each member lives in `transforms.TRANSFORMS`.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from dataseed.core.errors import Severity
from dataseed.core.records import RecordShape


class TransformKind(str, Enum):
    DIRECT = "direct"
    CALCULATED = "calculated"
    AGGREGATED = "aggregated"
    DERIVED = "derived"


class TransformFunction(str, Enum):
    ENGAGEMENT_SCORE = "engagement_score"
    NORMALIZE_PAGE_PATH = "normalize_page_path"
    INTERACTION_FEATURES = "interaction_features"
    AGGREGATE_PLATFORM_METRICS = "aggregate_platform_metrics"
    AGGREGATE_CAMPAIGN_METRICS = "aggregate_campaign_metrics"
    SEGMENT_AUDIENCE = "segment_audience"
    SUM_FIELDS = "sum_fields"
    RATIO = "ratio"
    COALESCE = "coalesce"
    EXTRACT = "extract"


TargetType = Literal["string", "number", "boolean", "date", "array", "object"]
ValidationKind = Literal["required", "range", "pattern", "allowed", "min_length"]
MetricName = Literal["completeness", "accuracy", "consistency"]
ConditionOp = Literal["exists", "eq", "ne", "gt", "ge", "lt", "le"]


class _NoDefault:
    def __repr__(self) -> str:
        return "NO_DEFAULT"


NO_DEFAULT: Any = _NoDefault()


# ---- Field mapping ----


@dataclass(frozen=True)
class FieldMapping:
    """Map one source field onto a target field."""

    source_field: str
    target_field: str
    kind: TransformKind = TransformKind.DIRECT
    function: TransformFunction | None = None
    default: Any = NO_DEFAULT
    required: bool = False
    priority: int = 0
    alternates: tuple[str, ...] = ()  # tried in order when source_field is absent

    def __post_init__(self) -> None:
        object.__setattr__(self, "alternates", tuple(self.alternates))
        if self.kind is not TransformKind.DIRECT and self.function is None:
            raise ValueError(
                f"{self.source_field}->{self.target_field}: {self.kind.value} mapping needs a transform function"
            )

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    @property
    def source_fields(self) -> tuple[str, ...]:
        return (self.source_field, *self.alternates)


@dataclass(frozen=True)
class TypeMapping:
    field: str
    target_type: TargetType
    number_precision: int | None = None
    date_format: str = "iso8601"  # "iso8601" or a strftime pattern
    array_delimiter: str = ","


# ---- Validation ----


@dataclass(frozen=True)
class ValidationRule:
    rule_id: str
    field: str
    kind: ValidationKind
    params: Mapping[str, Any] = field(default_factory=dict)
    message: str = ""
    severity: Severity = "error"

    def __post_init__(self) -> None:
        match self.kind:
            case "range":
                if "min" not in self.params and "max" not in self.params:
                    raise ValueError(f"{self.rule_id}: range rule needs 'min' and/or 'max'")
            case "pattern":
                re.compile(self.params["pattern"])
            case "allowed":
                if "values" not in self.params:
                    raise ValueError(f"{self.rule_id}: allowed rule needs 'values'")
            case "min_length":
                if "length" not in self.params:
                    raise ValueError(f"{self.rule_id}: min_length rule needs 'length'")
            case "required":
                pass
            case _:
                raise ValueError(f"{self.rule_id}: unknown validation kind {self.kind!r}")


# ---- Transformation rules ----

_OPS: dict[str, Callable[[Any, Any], bool]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "ge": operator.ge,
    "lt": operator.lt,
    "le": operator.le,
}


@dataclass(frozen=True)
class Condition:
    """Structured predicate on one field (no expression strings)."""

    field: str
    op: ConditionOp = "exists"
    value: Any = None

    def __post_init__(self) -> None:
        if self.op != "exists" and self.op not in _OPS:
            raise ValueError(f"unknown condition operator: {self.op!r}")

    def holds(self, record: Mapping[str, Any]) -> bool:
        current = record.get(self.field)
        if self.op == "exists":
            return current is not None
        if current is None:
            return False
        try:
            return bool(_OPS[self.op](current, self.value))
        except TypeError:
            return False


@dataclass(frozen=True)
class TransformationRule:
    rule_id: str
    name: str
    source_fields: tuple[str, ...]
    target_field: str
    function: TransformFunction
    conditions: tuple[Condition, ...] = ()
    priority: int = 0

    def applies_to(self, record: Mapping[str, Any]) -> bool:
        return all(c.holds(record) for c in self.conditions)


# ---- Quality ----


@dataclass(frozen=True)
class QualityThreshold:
    metric: MetricName
    min_threshold: float
    target_threshold: float
    weight: float

    def __post_init__(self) -> None:
        if self.weight < 0:
            raise ValueError("weight must be >= 0")


# ---- Schema ----


@dataclass(frozen=True)
class NormalizationSchema:
    schema_id: str
    name: str
    target_engines: tuple[str, ...]
    field_mappings: tuple[FieldMapping, ...] = ()
    type_mappings: tuple[TypeMapping, ...] = ()
    validation_rules: tuple[ValidationRule, ...] = ()
    transformation_rules: tuple[TransformationRule, ...] = ()
    quality_thresholds: tuple[QualityThreshold, ...] = ()
    shape: RecordShape = RecordShape.GENERIC
    carry_unmapped: bool = False  # keep unmapped source fields as extras

    def ordered_mappings(self) -> list[FieldMapping]:
        return sorted(self.field_mappings, key=lambda m: m.priority)

    def ordered_rules(self) -> list[TransformationRule]:
        return sorted(self.transformation_rules, key=lambda r: r.priority)
