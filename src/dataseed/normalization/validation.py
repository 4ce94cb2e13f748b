"""Validation of normalized records against schema rules."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from dataseed.core.errors import Severity, ValidationFailure
from dataseed.normalization.specs import ValidationRule


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    rule_id: str
    message: str
    severity: Severity
    record_index: int


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def check(value: Any, rule: ValidationRule) -> bool:
    """Return True when `value` satisfies `rule`."""
    match rule.kind:
        case "required":
            return value is not None and value != ""
        case "range":
            number = _as_float(value)
            if number is None:
                return False
            lo = rule.params.get("min")
            hi = rule.params.get("max")
            return (lo is None or number >= lo) and (hi is None or number <= hi)
        case "pattern":
            if value is None:
                return False
            return re.search(rule.params["pattern"], str(value)) is not None
        case "allowed":
            return value in rule.params["values"]
        case "min_length":
            try:
                return len(value) >= int(rule.params["length"])
            except TypeError:
                return False
    return False


def enforce(value: Any, rule: ValidationRule) -> None:
    """Raise `ValidationFailure` at the rule's severity when `value` breaks `rule`."""
    if not check(value, rule):
        raise ValidationFailure(rule.message or f"{rule.field} failed {rule.kind} check", severity=rule.severity)


def validate_record(
    record: Mapping[str, Any],
    rules: Sequence[ValidationRule],
    record_index: int,
) -> list[ValidationIssue]:
    """Evaluate every rule; a rule that fails to evaluate becomes an `error` issue."""
    issues: list[ValidationIssue] = []
    for rule in rules:
        try:
            enforce(record.get(rule.field), rule)
        except ValidationFailure as e:
            issues.append(
                ValidationIssue(
                    field=rule.field,
                    rule_id=rule.rule_id,
                    message=str(e),
                    severity=e.severity,
                    record_index=record_index,
                )
            )
        except Exception as e:
            issues.append(
                ValidationIssue(
                    field=rule.field,
                    rule_id=rule.rule_id,
                    message=f"Validation error: {e}",
                    severity="error",
                    record_index=record_index,
                )
            )
    return issues


def record_quality(field_count: int, issues: Sequence[ValidationIssue]) -> float:
    """Per-record quality: 0 on any critical issue, 1 with none, else the clean-field share."""
    if any(i.severity == "critical" for i in issues):
        return 0.0
    if not issues:
        return 1.0
    if field_count == 0:
        return 0.0
    return max(0.0, (field_count - len(issues)) / field_count)
