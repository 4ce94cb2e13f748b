"""Deterministic type conversion for normalized fields."""

from __future__ import annotations

import json
import math
import re
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

import pandas as pd

from dataseed.core.errors import InvalidDate, TransformationError
from dataseed.normalization.specs import TypeMapping

_TRUTHY = {"true", "1", "yes", "on"}
_NON_NUMERIC = re.compile(r"[^0-9.eE+\-]")


def parse_timestamp(value: Any) -> pd.Timestamp:
    """Parse a date-like value into a UTC timestamp.

    Numbers are epoch seconds. Raises InvalidDate when unparseable.
    """
    if value is None or isinstance(value, bool) or value == "":
        raise InvalidDate(f"Invalid date: {value!r}")
    try:
        if isinstance(value, (int, float)):
            if not math.isfinite(value):
                raise InvalidDate(f"Invalid date: {value!r}")
            ts = pd.to_datetime(value, unit="s", utc=True)
        elif isinstance(value, (str, datetime, pd.Timestamp)):
            ts = pd.to_datetime(value, utc=True)
        else:
            raise InvalidDate(f"Invalid date: {value!r}")
    except (ValueError, TypeError, OverflowError, pd.errors.OutOfBoundsDatetime) as e:
        raise InvalidDate(f"Invalid date: {value!r}") from e
    if pd.isna(ts):
        raise InvalidDate(f"Invalid date: {value!r}")
    return ts


def to_number(value: Any, precision: int | None = None) -> float:
    if isinstance(value, bool):
        number = float(value)
    elif isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = _NON_NUMERIC.sub("", value)
        try:
            number = float(cleaned)
        except ValueError:
            raise TransformationError(f"Not a number: {value!r}") from None
    else:
        raise TransformationError(f"Not a number: {value!r}")
    if not math.isfinite(number):
        raise TransformationError(f"Not a finite number: {value!r}")
    return round(number, precision) if precision is not None else number


def to_boolean(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def to_date(value: Any, date_format: str = "iso8601") -> str:
    ts = parse_timestamp(value)
    if date_format.lower() in ("iso8601", "iso"):
        return ts.isoformat()
    return ts.strftime(date_format)


def to_array(value: Any, delimiter: str = ",") -> list[Any]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(delimiter) if item.strip()]
    if isinstance(value, Sequence):
        return list(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return [value]


def to_object(value: Any) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return {"value": value}
        return parsed if isinstance(parsed, dict) else {"value": parsed}
    return {"value": value}


def convert(value: Any, mapping: TypeMapping) -> Any:
    """Convert `value` to `mapping.target_type`. Raises TransformationError."""
    match mapping.target_type:
        case "string":
            return value if isinstance(value, str) else str(value)
        case "number":
            return to_number(value, mapping.number_precision)
        case "boolean":
            return to_boolean(value)
        case "date":
            return to_date(value, mapping.date_format)
        case "array":
            return to_array(value, mapping.array_delimiter)
        case "object":
            return to_object(value)
    raise TransformationError(f"Unsupported target type: {mapping.target_type!r}")
