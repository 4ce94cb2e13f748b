"""Quality scoring for raw collected batches.

score = mean(completeness, consistency, accuracy), clamped to [0, 1].
An empty batch scores 0.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import pandas as pd

from dataseed.core.errors import InvalidDate
from dataseed.core.models import clamp01
from dataseed.normalization.conversion import parse_timestamp

TIMESTAMP_FIELDS: tuple[str, ...] = ("created_at", "timestamp", "date")
EARLIEST_PLAUSIBLE = pd.Timestamp("2020-01-01", tz="UTC")


@dataclass(frozen=True)
class QualityBreakdown:
    completeness: float
    consistency: float
    accuracy: float

    @property
    def score(self) -> float:
        return clamp01((self.completeness + self.consistency + self.accuracy) / 3)

    def as_dict(self) -> dict[str, float]:
        return {
            "completeness": self.completeness,
            "consistency": self.consistency,
            "accuracy": self.accuracy,
        }


def _filled(value: Any) -> bool:
    return value is not None and value != ""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class QualityScorer:
    def __init__(self, *, sample_size: int = 100, now: datetime | None = None) -> None:
        self.sample_size = sample_size
        self._now = now  # fixed clock for tests

    def score(self, records: Sequence[Mapping[str, Any]]) -> float:
        return self.breakdown(records).score

    def breakdown(self, records: Sequence[Mapping[str, Any]]) -> QualityBreakdown:
        if not records:
            return QualityBreakdown(0.0, 0.0, 0.0)
        return QualityBreakdown(
            completeness=self.completeness(records),
            consistency=self.consistency(records),
            accuracy=self.accuracy(records),
        )

    # ---------- sub-scores ----------

    def completeness(self, records: Sequence[Mapping[str, Any]]) -> float:
        sample = records[: self.sample_size]
        total = sum(len(r) for r in sample)
        if total == 0:
            return 0.0
        filled = sum(1 for r in sample for v in r.values() if _filled(v))
        return clamp01(filled / total)

    def consistency(self, records: Sequence[Mapping[str, Any]]) -> float:
        if not records:
            return 0.0
        reference = set(records[0].keys())
        same = sum(1 for r in records if set(r.keys()) == reference)
        return clamp01(same / len(records))

    def accuracy(self, records: Sequence[Mapping[str, Any]]) -> float:
        if not records:
            return 0.0
        now = pd.Timestamp(self._now or datetime.now(timezone.utc))
        if now.tzinfo is None:
            now = now.tz_localize("UTC")
        valid = sum(1 for r in records if self._record_plausible(r, now))
        return clamp01(valid / len(records))

    @staticmethod
    def _record_plausible(record: Mapping[str, Any], now: pd.Timestamp) -> bool:
        for name in TIMESTAMP_FIELDS:
            value = record.get(name)
            if value is None:
                continue
            try:
                ts = parse_timestamp(value)
            except InvalidDate:
                return False
            if ts > now or ts < EARLIEST_PLAUSIBLE:
                return False
        for value in record.values():
            if _is_number(value) and not math.isfinite(value):
                return False
        return True


def data_range(records: Sequence[Mapping[str, Any]]) -> tuple[str, str] | None:
    """Earliest and latest parseable timestamp across the batch, ISO formatted."""
    stamps: list[pd.Timestamp] = []
    for r in records:
        for name in TIMESTAMP_FIELDS:
            value = r.get(name)
            if value is None:
                continue
            try:
                stamps.append(parse_timestamp(value))
            except InvalidDate:
                pass
            break
    if not stamps:
        return None
    return min(stamps).isoformat(), max(stamps).isoformat()
