"""Named batch-level checks referenced by `CollectionStrategy.validation_rules`.

Each check inspects the records collected for a strategy and returns a
warning message, or None when the batch passes. Unknown names produce a
warning instead of failing the run.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

from dataseed.core.errors import InvalidDate
from dataseed.core.models import CollectionStrategy
from dataseed.normalization.conversion import parse_timestamp

BatchCheck = Callable[[Sequence[Mapping[str, Any]], CollectionStrategy], str | None]


def _share_with(records: Sequence[Mapping[str, Any]], *fields: str) -> float:
    if not records:
        return 0.0
    ok = sum(1 for r in records if all(r.get(f) not in (None, "") for f in fields))
    return ok / len(records)


def _field_present(*fields: str, label: str) -> BatchCheck:
    def check(records: Sequence[Mapping[str, Any]], strategy: CollectionStrategy) -> str | None:
        share = _share_with(records, *fields)
        threshold = strategy.requirements.completeness_threshold
        if share < threshold:
            return f"{label}: {share:.0%} of records carry {', '.join(fields)} (need {threshold:.0%})"
        return None

    return check


def _recent(label: str) -> BatchCheck:
    def check(records: Sequence[Mapping[str, Any]], strategy: CollectionStrategy) -> str | None:
        return _stale_message(records, strategy, label)

    return check


def _stale_message(records: Sequence[Mapping[str, Any]], strategy: CollectionStrategy, label: str) -> str | None:
    days = strategy.requirements.required_date_range_days
    if days <= 0:
        return None  # unbounded window
    horizon = datetime.now(timezone.utc) - timedelta(days=days)
    stale = 0
    for r in records:
        value = r.get("created_at") or r.get("timestamp")
        if value is None:
            continue
        try:
            if parse_timestamp(value) < horizon:
                stale += 1
        except InvalidDate:
            stale += 1
    if stale:
        return f"{label}: {stale} record(s) older than {days} days"
    return None


def _nested_present(parent: str, key: str, *, label: str) -> BatchCheck:
    def check(records: Sequence[Mapping[str, Any]], strategy: CollectionStrategy) -> str | None:
        if not records:
            return f"{label}: no records"
        ok = sum(1 for r in records if isinstance(r.get(parent), Mapping) and r[parent].get(key) is not None)
        threshold = strategy.requirements.completeness_threshold
        if ok / len(records) < threshold:
            return f"{label}: {ok}/{len(records)} record(s) carry {parent}.{key}"
        return None

    return check


def roi_calculable(records: Sequence[Mapping[str, Any]], strategy: CollectionStrategy) -> str | None:
    """Spend must be positive and revenue known for ROI to be computed."""
    missing = 0
    for r in records:
        metrics = r.get("campaign_metrics")
        if not isinstance(metrics, Mapping):
            missing += 1
            continue
        spend = metrics.get("total_spend")
        if not isinstance(spend, (int, float)) or spend <= 0 or metrics.get("revenue") is None:
            missing += 1
    if missing:
        return f"roi_calculable: ROI cannot be computed for {missing} record(s)"
    return None


def timestamps_sequential(records: Sequence[Mapping[str, Any]], strategy: CollectionStrategy) -> str | None:
    last = None
    for r in records:
        value = r.get("timestamp")
        if value is None:
            continue
        try:
            ts = parse_timestamp(value)
        except InvalidDate:
            return "timestamp_sequential: unparseable timestamp"
        if last is not None and ts < last:
            return "timestamp_sequential: timestamps are not in order"
        last = ts
    return None


CHECKS: dict[str, BatchCheck] = {
    "min_engagement_rate_present": _field_present("engagement_rate", label="min_engagement_rate_present"),
    "platform_metadata_complete": _field_present("platform", label="platform_metadata_complete"),
    "timestamp_within_range": _recent("timestamp_within_range"),
    "competitor_data_recent": _recent("competitor_data_recent"),
    "trend_data_validated": _field_present("source", "created_at", label="trend_data_validated"),
    "user_session_data_present": _field_present("user_id", "session_data", label="user_session_data_present"),
    "page_navigation_events_complete": _field_present("page_path", label="page_navigation_events_complete"),
    "timestamp_sequential": timestamps_sequential,
    "source_attribution_present": _field_present("source", label="source_attribution_present"),
    "financial_metrics_present": _field_present("campaign_metrics", label="financial_metrics_present"),
    "conversion_data_complete": _nested_present("campaign_metrics", "total_conversions", label="conversion_data_complete"),
    "roi_calculable": roi_calculable,
}


def run_checks(records: Sequence[Mapping[str, Any]], strategy: CollectionStrategy) -> list[str]:
    """Apply every named rule of `strategy`; return the warnings raised."""
    warnings: list[str] = []
    for name in strategy.validation_rules:
        check = CHECKS.get(name)
        if check is None:
            warnings.append(f"unknown validation rule: {name}")
            continue
        message = check(records, strategy)
        if message:
            warnings.append(message)
    return warnings
