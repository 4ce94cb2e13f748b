"""Built-in transform functions, statically bound to `TransformFunction` members.

Every function has the signature ``fn(record, source_fields) -> value`` where
`record` is a read-only mapping (the raw record, possibly layered under the
fields already produced by normalization) and `source_fields` are the fields
named by the mapping or rule that invoked it.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from dataseed.core.errors import TransformationError
from dataseed.normalization.specs import TransformFunction

TransformFn = Callable[[Mapping[str, Any], Sequence[str]], Any]


def _num(value: Any, default: float = 0.0) -> float:
    """Lenient numeric read: bools, None and garbage fall back to `default`."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _metrics_source(record: Mapping[str, Any], fields: Sequence[str]) -> Mapping[str, Any]:
    """Engagement counters may sit at top level or under a nested metrics object."""
    for f in fields:
        nested = record.get(f)
        if isinstance(nested, Mapping):
            return nested
    return record


def engagement_score(record: Mapping[str, Any], fields: Sequence[str]) -> float:
    """((likes + 2*comments + 3*shares) / impressions) * 100; impressions default to 1."""
    src = _metrics_source(record, fields)
    likes = _num(src.get("likes"))
    comments = _num(src.get("comments"))
    shares = _num(src.get("shares"))
    impressions = _num(src.get("impressions")) or 1.0
    return ((likes + comments * 2 + shares * 3) / impressions) * 100


_SLASHES = re.compile(r"/+")


def normalize_page_path(record: Mapping[str, Any], fields: Sequence[str]) -> str:
    raw = next((record.get(f) for f in fields if record.get(f)), None) or record.get("path") or "/"
    path = _SLASHES.sub("/", str(raw).strip().lower())
    if len(path) > 1:
        path = path.rstrip("/")
    if not path.startswith("/"):
        path = "/" + path
    return path


def interaction_features(record: Mapping[str, Any], fields: Sequence[str]) -> list[str]:
    """Distinct feature tags from a list of interaction dicts, in first-seen order."""
    interactions = next((record.get(f) for f in fields if record.get(f) is not None), None)
    if interactions is None:
        interactions = record.get("user_interactions", [])
    if not isinstance(interactions, Sequence) or isinstance(interactions, (str, bytes)):
        raise TransformationError("interactions must be a list")

    features: list[str] = []
    for it in interactions:
        if not isinstance(it, Mapping):
            continue
        if it.get("type"):
            features.append(str(it["type"]))
        if _num(it.get("duration")) > 30:
            features.append("long_duration")
        if _num(it.get("clicks")) > 5:
            features.append("high_activity")
    return list(dict.fromkeys(features))


def aggregate_platform_metrics(record: Mapping[str, Any], fields: Sequence[str]) -> dict[str, Any]:
    metrics = next((record.get(f) for f in fields if isinstance(record.get(f), Mapping)), None)
    if metrics is None:
        raise TransformationError("platform metrics missing")
    per_platform = [m for m in metrics.values() if isinstance(m, Mapping)]
    n = len(per_platform)
    return {
        "total_impressions": sum(_num(m.get("impressions")) for m in per_platform),
        "total_engagement": sum(_num(m.get("engagement")) for m in per_platform),
        "platform_count": n,
        "avg_performance": (sum(_num(m.get("performance_score")) for m in per_platform) / n) if n else 0.0,
    }


def aggregate_campaign_metrics(record: Mapping[str, Any], fields: Sequence[str]) -> dict[str, float]:
    metrics = next((record.get(f) for f in fields if isinstance(record.get(f), Mapping)), None)
    if metrics is None:
        raise TransformationError("campaign metrics missing")
    spend = _num(metrics.get("total_spend"))
    conversions = _num(metrics.get("total_conversions"))
    revenue = _num(metrics.get("revenue"))
    return {
        "total_spend": spend,
        "total_conversions": conversions,
        "cost_per_conversion": spend / (conversions or 1.0),
        "roi_percentage": ((revenue - spend) / (spend or 1.0)) * 100,
    }


def _primary_segment(audience: Mapping[str, Any]) -> str:
    level = str(audience.get("engagement_level") or "").lower()
    if level == "high":
        return "advocates"
    if level == "low":
        return "dormant"
    if audience.get("age_group"):
        return f"age_{audience['age_group']}"
    return "general"


def segment_audience(record: Mapping[str, Any], fields: Sequence[str]) -> dict[str, Any]:
    audience = next((record.get(f) for f in fields if isinstance(record.get(f), Mapping)), None)
    if audience is None:
        raise TransformationError("audience data missing")
    known = ("age_group", "gender", "location", "engagement_level", "activity_pattern")
    filled = sum(1 for k in known if audience.get(k))
    return {
        "primary_segment": _primary_segment(audience),
        "demographics": {
            "age_group": audience.get("age_group") or "unknown",
            "gender": audience.get("gender") or "unknown",
            "location": audience.get("location") or "unknown",
        },
        "behavior_profile": {
            "engagement_level": audience.get("engagement_level") or "medium",
            "activity_pattern": audience.get("activity_pattern") or "standard",
        },
        # more known attributes -> more confident segmentation
        "segment_confidence": round(0.5 + 0.5 * filled / len(known), 4),
    }


def sum_fields(record: Mapping[str, Any], fields: Sequence[str]) -> float:
    return sum(_num(record.get(f)) for f in fields)


def ratio(record: Mapping[str, Any], fields: Sequence[str]) -> float:
    if len(fields) != 2:
        raise TransformationError("ratio needs exactly two source fields")
    denominator = _num(record.get(fields[1]))
    if denominator == 0:
        raise TransformationError(f"ratio denominator {fields[1]!r} is zero or missing")
    return _num(record.get(fields[0])) / denominator


def coalesce(record: Mapping[str, Any], fields: Sequence[str]) -> Any:
    for f in fields:
        v = record.get(f)
        if v is not None and v != "":
            return v
    return None


def extract(record: Mapping[str, Any], fields: Sequence[str]) -> Any:
    """Walk a nested path: fields[0] is the top-level object, the rest are keys."""
    if not fields:
        raise TransformationError("extract needs at least one field")
    current: Any = record
    for key in fields:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


TRANSFORMS: dict[TransformFunction, TransformFn] = {
    TransformFunction.ENGAGEMENT_SCORE: engagement_score,
    TransformFunction.NORMALIZE_PAGE_PATH: normalize_page_path,
    TransformFunction.INTERACTION_FEATURES: interaction_features,
    TransformFunction.AGGREGATE_PLATFORM_METRICS: aggregate_platform_metrics,
    TransformFunction.AGGREGATE_CAMPAIGN_METRICS: aggregate_campaign_metrics,
    TransformFunction.SEGMENT_AUDIENCE: segment_audience,
    TransformFunction.SUM_FIELDS: sum_fields,
    TransformFunction.RATIO: ratio,
    TransformFunction.COALESCE: coalesce,
    TransformFunction.EXTRACT: extract,
}


def apply_transform(fn: TransformFunction, record: Mapping[str, Any], source_fields: Sequence[str]) -> Any:
    """Invoke the bound function; any failure surfaces as TransformationError."""
    try:
        return TRANSFORMS[fn](record, source_fields)
    except TransformationError:
        raise
    except Exception as e:
        raise TransformationError(f"{fn.value} failed: {type(e).__name__}: {e}") from e
