"""Tagged record model.

Records flowing through the pipeline are open key/value mappings, but each one
carries a `RecordShape` tag naming the schema it follows. The fields declared
for a shape live in `data`; anything else lands in the `extras` extension
map. Consumers read a `Record` like any other mapping.

Design notes
------------
- Only keys actually present in the source are stored, so key sets stay
  meaningful for consistency scoring.
- Records are treated as immutable by the pipeline: `with_fields` returns a
  new record instead of mutating in place.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RecordShape(str, Enum):
    CONTENT = "content"
    NAVIGATION = "navigation"
    CAMPAIGN = "campaign"
    BENCHMARK = "benchmark"
    GENERIC = "generic"


# Fixed field list per shape. GENERIC declares nothing: every key is an extra.
SHAPE_FIELDS: dict[RecordShape, tuple[str, ...]] = {
    RecordShape.CONTENT: (
        "id",
        "post_id",
        "content_id",
        "platform",
        "content_type",
        "content",
        "created_at",
        "timestamp",
        "likes",
        "comments",
        "shares",
        "impressions",
        "reach",
        "engagement_rate",
        "performance_score",
        "normalized_engagement",
        "platform_metrics",
        "source",
    ),
    RecordShape.NAVIGATION: (
        "id",
        "user_id",
        "session_id",
        "page_path",
        "page_url",
        "timestamp",
        "event_type",
        "time_on_page",
        "interaction_type",
        "interaction_features",
        "session_data",
        "properties",
        "source",
    ),
    RecordShape.CAMPAIGN: (
        "id",
        "campaign_id",
        "platform",
        "spend",
        "impressions",
        "clicks",
        "conversions",
        "performance_metrics",
        "audience_segments",
        "audience_data",
        "created_at",
        "source",
    ),
    RecordShape.BENCHMARK: (
        "id",
        "industry",
        "platform",
        "metric",
        "value",
        "percentile",
        "period",
        "date",
        "source",
    ),
    RecordShape.GENERIC: (),
}

# data_format names used by sources and engines, mapped to record shapes
FORMAT_SHAPES: dict[str, RecordShape] = {
    "content_posts": RecordShape.CONTENT,
    "social_posts": RecordShape.CONTENT,
    "content_performance": RecordShape.CONTENT,
    "engagement_data": RecordShape.CONTENT,
    "content_analytics": RecordShape.CONTENT,
    "performance_metrics": RecordShape.CONTENT,
    "instagram_insights": RecordShape.CONTENT,
    "linkedin_analytics": RecordShape.CONTENT,
    "facebook_insights": RecordShape.CONTENT,
    "twitter_analytics": RecordShape.CONTENT,
    "competitor_content": RecordShape.CONTENT,
    "synthetic_content": RecordShape.CONTENT,
    "navigation": RecordShape.NAVIGATION,
    "navigation_events": RecordShape.NAVIGATION,
    "user_behavior": RecordShape.NAVIGATION,
    "campaign_data": RecordShape.CAMPAIGN,
    "campaigns": RecordShape.CAMPAIGN,
    "campaign_performance": RecordShape.CAMPAIGN,
    "industry_benchmarks": RecordShape.BENCHMARK,
    "benchmark_metrics": RecordShape.BENCHMARK,
    "benchmarks": RecordShape.BENCHMARK,
}


def shape_for_format(data_format: str | None) -> RecordShape:
    """Return the record shape for a source/engine data format (GENERIC if unknown)."""
    if not data_format:
        return RecordShape.GENERIC
    return FORMAT_SHAPES.get(data_format.lower(), RecordShape.GENERIC)


@dataclass(slots=True)
class Record(Mapping[str, Any]):
    """A single record: shape tag + declared fields + extension map."""

    shape: RecordShape = RecordShape.GENERIC
    data: dict[str, Any] = field(default_factory=dict)
    extras: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], shape: RecordShape = RecordShape.GENERIC) -> Record:
        """Split a raw mapping into declared fields and extras for `shape`."""
        if isinstance(raw, Record) and raw.shape == shape:
            return raw
        declared = SHAPE_FIELDS[shape]
        data: dict[str, Any] = {}
        extras: dict[str, Any] = {}
        for k, v in raw.items():
            if k in declared:
                data[k] = v
            else:
                extras[k] = v
        return cls(shape=shape, data=data, extras=extras)

    # ---------- Mapping protocol ----------

    def __getitem__(self, key: str) -> Any:
        if key in self.data:
            return self.data[key]
        return self.extras[key]

    def __iter__(self) -> Iterator[str]:
        yield from self.data
        for k in self.extras:
            if k not in self.data:
                yield k

    def __len__(self) -> int:
        return len(self.data) + sum(1 for k in self.extras if k not in self.data)

    def __contains__(self, key: object) -> bool:
        return key in self.data or key in self.extras

    # ---------- helpers ----------

    @property
    def declared_fields(self) -> tuple[str, ...]:
        return SHAPE_FIELDS[self.shape]

    def to_dict(self) -> dict[str, Any]:
        """Flatten into a plain dict (declared fields first)."""
        return dict(self.items())

    def with_fields(self, updates: Mapping[str, Any]) -> Record:
        """Return a copy with `updates` routed into data or extras."""
        declared = SHAPE_FIELDS[self.shape]
        data = dict(self.data)
        extras = dict(self.extras)
        for k, v in updates.items():
            if k in declared:
                data[k] = v
            else:
                extras[k] = v
        return Record(shape=self.shape, data=data, extras=extras)

    def missing(self, required: Iterable[str]) -> list[str]:
        """Required fields that are absent or None."""
        return [f for f in required if self.get(f) is None]


def as_records(rows: Iterable[Mapping[str, Any]], shape: RecordShape = RecordShape.GENERIC) -> list[Record]:
    """Wrap raw mappings into `Record`s of a given shape."""
    return [Record.from_mapping(r, shape) for r in rows]
