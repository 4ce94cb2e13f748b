"""Built-in enrichment sources.

All sources are deterministic: the same record always yields the same fields
and quality estimate.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from dataseed.adapters.sources import PLATFORM_ENGAGEMENT_BENCHMARKS
from dataseed.core.records import Record

POSITIVE_WORDS = frozenset(
    {"great", "love", "amazing", "best", "excellent", "happy", "win", "growth", "success", "awesome", "thanks"}
)
NEGATIVE_WORDS = frozenset(
    {"bad", "hate", "worst", "poor", "terrible", "sad", "fail", "loss", "problem", "angry", "broken"}
)
TEXT_FIELDS: tuple[str, ...] = ("content", "text", "caption", "title", "description")

_WORD = re.compile(r"[a-z']+")


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


class EngagementMetricsSource:
    """Derived engagement ratios from raw interaction counters."""

    name = "engagement_metrics"

    async def enrich(self, record: Record) -> tuple[dict[str, Any], float]:
        likes = _number(record.get("likes")) or 0.0
        comments = _number(record.get("comments")) or 0.0
        shares = _number(record.get("shares")) or 0.0
        impressions = _number(record.get("impressions"))
        if not impressions:
            raise ValueError("record has no impressions")
        return {
            "engagement_metrics_enriched": {
                "engagement_rate_enriched": round((likes + comments + shares) / impressions, 6),
                "viral_coefficient": round(shares / impressions, 6),
                "conversation_ratio": round(comments / (likes + 1), 6),
            }
        }, 0.85


class LexiconSentimentSource:
    """Word-list sentiment over the first text field found on the record."""

    name = "sentiment_analysis"

    def __init__(
        self,
        positive: frozenset[str] = POSITIVE_WORDS,
        negative: frozenset[str] = NEGATIVE_WORDS,
    ) -> None:
        self._positive = positive
        self._negative = negative

    async def enrich(self, record: Record) -> tuple[dict[str, Any], float]:
        text = next((record[f] for f in TEXT_FIELDS if isinstance(record.get(f), str) and record[f]), None)
        if text is None:
            raise ValueError("record has no text to analyse")
        words = _WORD.findall(text.lower())
        pos = sum(1 for w in words if w in self._positive)
        neg = sum(1 for w in words if w in self._negative)
        hits = pos + neg
        score = (pos - neg) / hits if hits else 0.0
        label = "positive" if score > 0.2 else "negative" if score < -0.2 else "neutral"
        confidence = min(1.0, 0.5 + 0.1 * hits)
        return {
            "sentiment_analysis": {
                "sentiment_score": round(score, 4),
                "sentiment_label": label,
                "sentiment_confidence": round(confidence, 4),
                "word_count": len(words),
            }
        }, 0.82


class BenchmarkComparisonSource:
    """Compares engagement_rate with the industry median for the record's platform."""

    name = "industry_average_comparison"

    def __init__(self, benchmarks: Mapping[str, float] | None = None) -> None:
        self._benchmarks = dict(benchmarks or PLATFORM_ENGAGEMENT_BENCHMARKS)

    async def enrich(self, record: Record) -> tuple[dict[str, Any], float]:
        platform = str(record.get("platform") or "").lower()
        benchmark = self._benchmarks.get(platform)
        rate = _number(record.get("engagement_rate"))
        if benchmark is None or rate is None:
            raise ValueError(f"no benchmark comparison possible for platform {platform!r}")
        ratio = rate / benchmark if benchmark else 0.0
        if ratio >= 1.5:
            tier = "top"
        elif ratio >= 1.0:
            tier = "above_average"
        elif ratio >= 0.5:
            tier = "below_average"
        else:
            tier = "bottom"
        return {
            "industry_comparison": {
                "benchmark_engagement_rate": benchmark,
                "relative_performance": round(ratio, 4),
                "performance_tier": tier,
            }
        }, 0.85


class AudienceSegmentationSource:
    """Buckets the record's audience by reach and engagement."""

    name = "audience_insights"

    async def enrich(self, record: Record) -> tuple[dict[str, Any], float]:
        reach = _number(record.get("reach")) or _number(record.get("impressions"))
        rate = _number(record.get("engagement_rate"))
        if reach is None and rate is None:
            raise ValueError("record has neither reach nor engagement data")
        segments: list[str] = []
        if reach is not None:
            segments.append("mass_reach" if reach >= 10_000 else "niche_reach")
        if rate is not None:
            segments.append("highly_engaged" if rate >= 0.05 else "passive")
        return {"audience_segments": segments}, 0.8 if len(segments) == 2 else 0.6


def make_default_sources() -> list[Any]:
    return [
        EngagementMetricsSource(),
        LexiconSentimentSource(),
        BenchmarkComparisonSource(),
        AudienceSegmentationSource(),
    ]
