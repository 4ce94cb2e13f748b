"""Record enrichment after normalization.

This package provides:
- EnrichmentEngine: merges enrichment source outputs and scores each record
- Built-in deterministic sources (engagement metrics, sentiment, benchmark comparison, audience segments)
"""

from dataseed.enrichment.engine import EnrichmentEngine, EnrichmentMetrics
from dataseed.enrichment.sources import (
    AudienceSegmentationSource,
    BenchmarkComparisonSource,
    EngagementMetricsSource,
    LexiconSentimentSource,
    make_default_sources,
)

__all__ = [
    "EnrichmentEngine",
    "EnrichmentMetrics",
    "AudienceSegmentationSource",
    "BenchmarkComparisonSource",
    "EngagementMetricsSource",
    "LexiconSentimentSource",
    "make_default_sources",
]
