from typing import Any
from unittest.mock import AsyncMock

import pytest
from conftest import MemoryStore

from dataseed.core.errors import EnrichmentError
from dataseed.core.records import Record, RecordShape
from dataseed.enrichment.engine import ENRICHMENT_TABLE, EnrichmentEngine
from dataseed.enrichment.sources import (
    AudienceSegmentationSource,
    BenchmarkComparisonSource,
    EngagementMetricsSource,
    LexiconSentimentSource,
    make_default_sources,
)


def post(**fields: Any) -> Record:
    base = {
        "content_id": "c1",
        "platform": "instagram",
        "content": "We love this, amazing growth!",
        "likes": 90,
        "comments": 10,
        "shares": 20,
        "impressions": 1000,
        "reach": 800,
        "engagement_rate": 0.12,
    }
    base.update(fields)
    return Record.from_mapping(base, RecordShape.CONTENT)


class BrokenSource:
    name = "broken"

    async def enrich(self, record: Record) -> tuple[dict[str, Any], float]:
        raise RuntimeError("provider offline")


@pytest.mark.asyncio
async def test_default_sources_all_contribute() -> None:
    store = MemoryStore()
    engine = EnrichmentEngine(make_default_sources(), store)

    [result] = await engine.enrich([post()], lineage=["run:1"])

    assert result.record_id == "c1"
    assert result.status == "passed"
    assert result.sources == (
        "engagement_metrics",
        "sentiment_analysis",
        "industry_average_comparison",
        "audience_insights",
    )
    assert result.confidence == pytest.approx(min(result.enrichment_score + 0.1, 1.0))
    assert result.lineage[0] == "run:1"
    assert result.record["sentiment_analysis"]["sentiment_label"] == "positive"
    assert result.record["industry_comparison"]["performance_tier"] == "top"
    assert result.record["audience_segments"] == ["niche_reach", "highly_engaged"]
    assert len(store.tables[ENRICHMENT_TABLE]) == 1
    assert store.tables[ENRICHMENT_TABLE][0]["validation_status"] == "passed"


@pytest.mark.asyncio
async def test_failing_source_is_skipped() -> None:
    engine = EnrichmentEngine([BrokenSource(), EngagementMetricsSource()], min_score=0.99)

    [result] = await engine.enrich([post()])

    assert result.sources == ("engagement_metrics",)
    assert result.status == "partial"
    assert "engagement_metrics_enriched" in result.record


@pytest.mark.asyncio
async def test_all_sources_failing_marks_record_failed() -> None:
    engine = EnrichmentEngine([BrokenSource()])

    [result] = await engine.enrich([Record.from_mapping({"x": 1})])

    assert result.status == "failed"
    assert result.record_id == "record_0"
    assert result.sources == ()


@pytest.mark.asyncio
async def test_store_failure_raises_enrichment_error() -> None:
    store = AsyncMock()
    store.insert = AsyncMock(side_effect=RuntimeError("disk full"))
    engine = EnrichmentEngine([EngagementMetricsSource()], store)

    with pytest.raises(EnrichmentError, match="disk full"):
        await engine.enrich([post()])

    assert engine.metrics().total_processed == 0


@pytest.mark.asyncio
async def test_batches_and_metrics() -> None:
    engine = EnrichmentEngine([EngagementMetricsSource()], batch_size=2)

    results = await engine.enrich([post(content_id=f"c{i}") for i in range(5)], lineage=["x"])

    assert [r.record_id for r in results] == ["c0", "c1", "c2", "c3", "c4"]
    assert [h["batch_start"] for h in engine.history()] == [0, 2, 4]
    metrics = engine.metrics()
    assert metrics.total_processed == 5
    assert metrics.passed + metrics.partial + metrics.failed == 5


@pytest.mark.asyncio
async def test_individual_sources() -> None:
    fields, quality = await EngagementMetricsSource().enrich(post())
    assert fields["engagement_metrics_enriched"]["engagement_rate_enriched"] == pytest.approx(0.12)
    assert quality == 0.85

    with pytest.raises(ValueError):
        await LexiconSentimentSource().enrich(Record.from_mapping({"likes": 1}))

    with pytest.raises(ValueError):
        await BenchmarkComparisonSource().enrich(post(platform="myspace"))

    fields, quality = await AudienceSegmentationSource().enrich(Record.from_mapping({"reach": 50_000}))
    assert fields == {"audience_segments": ["mass_reach"]}
    assert quality == 0.6
