import asyncio
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest
from conftest import make_rows, synthetic_source

from dataseed.collection.collector import CollectionSummary, SourceCollector
from dataseed.core.models import SourceConfig


class FlakyAdapter:
    def __init__(self, failures: int, rows: list[dict[str, Any]]) -> None:
        self.failures = failures
        self.rows = rows
        self.calls = 0

    async def fetch(self, source: SourceConfig, since: datetime | None = None) -> Sequence[Mapping[str, Any]]:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"attempt {self.calls} failed")
        return self.rows


class SlowAdapter:
    async def fetch(self, source: SourceConfig, since: datetime | None = None) -> Sequence[Mapping[str, Any]]:
        await asyncio.sleep(5)
        return []


@pytest.mark.asyncio
async def test_collect_succeeds_after_retries() -> None:
    adapter = FlakyAdapter(failures=2, rows=make_rows("s", 10))
    collector = SourceCollector({"synthetic": adapter}, base_delay_s=0.0)

    result = await collector.collect(synthetic_source("s", retry_attempts=3))

    assert result.success
    assert result.attempts == 3
    assert adapter.calls == 3
    assert result.records_collected == 10
    assert "succeeded after 3 attempts" in result.warnings


@pytest.mark.asyncio
async def test_collect_exhausts_retries() -> None:
    adapter = FlakyAdapter(failures=10, rows=[])
    collector = SourceCollector({"synthetic": adapter}, base_delay_s=0.0)

    result = await collector.collect(synthetic_source("s", retry_attempts=2))

    assert result.success is False
    assert adapter.calls == 3
    assert result.attempts == 3
    assert result.error == "ConnectionError: attempt 3 failed"
    assert result.records == ()


@pytest.mark.asyncio
async def test_collect_times_out() -> None:
    collector = SourceCollector({"synthetic": SlowAdapter()}, base_delay_s=0.0)

    result = await collector.collect(synthetic_source("slow", timeout_ms=20))

    assert result.success is False
    assert result.error is not None and "timed out" in result.error
    assert result.attempts == 1


@pytest.mark.asyncio
async def test_disabled_source_is_not_fetched() -> None:
    adapter = AsyncMock()
    adapter.fetch = AsyncMock(return_value=[])
    collector = SourceCollector({"synthetic": adapter})

    result = await collector.collect(synthetic_source("off", enabled=False))

    assert result.success is False
    assert result.error == "Source is disabled"
    adapter.fetch.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_adapter_is_a_failed_result() -> None:
    collector = SourceCollector({})

    result = await collector.collect(SourceConfig("db", "database", target="posts"))

    assert result.success is False
    assert "No adapter registered" in (result.error or "")


@pytest.mark.asyncio
async def test_parallel_collection_isolates_failures() -> None:
    class ByIdAdapter:
        async def fetch(self, source: SourceConfig, since: datetime | None = None) -> Sequence[Mapping[str, Any]]:
            if source.source_id == "bad":
                raise RuntimeError("boom")
            return make_rows(source.source_id, 5)

    collector = SourceCollector({"synthetic": ByIdAdapter()}, base_delay_s=0.0)
    sources = [synthetic_source("good1"), synthetic_source("bad"), synthetic_source("good2")]

    results = await collector.collect_many(sources, parallel=True, max_parallel=2)

    assert list(results) == ["good1", "bad", "good2"]
    assert results["good1"].success and results["good2"].success
    assert results["bad"].success is False
    assert results["bad"].error == "RuntimeError: boom"

    summary = CollectionSummary.of(results)
    assert summary.successful == 2
    assert summary.failed == 1
    assert summary.total_records == 10


@pytest.mark.asyncio
async def test_duplicate_sources_collected_once() -> None:
    adapter = FlakyAdapter(failures=0, rows=make_rows("s", 3))
    collector = SourceCollector({"synthetic": adapter})

    results = await collector.collect_many([synthetic_source("s"), synthetic_source("s")], parallel=False)

    assert list(results) == ["s"]
    assert adapter.calls == 1


@pytest.mark.asyncio
async def test_empty_batch_warns_and_scores_zero() -> None:
    adapter = FlakyAdapter(failures=0, rows=[])
    collector = SourceCollector({"synthetic": adapter})

    result = await collector.collect(synthetic_source("empty"))

    assert result.success
    assert result.quality_score == 0.0
    assert "source returned no records" in result.warnings


@pytest.mark.asyncio
async def test_malformed_batch_is_a_failed_result() -> None:
    adapter = AsyncMock()
    adapter.fetch = AsyncMock(return_value=["not-a-mapping", 42])
    collector = SourceCollector({"synthetic": adapter})

    result = await collector.collect(synthetic_source("scraped"))

    assert result.success is False
    assert result.attempts == 1
    assert (result.error or "").startswith("invalid batch: AttributeError")


@pytest.mark.asyncio
async def test_malformed_batch_does_not_abort_sequential_collection() -> None:
    class MixedAdapter:
        async def fetch(self, source: SourceConfig, since: datetime | None = None) -> Sequence[Any]:
            if source.source_id == "bad":
                return ["not-a-mapping"]
            return make_rows(source.source_id, 3)

    collector = SourceCollector({"synthetic": MixedAdapter()})

    results = await collector.collect_many(
        [synthetic_source("bad"), synthetic_source("good")], parallel=False
    )

    assert results["bad"].success is False
    assert results["good"].records_collected == 3


@pytest.mark.parametrize("failing_delay", [0.0, 0.05])
@pytest.mark.asyncio
async def test_parallel_results_keyed_regardless_of_completion_order(failing_delay: float) -> None:
    delays = {"slow": 0.04, "fast": 0.0, "mid": 0.02, "bad": failing_delay}
    sizes = {"slow": 7, "fast": 3, "mid": 5}

    class StaggeredAdapter:
        async def fetch(self, source: SourceConfig, since: datetime | None = None) -> Sequence[Mapping[str, Any]]:
            await asyncio.sleep(delays[source.source_id])
            if source.source_id == "bad":
                raise RuntimeError("bad source")
            return make_rows(source.source_id, sizes[source.source_id])

    collector = SourceCollector({"synthetic": StaggeredAdapter()})
    order = ["slow", "bad", "fast", "mid"]

    results = await collector.collect_many([synthetic_source(sid) for sid in order], parallel=True, max_parallel=4)

    assert list(results) == order
    assert results["bad"].success is False
    assert results["bad"].error == "RuntimeError: bad source"
    for sid, n in sizes.items():
        assert results[sid].source_id == sid
        assert results[sid].records_collected == n
        assert all(r["id"].startswith(f"{sid}_") for r in results[sid].records)
