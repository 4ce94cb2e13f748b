from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pyarrow.parquet as pq
import pytest
from conftest import MemoryStore

from dataseed.core.errors import EngineNotFound, EngineRequirementNotMet
from dataseed.core.models import EngineRequirement
from dataseed.core.records import Record, as_records
from dataseed.core.retry import RetryPolicy
from dataseed.distribution.engine import DistributionEngine
from dataseed.distribution.transports import ApiTransport, DatabaseTransport, FileTransport

NO_WAIT = RetryPolicy(retries=1, timeout_s=2.0, base_delay_s=0.0)


def records(n: int, **extra: Any) -> list[Record]:
    return as_records([{"id": f"r{i}", "platform": "instagram", **extra} for i in range(n)])


def make_engine(transport: Any, *, min_records: int = 5, quality_threshold: float = 0.0, batch_size: int = 1_000) -> DistributionEngine:
    return DistributionEngine(
        {"eng": EngineRequirement(min_records, ("id", "platform"), quality_threshold)},
        {"database": transport},
        batch_size=batch_size,
        policy=NO_WAIT,
    )


@pytest.mark.asyncio
async def test_refusal_for_too_few_records_has_no_side_effects(mock_transport: Any) -> None:
    engine = make_engine(mock_transport)

    ok = await engine.distribute("eng", records(4))

    assert ok is False
    mock_transport.send.assert_not_awaited()


def test_check_reports_reason(mock_transport: Any) -> None:
    engine = make_engine(mock_transport, quality_threshold=0.8)

    with pytest.raises(EngineRequirementNotMet, match="insufficient records: 2 < 5"):
        engine.check("eng", records(2))
    with pytest.raises(EngineRequirementNotMet, match="quality 0.500 below threshold 0.800"):
        engine.check("eng", records(5), quality_score=0.5)
    engine.check("eng", records(5), quality_score=0.9)


def test_check_requires_a_transport() -> None:
    engine = DistributionEngine({"eng": EngineRequirement(0, (), transport="file")})
    with pytest.raises(EngineRequirementNotMet, match="no file transport registered"):
        engine.check("eng", [])


def test_prepare_filters_and_caps(mock_transport: Any) -> None:
    engine = make_engine(mock_transport, batch_size=3)
    batch = records(4) + as_records([{"id": "x"}, {"id": "y", "platform": None}])

    prepared = engine.prepare(batch, engine.requirement("eng"))

    assert [r["id"] for r in prepared] == ["r0", "r1", "r2"]


@pytest.mark.asyncio
async def test_successful_delivery(mock_transport: Any) -> None:
    engine = make_engine(mock_transport)

    result = await engine.deliver("eng", records(6), quality_score=0.9)

    assert result.success
    assert result.records_distributed == 6
    assert result.confidence_score == pytest.approx(1.0)
    assert result.error is None
    mock_transport.send.assert_awaited_once()


@pytest.mark.asyncio
async def test_transport_failure_is_retried_then_reported() -> None:
    transport = AsyncMock()
    transport.send = AsyncMock(side_effect=ConnectionError("refused"))
    engine = make_engine(transport)

    result = await engine.deliver("eng", records(5))

    assert result.success is False
    assert result.error == "database transport failed"
    assert transport.send.await_count == 2


@pytest.mark.asyncio
async def test_deliver_to_unknown_engine(mock_transport: Any) -> None:
    result = await make_engine(mock_transport).deliver("ghost", records(5))
    assert result.success is False
    assert result.error == "Engine not registered: ghost"
    with pytest.raises(EngineNotFound):
        make_engine(mock_transport).requirement("ghost")


@pytest.mark.asyncio
async def test_database_transport_writes_engine_table() -> None:
    store = MemoryStore()

    await DatabaseTransport(store).send("content_performance", records(2))

    assert [r["id"] for r in store.tables["content_performance_seed_data"]] == ["r0", "r1"]


@pytest.mark.asyncio
async def test_api_transport_posts_to_engine_endpoint() -> None:
    client = AsyncMock()
    client.post_records = AsyncMock(return_value=None)
    transport = ApiTransport(client, {"navigation": "https://engines.local/navigation"})

    await transport.send("navigation", records(2))

    url, rows = client.post_records.await_args.args
    assert url == "https://engines.local/navigation"
    assert rows[0] == {"id": "r0", "platform": "instagram"}
    assert client.post_records.await_args.kwargs["engine"] == "navigation"
    with pytest.raises(LookupError):
        await transport.send("research", records(1))


@pytest.mark.asyncio
async def test_file_transport_writes_parquet(tmp_path: Path) -> None:
    transport = FileTransport(tmp_path)
    batch = as_records([{"id": "a", "score": 1.5, "tags": ["x"]}, {"id": "b", "extra": None}])

    await transport.send("research", batch)

    files = list((tmp_path / "research").glob("*.parquet"))
    assert len(files) == 1
    table = pq.read_table(files[0])
    assert table.column_names == ["extra", "id", "score", "tags"]
    assert table.column("tags").to_pylist() == ['["x"]', None]
    assert table.column("score").to_pylist() == ["1.5", None]
    assert not list((tmp_path / "research").glob("*.tmp"))


@pytest.mark.asyncio
async def test_distribute_refuses_records_missing_required_fields(mock_transport: Any) -> None:
    engine = DistributionEngine(
        {"eng": EngineRequirement(2, ("id", "platform"))},
        {"database": mock_transport},
        policy=NO_WAIT,
    )
    batch = as_records([{"x": 1}, {"x": 2}])

    ok = await engine.distribute("eng", batch)

    assert ok is False
    mock_transport.send.assert_not_awaited()
    with pytest.raises(EngineRequirementNotMet, match=r"2 record\(s\) missing required fields"):
        engine.check("eng", batch)


def test_transform_renames_then_filters(mock_transport: Any) -> None:
    req = EngineRequirement(
        1,
        ("content_id", "platform"),
        field_renames={"post_id": "content_id", "social_platform": "platform"},
        filters={"status": "published"},
    )
    engine = DistributionEngine({"eng": req}, {"database": mock_transport})
    batch = as_records(
        [
            {"post_id": "p1", "social_platform": "instagram", "status": "published"},
            {"post_id": "p2", "social_platform": "linkedin", "status": "draft"},
            {"post_id": "p3", "status": "published"},
        ]
    )

    prepared = engine.prepare(batch, req)

    assert [r.to_dict() for r in prepared] == [{"status": "published", "content_id": "p1", "platform": "instagram"}]
    assert req.field_renames == (("post_id", "content_id"), ("social_platform", "platform"))


def test_confidence_combines_quality_freshness_and_completeness(mock_transport: Any) -> None:
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    req = EngineRequirement(1, ("id", "platform"), optional_fields=("hashtags", "content_type"))
    engine = DistributionEngine({"eng": req}, {"database": mock_transport}, clock=lambda: now)
    batch = as_records(
        [
            {"id": "a", "platform": "instagram", "hashtags": "#x", "created_at": "2024-06-01T00:00:00Z"},
            {"id": "b", "created_at": "2024-06-01T12:00:00Z"},
        ]
    )

    # field quality (1 + 0.5) / 2, freshness 1 - 6h / 24h, completeness (0.75 + 0.25) / 2
    assert engine.confidence(batch, req) == pytest.approx((0.75 + 0.75 + 0.5) / 3)
    assert engine.confidence([], req) == 0.0
    stale = as_records([{"id": "c", "platform": "x", "timestamp": "2024-05-01"}])
    assert engine.confidence(stale, EngineRequirement(1, ("id", "platform"))) == pytest.approx(2 / 3)


@pytest.mark.asyncio
async def test_delivery_history_is_bounded_per_engine() -> None:
    transport = AsyncMock()
    transport.send = AsyncMock(side_effect=[None, ConnectionError("refused"), ConnectionError("refused"), None])
    engine = DistributionEngine(
        {"eng": EngineRequirement(1, ("id",))},
        {"database": transport},
        policy=NO_WAIT,
        history_size=2,
    )

    first = await engine.deliver("eng", records(1))
    second = await engine.deliver("eng", records(1))
    await engine.deliver("eng", records(0))

    assert first.success and second.success is False
    assert len(engine.performance_history("eng")) == 2
    errors = engine.error_history("eng")
    assert len(errors) == 2
    assert errors[0].endswith(": database transport failed")
    assert errors[1].endswith(": insufficient records: 0 < 1")
    assert engine.performance_history("other") == []
