import asyncio
from datetime import timedelta
from pathlib import Path
from typing import Any

import pytest
from conftest import FIXED_NOW, make_rows

from dataseed.core.errors import QualityBelowThreshold, StrategyNotFound
from dataseed.storage.journal import RunJournal


@pytest.mark.asyncio
async def test_fallback_sources_fill_shortfall(build_orchestrator: Any, mock_transport: Any) -> None:
    orch, adapter = build_orchestrator(
        {"a": make_rows("a", 40), "b": make_rows("b", 30), "c": RuntimeError("api down"), "f": make_rows("f", 25)}
    )

    outcome = await orch.start_orchestration()

    assert outcome.success
    # 70 < 30 * 3 triggers the fallback source
    assert "f" in adapter.calls
    assert outcome.collection["c"].success is False
    assert "api down" in (outcome.collection["c"].error or "")
    assert outcome.collection["f"].records_collected == 25

    result = outcome.distribution["test_engine"]
    assert result.success
    assert result.records_distributed == 95
    mock_transport.send.assert_awaited_once()
    engine, records = mock_transport.send.await_args.args
    assert engine == "test_engine"
    assert len(records) == 95


@pytest.mark.asyncio
async def test_fallback_not_collected_when_primary_sources_suffice(build_orchestrator: Any) -> None:
    orch, adapter = build_orchestrator({sid: make_rows(sid, 40) for sid in ("a", "b", "c", "f")})

    outcome = await orch.start_orchestration()

    assert outcome.success
    assert "f" not in adapter.calls
    assert outcome.summary["records_collected"] == 120


@pytest.mark.asyncio
async def test_status_after_successful_run(build_orchestrator: Any) -> None:
    orch, _ = build_orchestrator({sid: make_rows(sid, 40) for sid in ("a", "b", "c")})

    await orch.start_orchestration()
    status = orch.get_status()

    assert status.phase == "idle"
    assert status.progress == 100
    assert status.last_run == FIXED_NOW
    assert status.next_run == FIXED_NOW + timedelta(days=1)
    assert status.engines["test_engine"].status == "seeding"
    assert status.engines["test_engine"].data_received == 120
    assert status.data_collected.total_records == 120
    assert orch.is_running is False


@pytest.mark.asyncio
async def test_continuous_mode_parks_in_monitoring(build_orchestrator: Any) -> None:
    orch, _ = build_orchestrator({sid: make_rows(sid, 40) for sid in ("a", "b", "c")}, continuous_mode=True)

    await orch.start_orchestration()

    assert orch.get_status().phase == "monitoring"


@pytest.mark.asyncio
async def test_engine_refusal_is_reported_not_raised(build_orchestrator: Any, mock_transport: Any) -> None:
    orch, _ = build_orchestrator({sid: make_rows(sid, 40) for sid in ("a", "b", "c")}, engine_min_records=500)

    outcome = await orch.start_orchestration()

    assert outcome.success
    result = outcome.distribution["test_engine"]
    assert result.success is False
    assert result.error == "insufficient records: 120 < 500"
    assert orch.get_status().engines["test_engine"].status == "error"
    mock_transport.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_concurrent_start_is_rejected(build_orchestrator: Any) -> None:
    orch, adapter = build_orchestrator({sid: make_rows(sid, 40) for sid in ("a", "b", "c")})
    adapter.gate = asyncio.Event()

    first = asyncio.create_task(orch.start_orchestration())
    await adapter.started.wait()
    assert orch.is_running

    second = await orch.start_orchestration()
    assert second.success is False
    assert second.message == "Orchestration already in progress"
    assert orch.get_status().phase == "collecting"

    adapter.gate.set()
    outcome = await first
    assert outcome.success
    assert orch.is_running is False


@pytest.mark.asyncio
async def test_quality_gate_failure_sets_error_status(build_orchestrator: Any, tmp_path: Path) -> None:
    rows = make_rows("a", 40)
    for r in rows[:20]:
        r["contact"] = "jane.doe@example.com"
    journal = RunJournal(tmp_path / "runs.jsonl")
    orch, _ = build_orchestrator(
        {"a": rows, "b": make_rows("b", 40), "c": make_rows("c", 40)},
        quality_threshold=0.99,
        journal=journal,
    )

    with pytest.raises(QualityBelowThreshold) as exc_info:
        await orch.start_orchestration()

    assert exc_info.value.checks["governance"] < 1.0
    status = orch.get_status()
    assert status.phase == "error"
    assert "below threshold" in (status.last_error or "")
    assert status.metrics.error_count == 1
    assert orch.is_running is False

    entries = journal.read()
    assert entries[0]["status"] == "started"
    assert entries[-1]["phase"] == "run"
    assert entries[-1]["status"] == "failed"


@pytest.mark.asyncio
async def test_guard_released_after_failure(build_orchestrator: Any) -> None:
    orch, adapter = build_orchestrator({sid: make_rows(sid, 40) for sid in ("a", "b", "c")}, quality_threshold=1.0)
    adapter.rows["a"] = [{"id": "x", "platform": "instagram", "note": "call +1 555 123 4567"}]

    with pytest.raises(QualityBelowThreshold):
        await orch.start_orchestration()

    assert orch.is_running is False
    # a held guard would answer with a rejected outcome instead of running again
    with pytest.raises(QualityBelowThreshold):
        await orch.start_orchestration()
    assert orch.get_status().metrics.error_count == 2


@pytest.mark.asyncio
async def test_stop_halts_at_phase_boundary(build_orchestrator: Any, mock_transport: Any) -> None:
    orch, adapter = build_orchestrator({sid: make_rows(sid, 40) for sid in ("a", "b", "c")})
    adapter.gate = asyncio.Event()

    task = asyncio.create_task(orch.start_orchestration())
    await adapter.started.wait()
    assert orch.stop_orchestration() is True
    adapter.gate.set()
    outcome = await task

    assert outcome.success is False
    assert outcome.message == "Orchestration stopped"
    assert orch.get_status().phase == "idle"
    assert orch.is_running is False
    mock_transport.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_stop_without_active_run_returns_false(build_orchestrator: Any) -> None:
    orch, _ = build_orchestrator({})
    assert orch.stop_orchestration() is False


@pytest.mark.asyncio
async def test_execute_unknown_strategy_raises(build_orchestrator: Any) -> None:
    orch, _ = build_orchestrator({})
    with pytest.raises(StrategyNotFound):
        await orch.execute_strategy("missing_strategy")
    assert orch.is_running is False


@pytest.mark.asyncio
async def test_normalized_records_are_persisted(build_orchestrator: Any, memory_store: Any) -> None:
    orch, _ = build_orchestrator({sid: make_rows(sid, 40) for sid in ("a", "b", "c")}, store=memory_store)

    outcome = await orch.execute_strategy("test_strategy")

    rows = memory_store.tables["data_seeding_results"]
    assert len(rows) == 120
    assert rows[0]["run_id"] == outcome.run_id
    assert rows[0]["schema_id"] == "passthrough"
    assert rows[0]["engines"] == ["test_engine"]


@pytest.mark.asyncio
async def test_run_scheduled_stops_after_max_runs(build_orchestrator: Any) -> None:
    orch, _ = build_orchestrator({sid: make_rows(sid, 40) for sid in ("a", "b", "c")})

    outcomes = await orch.run_scheduled(2, interval_s=0.0)

    assert len(outcomes) == 2
    assert all(o.success for o in outcomes)
    assert outcomes[0].run_id != outcomes[1].run_id


@pytest.mark.asyncio
async def test_default_quality_gate_includes_bias_and_governance(build_orchestrator: Any) -> None:
    orch, _ = build_orchestrator({sid: make_rows(sid, 40) for sid in ("a", "b", "c")})

    outcome = await orch.start_orchestration()

    assert outcome.quality is not None
    assert set(outcome.quality.checks) == {"completeness", "consistency", "accuracy", "bias", "governance"}
    assert outcome.quality.checks["bias"] == pytest.approx(1.0)
    assert outcome.quality.checks["governance"] == pytest.approx(1.0)
