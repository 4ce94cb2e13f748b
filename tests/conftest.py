import asyncio
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from dataseed.collection.collector import SourceCollector
from dataseed.core.config import OrchestratorConfig
from dataseed.core.models import CollectionStrategy, DataRequirements, EngineRequirement, SourceConfig
from dataseed.core.retry import RetryPolicy
from dataseed.distribution.engine import DistributionEngine
from dataseed.normalization.engine import NormalizationEngine
from dataseed.orchestration.orchestrator import SeedingOrchestrator
from dataseed.registry.sources import DataSourceRegistry
from dataseed.registry.strategies import StrategyRegistry

FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_rows(source_id: str, n: int) -> list[dict[str, Any]]:
    platforms = ("instagram", "linkedin")
    return [{"id": f"{source_id}_{i}", "platform": platforms[i % 2], "likes": i} for i in range(n)]


class FakeAdapter:
    """Serves canned rows per source id; ids mapped to an exception raise it."""

    def __init__(self, rows: Mapping[str, Any]) -> None:
        self.rows = dict(rows)
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()

    async def fetch(self, source: SourceConfig, since: datetime | None = None) -> Sequence[Mapping[str, Any]]:
        self.calls.append(source.source_id)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        value = self.rows.get(source.source_id, [])
        if isinstance(value, Exception):
            raise value
        return value


class MemoryStore:
    """In-memory stand-in for the DuckDB record store."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> int:
        self.tables.setdefault(table, []).extend(dict(r) for r in rows)
        return len(rows)

    async def fetch(self, table: str, *, since: datetime | None = None, limit: int | None = None) -> list[dict[str, Any]]:
        rows = list(reversed(self.tables.get(table, [])))
        return rows[:limit] if limit is not None else rows


def synthetic_source(source_id: str, **kw: Any) -> SourceConfig:
    kw.setdefault("retry_attempts", 0)
    kw.setdefault("timeout_ms", 2_000)
    return SourceConfig(source_id, "synthetic", **kw)


@pytest.fixture
def mock_transport():
    transport = AsyncMock()
    transport.send = AsyncMock(return_value=None)
    return transport


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def build_orchestrator(mock_transport):
    """Factory: orchestrator over synthetic sources `a`, `b`, `c` (+ fallback `f`)."""

    def _build(
        rows: Mapping[str, Any],
        *,
        min_records_per_source: int = 30,
        engine_min_records: int = 60,
        quality_threshold: float = 0.5,
        store: Any = None,
        journal: Any = None,
        continuous_mode: bool = False,
    ) -> tuple[SeedingOrchestrator, FakeAdapter]:
        adapter = FakeAdapter(rows)
        sources = DataSourceRegistry([synthetic_source(sid) for sid in ("a", "b", "c", "f")])
        strategies = StrategyRegistry(
            sources,
            [
                CollectionStrategy(
                    name="test_strategy",
                    target_engines=("test_engine",),
                    sources=("a", "b", "c"),
                    requirements=DataRequirements(min_records_per_source=min_records_per_source),
                    fallback_sources=("f",),
                )
            ],
        )
        config = OrchestratorConfig(
            quality_threshold=quality_threshold,
            retry_base_delay_s=0.0,
            continuous_mode=continuous_mode,
        )
        distributor = DistributionEngine(
            {"test_engine": EngineRequirement(engine_min_records, ("id", "platform"))},
            {"database": mock_transport},
            policy=RetryPolicy(retries=0, timeout_s=2.0, base_delay_s=0.0),
        )
        orchestrator = SeedingOrchestrator(
            config=config,
            sources=sources,
            strategies=strategies,
            collector=SourceCollector({"synthetic": adapter}, base_delay_s=0.0),
            normalizer=NormalizationEngine(),
            distributor=distributor,
            store=store,
            journal=journal,
            clock=lambda: FIXED_NOW,
        )
        return orchestrator, adapter

    return _build
