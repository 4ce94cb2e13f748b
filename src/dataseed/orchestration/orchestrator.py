"""Seeding orchestrator: collect → process → quality-assure → distribute.

State machine
-------------
idle → collecting → processing → distributing → idle
(monitoring instead of idle after distribution in continuous mode,
error when a run fails with an unrecovered exception)

Only one run may be active at a time. The check-and-claim of the run guard
happens under a single asyncio.Lock; a second start while a run is active is
answered with a rejected `RunOutcome` and leaves the status untouched.

Every invocation builds a `RunContext` that carries the per-phase outputs
from one phase to the next.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from dataseed.collection.checks import run_checks
from dataseed.collection.collector import SourceCollector
from dataseed.core.config import OrchestratorConfig
from dataseed.core.interfaces import IRecordStore, IRunJournal
from dataseed.core.models import (
    CollectedStats,
    CollectionResult,
    CollectionStrategy,
    DistributionResult,
    EngineRequirement,
    EngineStatus,
    OrchestratorStatus,
    Phase,
    RunRecord,
    RunStatus,
    SourceConfig,
)
from dataseed.core.records import Record
from dataseed.distribution.engine import DistributionEngine
from dataseed.enrichment.engine import EnrichmentEngine
from dataseed.normalization.engine import NormalizationEngine, NormalizationResult
from dataseed.normalization.specs import NormalizationSchema
from dataseed.orchestration.assurance import QualityAssurance, QualityReport
from dataseed.orchestration.utils import (
    RunContext,
    compute_next_run,
    concat_successful,
    merge_warnings,
    new_run_id,
)
from dataseed.registry.sources import DataSourceRegistry
from dataseed.registry.strategies import StrategyRegistry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Output DTO
# ---------------------------------------------------------------------------


@dataclass(kw_only=True)
class RunOutcome:
    """Result of `start_orchestration` / `execute_strategy`."""

    success: bool
    message: str
    run_id: str | None = None
    collection: dict[str, CollectionResult] = field(default_factory=dict)
    normalization: dict[str, NormalizationResult] = field(default_factory=dict)
    quality: QualityReport | None = None
    distribution: dict[str, DistributionResult] = field(default_factory=dict)
    summary: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @classmethod
    def from_context(cls, ctx: RunContext, *, success: bool, message: str) -> RunOutcome:
        return cls(
            success=success,
            message=message,
            run_id=ctx.run_id,
            collection=ctx.results_by_source(),
            normalization=dict(ctx.normalization),
            quality=ctx.quality,
            distribution=dict(ctx.distribution),
            summary=ctx.summary(),
            warnings=list(ctx.warnings),
            errors=list(ctx.errors),
        )


class _RunHalted(Exception):
    """Raised at a phase boundary after `stop_orchestration()`."""


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class SeedingOrchestrator:
    def __init__(
        self,
        *,
        config: OrchestratorConfig,
        sources: DataSourceRegistry,
        strategies: StrategyRegistry,
        collector: SourceCollector,
        normalizer: NormalizationEngine,
        distributor: DistributionEngine,
        enricher: EnrichmentEngine | None = None,
        assurance: QualityAssurance | None = None,
        store: IRecordStore | None = None,
        journal: IRunJournal | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self._sources = sources
        self._strategies = strategies
        self._collector = collector
        self._normalizer = normalizer
        self._distributor = distributor
        self._enricher = enricher
        self._assurance = assurance or QualityAssurance.from_config(config)
        self._store = store
        self._journal = journal
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._status = OrchestratorStatus(
            engines={name: EngineStatus() for name in distributor.engines()},
        )
        self._guard = asyncio.Lock()
        self._active = False
        self._stop_requested = False
        self._scheduler_wake: asyncio.Event | None = None

    # ---------- configuration ----------

    def register_source(self, config: SourceConfig) -> None:
        self._sources.register(config)

    def register_strategy(self, strategy: CollectionStrategy) -> None:
        self._strategies.register(strategy)

    def register_schema(self, schema: NormalizationSchema) -> None:
        self._normalizer.register_schema(schema)

    def register_engine(self, name: str, requirement: EngineRequirement) -> None:
        self._distributor.register_engine(name, requirement)
        self._status.engines.setdefault(name, EngineStatus())

    # ---------- observation ----------

    def get_status(self) -> OrchestratorStatus:
        """Snapshot of the current status (deep copy; never blocks)."""
        return copy.deepcopy(self._status)

    @property
    def is_running(self) -> bool:
        return self._active

    @property
    def sources(self) -> DataSourceRegistry:
        return self._sources

    @property
    def strategies(self) -> StrategyRegistry:
        return self._strategies

    @property
    def distributor(self) -> DistributionEngine:
        return self._distributor

    # ---------- lifecycle ----------

    async def start_orchestration(self) -> RunOutcome:
        """Run every registered strategy through the full pipeline."""
        return await self._run(self._strategies.names())

    async def execute_strategy(self, name: str) -> RunOutcome:
        """Run one strategy through the full pipeline.

        Raises:
            StrategyNotFound: `name` is not registered.
        """
        self._strategies.get(name)
        return await self._run([name])

    def stop_orchestration(self) -> bool:
        """Ask the active run (and the scheduler) to halt at the next phase boundary.

        Best effort: in-flight adapter and transport calls are not interrupted.
        Returns True when a run or a scheduler loop was active.
        """
        was_active = self._active or self._scheduler_wake is not None
        self._stop_requested = True
        if self._scheduler_wake is not None:
            self._scheduler_wake.set()
        if was_active:
            logger.info("Stop requested")
        return was_active

    async def run_scheduled(
        self,
        max_runs: int | None = None,
        *,
        interval_s: float | None = None,
    ) -> list[RunOutcome]:
        """Run the full pipeline repeatedly at the configured interval until stopped.

        A failed run is logged and does not stop the loop.
        """
        delay = interval_s if interval_s is not None else self.config.interval.total_seconds()
        outcomes: list[RunOutcome] = []
        self._stop_requested = False
        self._scheduler_wake = asyncio.Event()
        try:
            runs = 0
            while max_runs is None or runs < max_runs:
                runs += 1
                try:
                    outcomes.append(await self.start_orchestration())
                except Exception as e:
                    logger.error("Scheduled run %d failed: %s", runs, e)
                if self._stop_requested or (max_runs is not None and runs >= max_runs):
                    break
                try:
                    await asyncio.wait_for(self._scheduler_wake.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
                if self._stop_requested:
                    break
        finally:
            self._scheduler_wake = None
        return outcomes

    # ---------- run guard ----------

    async def _claim(self) -> bool:
        async with self._guard:
            if self._active:
                return False
            self._active = True
            self._stop_requested = False
            return True

    async def _release(self) -> None:
        async with self._guard:
            self._active = False

    async def _run(self, strategy_names: Sequence[str]) -> RunOutcome:
        strategies = [self._strategies.get(n) for n in strategy_names]
        engines: list[str] = []
        for s in strategies:
            engines.extend(e for e in s.target_engines if e not in engines)

        if not await self._claim():
            logger.warning("Orchestration already in progress; rejecting new run")
            return RunOutcome(success=False, message="Orchestration already in progress")

        ctx = RunContext(
            run_id=new_run_id(self._clock()),
            strategies=list(strategy_names),
            engines=engines,
            started_at=self._clock(),
        )
        t0 = time.perf_counter()
        try:
            await self._journal_append(ctx, "run", "started")
            return await self._execute(ctx, strategies, t0)
        except _RunHalted:
            logger.info("Run %s halted", ctx.run_id)
            self._enter("idle", self._status.progress, "Stopped")
            await self._journal_append(ctx, "run", "stopped")
            return RunOutcome.from_context(ctx, success=False, message="Orchestration stopped")
        except Exception as e:
            logger.exception("Run %s failed", ctx.run_id)
            self._status.phase = "error"
            self._status.current_step = f"Failed: {type(e).__name__}"
            self._status.last_error = str(e)
            self._status.metrics.error_count += 1
            await self._journal_append(ctx, "run", "failed", error=str(e))
            raise
        finally:
            await self._release()

    # ---------- phases ----------

    def _enter(self, phase: Phase, progress: int, step: str) -> None:
        self._status.phase = phase
        self._status.progress = progress
        self._status.current_step = step

    def _checkpoint(self) -> None:
        if self._stop_requested:
            raise _RunHalted()

    async def _execute(self, ctx: RunContext, strategies: Sequence[CollectionStrategy], t0: float) -> RunOutcome:
        # 1) Collection
        self._enter("collecting", 0, "Collecting data from sources")
        ctx.begin()
        for strategy in strategies:
            await self._collect_strategy(ctx, strategy)
        ctx.end("collection")
        self._record_collection(ctx)
        await self._journal_append(ctx, "collection", "done", records=ctx.collection_summary().total_records)
        self._checkpoint()

        # 2) Processing
        self._enter("processing", 25, "Normalizing and enriching records")
        ctx.begin()
        batches = await self._process(ctx)
        ctx.end("processing")
        await self._journal_append(ctx, "processing", "done", records=len(ctx.normalized_records()))
        self._checkpoint()

        # 3) Quality assurance (hard gate)
        self._enter("processing", 50, "Running quality assurance")
        distinct = self._distinct_records(batches)
        ctx.quality = self._assurance.gate(distinct)
        await self._journal_append(ctx, "quality", "done", records=len(distinct), quality=ctx.quality.score)
        self._checkpoint()

        # 4) Distribution
        self._enter("distributing", 75, "Distributing data to engines")
        ctx.begin()
        await self._distribute(ctx, batches)
        distribution_ms = ctx.end("distribution")

        # Done
        now = self._clock()
        total_ms = (time.perf_counter() - t0) * 1000
        delivered = sum(1 for d in ctx.distribution.values() if d.success)
        self._status.last_run = now
        self._status.next_run = compute_next_run(now, self.config.collection_interval)
        self._status.last_error = None
        self._status.metrics.processing_time_ms = total_ms
        self._status.metrics.distribution_time_ms = distribution_ms
        self._status.metrics.success_rate = delivered / len(ctx.distribution) if ctx.distribution else 0.0
        self._status.metrics.error_count = len(ctx.errors)
        self._enter("monitoring" if self.config.continuous_mode else "idle", 100, "Completed")

        await self._journal_append(
            ctx,
            "run",
            "done",
            records=sum(d.records_distributed for d in ctx.distribution.values()),
            quality=ctx.quality.score,
        )
        message = (
            f"Data seeding completed: {delivered}/{len(ctx.distribution)} engine(s) received data "
            f"in {total_ms:.0f}ms"
        )
        logger.info("Run %s: %s", ctx.run_id, message)
        return RunOutcome.from_context(ctx, success=True, message=message)

    # ---------- 1) collection ----------

    async def _collect_strategy(self, ctx: RunContext, strategy: CollectionStrategy) -> None:
        req = strategy.requirements
        since = self._clock() - timedelta(days=req.required_date_range_days) if req.required_date_range_days > 0 else None
        known = ctx.results_by_source()

        async def _collect(ids: Sequence[str]) -> dict[str, CollectionResult]:
            # sources already collected earlier in this run are reused
            out = {sid: known[sid] for sid in ids if sid in known}
            out.update(
                await self._collector.collect_many(
                    [self._sources.get(sid) for sid in ids if sid not in known],
                    parallel=strategy.parallel,
                    max_parallel=self.config.max_parallel_collections,
                    since=since,
                )
            )
            return out

        results = await _collect(strategy.sources)

        collected = sum(r.records_collected for r in results.values() if r.success)
        needed = req.min_records_per_source * len(strategy.sources)
        if collected < needed:
            if strategy.fallback_sources:
                logger.warning(
                    "Strategy %s collected %d < %d record(s); collecting fallback sources %s",
                    strategy.name,
                    collected,
                    needed,
                    list(strategy.fallback_sources),
                )
                results.update(await _collect([sid for sid in strategy.fallback_sources if sid not in results]))
            else:
                ctx.warnings.append(
                    f"{strategy.name}: collected {collected} < {needed} record(s) and no fallback sources are configured"
                )

        ctx.collection[strategy.name] = results
        ctx.warnings.extend(merge_warnings(results))
        ctx.warnings.extend(f"{strategy.name}: {w}" for w in run_checks(concat_successful(results.values()), strategy))
        ctx.errors.extend(f"{sid}: {r.error}" for sid, r in results.items() if not r.success)

    def _record_collection(self, ctx: RunContext) -> None:
        summary = ctx.collection_summary()
        self._status.data_collected = CollectedStats(
            total_records=summary.total_records,
            quality_score=summary.avg_quality,
            sources=[sid for sid, r in ctx.results_by_source().items() if r.success],
        )

    # ---------- 2) processing ----------

    async def _process(self, ctx: RunContext) -> dict[str, list[Record]]:
        """Normalize per engine, enrich, persist. Returns the batch for each engine."""
        records = ctx.collected_records()
        lineage = [f"run:{ctx.run_id}", *(f"strategy:{s}" for s in ctx.strategies)]

        normalized = await asyncio.to_thread(
            self._normalizer.normalize_for_engines, records, ctx.engines, lineage=lineage
        )
        unschemed = [e for e in ctx.engines if e not in normalized]
        if unschemed:
            passthrough = self._normalizer.passthrough(
                records,
                engines=unschemed,
                lineage=lineage,
                quality_score=ctx.collection_summary().avg_quality,
            )
            for engine in unschemed:
                normalized[engine] = passthrough
        ctx.normalization = normalized

        for result in self._distinct_results(normalized):
            ctx.warnings.extend(f"{result.schema_id}: {w}" for w in result.warnings)
            if not result.success:
                ctx.warnings.append(f"{result.schema_id}: critical validation failures in normalized batch")

        # batch per distinct normalization result, shared by its engines
        by_result: dict[int, list[Record]] = {}
        for result in self._distinct_results(normalized):
            batch = list(result.records)
            if self._enricher is not None and self.config.enrichment_enabled and batch:
                enriched = await self._enricher.enrich(batch, lineage=result.lineage)
                ctx.enrichment.extend(enriched)
                batch = [e.record for e in enriched]
            by_result[id(result)] = batch

        await self._persist_normalized(ctx, normalized, by_result)
        return {engine: by_result[id(result)] for engine, result in normalized.items()}

    async def _persist_normalized(
        self,
        ctx: RunContext,
        normalized: dict[str, NormalizationResult],
        by_result: dict[int, list[Record]],
    ) -> None:
        if self._store is None:
            return
        rows: list[dict[str, Any]] = []
        for result in self._distinct_results(normalized):
            engines = [e for e, r in normalized.items() if r is result]
            rows.extend(
                {
                    "run_id": ctx.run_id,
                    "schema_id": result.schema_id,
                    "engines": engines,
                    "quality_score": result.quality_score,
                    "record": r.to_dict(),
                }
                for r in by_result[id(result)]
            )
        if rows:
            await self._store.insert(self.config.results_table, rows)

    @staticmethod
    def _distinct_results(normalized: dict[str, NormalizationResult]) -> list[NormalizationResult]:
        seen: set[int] = set()
        out: list[NormalizationResult] = []
        for result in normalized.values():
            if id(result) not in seen:
                seen.add(id(result))
                out.append(result)
        return out

    @staticmethod
    def _distinct_records(batches: dict[str, list[Record]]) -> list[Record]:
        seen: set[int] = set()
        out: list[Record] = []
        for batch in batches.values():
            if id(batch) in seen:
                continue
            seen.add(id(batch))
            out.extend(batch)
        return out

    # ---------- 4) distribution ----------

    async def _distribute(self, ctx: RunContext, batches: dict[str, list[Record]]) -> None:
        quality = ctx.quality.score if ctx.quality else None
        for engine in ctx.engines:
            self._status.engines.setdefault(engine, EngineStatus()).status = "seeding"

        tasks = {
            engine: asyncio.create_task(self._distributor.deliver(engine, batches.get(engine, []), quality))
            for engine in ctx.engines
        }
        await asyncio.gather(*tasks.values(), return_exceptions=True)

        now = self._clock()
        for engine, task in tasks.items():
            exc = task.exception()
            if exc is not None:
                logger.error("Distribution task for %s crashed: %s", engine, exc)
                result = DistributionResult(engine=engine, success=False, error=f"{type(exc).__name__}: {exc}")
            else:
                result = task.result()
            ctx.distribution[engine] = result

            st = self._status.engines[engine]
            st.status = "seeding" if result.success else "error"
            st.last_update = now
            st.data_received += result.records_distributed
            if not result.success:
                ctx.errors.append(f"{engine}: {result.error}")

    # ---------- journal ----------

    async def _journal_append(
        self,
        ctx: RunContext,
        phase: str,
        status: RunStatus,
        *,
        records: int = 0,
        quality: float | None = None,
        error: str | None = None,
    ) -> None:
        if self._journal is None:
            return
        rec = RunRecord(
            run_id=ctx.run_id,
            phase=phase,
            status=status,
            strategies=list(ctx.strategies),
            updated_at=time.time(),
            records=records,
            quality_score=quality,
            error=error,
            details={"timings_ms": dict(ctx.timings_ms)} if ctx.timings_ms else None,
        )
        try:
            await self._journal.append(rec)
        except OSError as e:
            logger.warning("Failed to append run journal entry for %s: %s", ctx.run_id, e)
