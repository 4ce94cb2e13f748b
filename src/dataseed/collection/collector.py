from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from dataseed.collection.quality import QualityScorer, data_range
from dataseed.core.errors import SourceUnavailable
from dataseed.core.interfaces import ISourceAdapter
from dataseed.core.models import CollectionResult, SourceConfig
from dataseed.core.records import as_records, shape_for_format
from dataseed.core.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Collection summary
# ---------------------------------------------------------------------------


@dataclass(kw_only=True)
class CollectionSummary:
    """Aggregated counters over a set of collection results."""

    total_sources: int = 0
    successful: int = 0
    failed: int = 0
    total_records: int = 0
    avg_quality: float = 0.0
    total_time_ms: float = 0.0

    @classmethod
    def of(cls, results: Mapping[str, CollectionResult], total_time_ms: float = 0.0) -> CollectionSummary:
        ok = [r for r in results.values() if r.success]
        return cls(
            total_sources=len(results),
            successful=len(ok),
            failed=len(results) - len(ok),
            total_records=sum(r.records_collected for r in ok),
            avg_quality=(sum(r.quality_score for r in ok) / len(ok)) if ok else 0.0,
            total_time_ms=total_time_ms,
        )


# ---------------------------------------------------------------------------
# Collector
# ---------------------------------------------------------------------------


class SourceCollector:
    """
    Dispatches each source to the adapter registered for its kind.

    `collect` never raises for adapter failures, timeouts, disabled sources or
    malformed batches: every outcome is a `CollectionResult`. Only task
    cancellation propagates.
    """

    def __init__(
        self,
        adapters: Mapping[str, ISourceAdapter],
        scorer: QualityScorer | None = None,
        *,
        base_delay_s: float = 0.5,
        max_delay_s: float = 10.0,
        quality_threshold: float = 0.8,
    ) -> None:
        self._adapters = dict(adapters)
        self._scorer = scorer or QualityScorer()
        self._base_delay_s = base_delay_s
        self._max_delay_s = max_delay_s
        self._quality_threshold = quality_threshold

    def register_adapter(self, kind: str, adapter: ISourceAdapter) -> None:
        self._adapters[kind] = adapter

    def _policy(self, source: SourceConfig) -> RetryPolicy:
        return RetryPolicy(
            retries=source.retry_attempts,
            timeout_s=source.timeout_ms / 1000,
            base_delay_s=self._base_delay_s,
            max_delay_s=self._max_delay_s,
        )

    async def collect(self, source: SourceConfig, since: datetime | None = None) -> CollectionResult:
        """Collect one source with bounded retry and a per-attempt deadline."""
        t0 = time.perf_counter()
        started_at = time.time()
        try:
            rows, attempts = await self._fetch(source, since)
        except SourceUnavailable as e:
            return CollectionResult.failed(
                source,
                e.reason,
                attempts=e.attempts,
                elapsed_ms=(time.perf_counter() - t0) * 1000,
                collected_at=started_at,
            )
        elapsed_ms = (time.perf_counter() - t0) * 1000

        try:
            result = self._build_result(source, rows, attempts, elapsed_ms, started_at)
        except Exception as e:
            logger.warning("Collected batch from %s is unusable: %s", source.source_id, e)
            return CollectionResult.failed(
                source,
                f"invalid batch: {type(e).__name__}: {e}",
                attempts=attempts,
                elapsed_ms=elapsed_ms,
                collected_at=started_at,
            )
        logger.info(
            "Collected %s: records=%d quality=%.3f time=%.0fms",
            source.source_id,
            result.records_collected,
            result.quality_score,
            result.elapsed_ms,
        )
        return result

    async def _fetch(self, source: SourceConfig, since: datetime | None) -> tuple[list[Any], int]:
        if not source.enabled:
            raise SourceUnavailable(source.source_id, "Source is disabled")
        adapter = self._adapters.get(source.kind)
        if adapter is None:
            raise SourceUnavailable(source.source_id, f"No adapter registered for source kind {source.kind!r}")

        outcome = await call_with_retry(
            lambda: adapter.fetch(source, since),
            self._policy(source),
            label=f"collect {source.source_id}",
        )
        if not outcome.ok:
            raise SourceUnavailable(source.source_id, outcome.error or "unknown error", attempts=outcome.attempts)
        return list(outcome.value or []), outcome.attempts

    def _build_result(
        self,
        source: SourceConfig,
        rows: list[Any],
        attempts: int,
        elapsed_ms: float,
        started_at: float,
    ) -> CollectionResult:
        records = as_records(rows, shape_for_format(source.data_format))
        quality = self._scorer.score(records)

        warnings: list[str] = []
        if not records:
            warnings.append("source returned no records")
        elif quality < self._quality_threshold:
            warnings.append(f"quality {quality:.3f} below {self._quality_threshold:.3f}")
        if attempts > 1:
            warnings.append(f"succeeded after {attempts} attempts")

        return CollectionResult(
            source_id=source.source_id,
            kind=source.kind,
            success=True,
            records_collected=len(records),
            size_bytes=len(json.dumps(rows, default=str)),
            elapsed_ms=elapsed_ms,
            quality_score=quality,
            warnings=tuple(warnings),
            attempts=attempts,
            collected_at=started_at,
            data_range=data_range(records),
            records=tuple(records),
        )

    async def collect_many(
        self,
        sources: Sequence[SourceConfig],
        *,
        parallel: bool = True,
        max_parallel: int = 5,
        since: datetime | None = None,
    ) -> dict[str, CollectionResult]:
        """Collect every source; results keyed by source id in `sources` order.

        Parallel mode settles every task before inspecting any, so one source's
        failure never cancels or taints its siblings.
        """
        unique: dict[str, SourceConfig] = {}
        for s in sources:
            if s.source_id in unique:
                logger.warning("Source %s listed twice; collecting once", s.source_id)
                continue
            unique[s.source_id] = s

        if not parallel:
            return {sid: await self.collect(s, since) for sid, s in unique.items()}

        sem = asyncio.Semaphore(max(1, max_parallel))

        async def _bounded(source: SourceConfig) -> CollectionResult:
            async with sem:
                return await self.collect(source, since)

        tasks = {sid: asyncio.create_task(_bounded(s)) for sid, s in unique.items()}
        await asyncio.gather(*tasks.values(), return_exceptions=True)

        results: dict[str, CollectionResult] = {}
        for sid, task in tasks.items():
            exc = task.exception()
            if exc is not None:
                logger.error("Collection task for %s crashed: %s", sid, exc)
                results[sid] = CollectionResult.failed(unique[sid], f"{type(exc).__name__}: {exc}")
            else:
                results[sid] = task.result()
        return results
