"""Record enrichment.

Each record is passed through every configured enrichment source. Source
outputs are merged into the record; a source that raises is logged and skipped
for that record only.

Scoring
-------
score = 0.4 * (sources succeeded / sources configured)
      + 0.3 * (filled fields / fields of the enriched record)
      + 0.3 * mean quality reported by the succeeded sources

status is "passed" when score >= min_score, "partial" when at least one source
succeeded, "failed" otherwise.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from dataseed.core.errors import EnrichmentError
from dataseed.core.interfaces import IEnrichmentSource, IRecordStore
from dataseed.core.models import EnrichmentResult, EnrichmentStatus, clamp01
from dataseed.core.records import Record

logger = logging.getLogger(__name__)

ENRICHMENT_TABLE = "data_enrichment_results"


@dataclass(kw_only=True)
class EnrichmentMetrics:
    """Running totals across every batch processed by an engine."""

    total_processed: int = 0
    passed: int = 0
    partial: int = 0
    failed: int = 0
    avg_enrichment_score: float = 0.0
    total_time_ms: float = 0.0

    def add(self, results: Sequence[EnrichmentResult], elapsed_ms: float) -> None:
        if not results:
            return
        prev = self.total_processed
        self.total_processed += len(results)
        for r in results:
            match r.status:
                case "passed":
                    self.passed += 1
                case "partial":
                    self.partial += 1
                case _:
                    self.failed += 1
        batch_sum = sum(r.enrichment_score for r in results)
        self.avg_enrichment_score = (self.avg_enrichment_score * prev + batch_sum) / self.total_processed
        self.total_time_ms += elapsed_ms


def _filled(value: Any) -> bool:
    return value is not None and value != "" and value != [] and value != {}


class EnrichmentEngine:
    def __init__(
        self,
        sources: Sequence[IEnrichmentSource],
        store: IRecordStore | None = None,
        *,
        batch_size: int = 100,
        min_score: float = 0.75,
        history_size: int = 50,
        table: str = ENRICHMENT_TABLE,
    ) -> None:
        self._sources = list(sources)
        self._store = store
        self.batch_size = max(1, batch_size)
        self.min_score = min_score
        self.table = table
        self._history: deque[dict[str, Any]] = deque(maxlen=history_size)
        self._metrics = EnrichmentMetrics()

    @property
    def source_names(self) -> list[str]:
        return [s.name for s in self._sources]

    def history(self) -> list[dict[str, Any]]:
        """Most recent batch lineage entries, oldest first."""
        return list(self._history)

    def metrics(self) -> EnrichmentMetrics:
        return EnrichmentMetrics(**vars(self._metrics))

    async def enrich(self, records: Sequence[Record], *, lineage: Sequence[str] = ()) -> list[EnrichmentResult]:
        """Enrich `records` in chunks of `batch_size`.

        Raises:
            EnrichmentError: persisting a batch failed; the remaining batches
                are not processed.
        """
        out: list[EnrichmentResult] = []
        for start in range(0, len(records), self.batch_size):
            chunk = records[start : start + self.batch_size]
            t0 = time.perf_counter()
            results = [await self._enrich_one(r, start + i, lineage) for i, r in enumerate(chunk)]
            await self._persist(results)
            elapsed_ms = (time.perf_counter() - t0) * 1000

            self._metrics.add(results, elapsed_ms)
            self._history.append(
                {
                    "batch_start": start,
                    "records": len(results),
                    "sources": self.source_names,
                    "lineage": list(lineage),
                    "completed_at": time.time(),
                }
            )
            out.extend(results)
        if out:
            logger.info(
                "Enriched %d record(s): passed=%d partial=%d failed=%d",
                len(out),
                sum(1 for r in out if r.status == "passed"),
                sum(1 for r in out if r.status == "partial"),
                sum(1 for r in out if r.status == "failed"),
            )
        return out

    async def _enrich_one(self, record: Record, idx: int, lineage: Sequence[str]) -> EnrichmentResult:
        t0 = time.perf_counter()
        enriched = record
        used: list[str] = []
        qualities: list[float] = []

        for source in self._sources:
            try:
                fields, quality = await source.enrich(enriched)
            except Exception as e:
                logger.warning("Enrichment source %s failed for record %d: %s", source.name, idx, e)
                continue
            enriched = enriched.with_fields(fields)
            used.append(source.name)
            qualities.append(clamp01(quality))

        configured = len(self._sources)
        source_ratio = len(used) / configured if configured else 0.0
        completeness = (sum(1 for v in enriched.values() if _filled(v)) / len(enriched)) if len(enriched) else 0.0
        mean_quality = sum(qualities) / len(qualities) if qualities else 0.0
        score = clamp01(0.4 * source_ratio + 0.3 * completeness + 0.3 * mean_quality)

        status: EnrichmentStatus
        if score >= self.min_score:
            status = "passed"
        elif used:
            status = "partial"
        else:
            status = "failed"

        record_id = next((str(record[k]) for k in ("id", "content_id", "post_id") if record.get(k) is not None), f"record_{idx}")
        return EnrichmentResult(
            record_id=record_id,
            record=enriched,
            sources=tuple(used),
            enrichment_score=score,
            confidence=min(score + 0.1, 1.0),
            elapsed_ms=(time.perf_counter() - t0) * 1000,
            status=status,
            lineage=tuple(lineage) + tuple(used),
        )

    async def _persist(self, results: Sequence[EnrichmentResult]) -> None:
        if self._store is None or not results:
            return
        try:
            await self._store.insert(self.table, [r.to_row() for r in results])
        except Exception as e:
            raise EnrichmentError(f"failed to persist enrichment batch: {e}") from e
