"""Per-run context and scheduling helpers.

Functions
---------
- new_run_id: sortable, unique run identifier.
- compute_next_run: next scheduled run time from the configured interval.
- concat_successful: flatten records of successful collection results.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone

from dataseed.collection.collector import CollectionSummary
from dataseed.core.config import INTERVALS
from dataseed.core.models import CollectionResult, DistributionResult, EnrichmentResult
from dataseed.core.records import Record
from dataseed.normalization.engine import NormalizationResult
from dataseed.orchestration.assurance import QualityReport


def new_run_id(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"run_{now.strftime('%Y%m%dT%H%M%S')}_{uuid.uuid4().hex[:8]}"


def compute_next_run(last_run: datetime, interval: str) -> datetime:
    """`last_run` + interval (`hourly|daily|weekly`)."""
    try:
        return last_run + INTERVALS[interval]
    except KeyError:
        raise ValueError(f"unknown collection interval: {interval!r}") from None


def concat_successful(results: Iterable[CollectionResult]) -> list[Record]:
    out: list[Record] = []
    for r in results:
        if r.success:
            out.extend(r.records)
    return out


@dataclass(kw_only=True)
class RunContext:
    """Everything one orchestration run produces, passed from phase to phase."""

    run_id: str
    strategies: list[str]
    engines: list[str]
    started_at: datetime
    collection: dict[str, dict[str, CollectionResult]] = field(default_factory=dict)
    normalization: dict[str, NormalizationResult] = field(default_factory=dict)
    enrichment: list[EnrichmentResult] = field(default_factory=list)
    quality: QualityReport | None = None
    distribution: dict[str, DistributionResult] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    timings_ms: dict[str, float] = field(default_factory=dict)
    _phase_t0: float = 0.0

    def begin(self) -> None:
        self._phase_t0 = time.perf_counter()

    def end(self, phase: str) -> float:
        elapsed = (time.perf_counter() - self._phase_t0) * 1000
        self.timings_ms[phase] = elapsed
        return elapsed

    def results_by_source(self) -> dict[str, CollectionResult]:
        """One result per source id; a source shared by several strategies is collected once."""
        flat: dict[str, CollectionResult] = {}
        for per_strategy in self.collection.values():
            flat.update(per_strategy)
        return flat

    def collected_records(self) -> list[Record]:
        return concat_successful(self.results_by_source().values())

    def collection_summary(self) -> CollectionSummary:
        return CollectionSummary.of(self.results_by_source(), self.timings_ms.get("collection", 0.0))

    def normalized_records(self) -> list[Record]:
        """Distinct normalized batches (engines sharing a schema share one batch)."""
        seen: set[int] = set()
        out: list[Record] = []
        for result in self.normalization.values():
            if id(result) in seen:
                continue
            seen.add(id(result))
            out.extend(result.records)
        return out

    def summary(self) -> dict[str, object]:
        coll = self.collection_summary()
        delivered = [d for d in self.distribution.values() if d.success]
        return {
            "run_id": self.run_id,
            "strategies": list(self.strategies),
            "sources": coll.total_sources,
            "sources_failed": coll.failed,
            "records_collected": coll.total_records,
            "records_normalized": len(self.normalized_records()),
            "records_enriched": len(self.enrichment),
            "quality_score": self.quality.score if self.quality else None,
            "engines_delivered": len(delivered),
            "engines_failed": len(self.distribution) - len(delivered),
            "records_distributed": sum(d.records_distributed for d in delivered),
            "timings_ms": dict(self.timings_ms),
        }


def merge_warnings(per_source: Mapping[str, CollectionResult]) -> list[str]:
    return [f"{sid}: {w}" for sid, r in per_source.items() for w in r.warnings]
