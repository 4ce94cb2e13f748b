"""Core data models for the seeding pipeline.

This module defines:
- `SourceConfig` / `CollectionStrategy`: what to collect and how.
- `CollectionResult`: outcome of collecting one source (never an exception).
- `EngineRequirement` / `DistributionResult`: consumer contracts and outcomes.
- `EnrichmentResult`: outcome of enriching one record.
- `OrchestratorStatus`: observable state of the orchestrator.
- `RunRecord`: journal entry persisted for every run phase.

Design notes
------------
- Configuration-like models are frozen; results that are assembled
  incrementally (status, stats) are mutable.
- Scores are clamped to [0, 1] at construction time.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Literal

from dataseed.core.records import SHAPE_FIELDS, Record, RecordShape

SourceKind = Literal["database", "api", "scraping", "synthetic", "benchmark"]
Schedule = Literal["real_time", "hourly", "daily", "weekly", "manual"]
Priority = Literal["high", "medium", "low"]
TransportKind = Literal["database", "api", "file"]
Phase = Literal["idle", "collecting", "processing", "distributing", "monitoring", "error"]
EngineState = Literal["ready", "seeding", "training", "error"]
EnrichmentStatus = Literal["passed", "partial", "failed"]
RunStatus = Literal["started", "done", "failed", "stopped", "rejected"]

SOURCE_KINDS: tuple[str, ...] = ("database", "api", "scraping", "synthetic", "benchmark")
SCHEDULES: tuple[str, ...] = ("real_time", "hourly", "daily", "weekly", "manual")
TRANSPORT_KINDS: tuple[str, ...] = ("database", "api", "file")


def clamp01(x: float) -> float:
    """Clamp to [0, 1]; NaN becomes 0."""
    if math.isnan(x):
        return 0.0
    return max(0.0, min(1.0, x))


# === Sources & strategies ===


@dataclass(frozen=True)
class SourceConfig:
    """Declarative description of one data source."""

    source_id: str
    kind: SourceKind
    schedule: Schedule = "daily"
    priority: Priority = "medium"
    enabled: bool = True
    retry_attempts: int = 3  # retries after the first attempt
    timeout_ms: int = 30_000
    data_format: str = "generic"
    target: str | None = None  # table name, URL or scraping target depending on kind

    def __post_init__(self) -> None:
        if not self.source_id:
            raise ValueError("source_id must be non-empty")
        if self.kind not in SOURCE_KINDS:
            raise ValueError(f"unknown source kind: {self.kind!r}")
        if self.schedule not in SCHEDULES:
            raise ValueError(f"unknown schedule: {self.schedule!r}")
        if self.retry_attempts < 0:
            raise ValueError("retry_attempts must be >= 0")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")


@dataclass(frozen=True)
class DataRequirements:
    min_records_per_source: int = 0
    required_date_range_days: int = 30
    quality_threshold: float = 0.0
    completeness_threshold: float = 0.0


@dataclass(frozen=True)
class CollectionStrategy:
    """Which sources feed which engines, with fallback and validation rules."""

    name: str
    target_engines: tuple[str, ...]
    sources: tuple[str, ...]
    requirements: DataRequirements = field(default_factory=DataRequirements)
    fallback_sources: tuple[str, ...] = ()
    validation_rules: tuple[str, ...] = ()
    parallel: bool = True
    schema_id: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("strategy name must be non-empty")
        if not self.target_engines:
            raise ValueError(f"strategy {self.name!r} must target at least one engine")
        # accept lists from callers, store tuples
        object.__setattr__(self, "target_engines", tuple(self.target_engines))
        object.__setattr__(self, "sources", tuple(self.sources))
        object.__setattr__(self, "fallback_sources", tuple(self.fallback_sources))
        object.__setattr__(self, "validation_rules", tuple(self.validation_rules))

    def referenced_sources(self) -> tuple[str, ...]:
        return self.sources + tuple(s for s in self.fallback_sources if s not in self.sources)


# === Collection ===


@dataclass(frozen=True)
class CollectionResult:
    """Outcome of collecting one source. `error` is set iff `success` is False."""

    source_id: str
    kind: str
    success: bool
    records_collected: int = 0
    size_bytes: int = 0
    elapsed_ms: float = 0.0
    quality_score: float = 0.0
    error: str | None = None
    warnings: tuple[str, ...] = ()
    attempts: int = 0
    collected_at: float = 0.0
    data_range: tuple[str, str] | None = None
    records: tuple[Record, ...] = ()

    def __post_init__(self) -> None:
        if self.success and self.error is not None:
            raise ValueError("successful CollectionResult cannot carry an error")
        if not self.success and not self.error:
            raise ValueError("failed CollectionResult must carry an error message")
        object.__setattr__(self, "quality_score", clamp01(self.quality_score))

    @classmethod
    def failed(
        cls,
        source: SourceConfig,
        error: str,
        *,
        attempts: int = 0,
        elapsed_ms: float = 0.0,
        collected_at: float = 0.0,
    ) -> CollectionResult:
        return cls(
            source_id=source.source_id,
            kind=source.kind,
            success=False,
            error=error,
            attempts=attempts,
            elapsed_ms=elapsed_ms,
            collected_at=collected_at,
        )


# === Engines & distribution ===


@dataclass(frozen=True)
class EngineRequirement:
    """Contract an engine imposes on the batches it receives."""

    min_records: int
    required_fields: tuple[str, ...]
    quality_threshold: float = 0.0
    transport: TransportKind = "database"
    data_format: str = "generic"
    shape: RecordShape = RecordShape.GENERIC
    optional_fields: tuple[str, ...] = ()
    field_renames: tuple[tuple[str, str], ...] = ()  # (old, new), applied before filtering
    filters: tuple[tuple[str, Any], ...] = ()  # (field, value) equality filters

    def __post_init__(self) -> None:
        object.__setattr__(self, "required_fields", tuple(self.required_fields))
        object.__setattr__(self, "optional_fields", tuple(self.optional_fields))
        # accept mappings from callers, store pairs
        for name in ("field_renames", "filters"):
            value = getattr(self, name)
            pairs = value.items() if isinstance(value, Mapping) else value
            object.__setattr__(self, name, tuple((k, v) for k, v in pairs))
        if self.min_records < 0:
            raise ValueError("min_records must be >= 0")
        if not 0.0 <= self.quality_threshold <= 1.0:
            raise ValueError("quality_threshold must be within [0, 1]")
        if self.transport not in TRANSPORT_KINDS:
            raise ValueError(f"unknown transport: {self.transport!r}")
        if self.shape is not RecordShape.GENERIC:
            declared = set(SHAPE_FIELDS[self.shape])
            unknown = [f for f in self.required_fields if f not in declared]
            if unknown:
                raise ValueError(
                    f"required fields {unknown} are not part of the {self.shape.value!r} record shape"
                )


@dataclass(kw_only=True)
class DistributionResult:
    engine: str
    success: bool
    records_distributed: int = 0
    elapsed_ms: float = 0.0
    confidence_score: float = 0.0
    error: str | None = None


# === Enrichment ===


@dataclass(kw_only=True)
class EnrichmentResult:
    record_id: str
    record: Record
    sources: tuple[str, ...]
    enrichment_score: float
    confidence: float
    elapsed_ms: float
    status: EnrichmentStatus
    lineage: tuple[str, ...] = ()

    def to_row(self) -> dict[str, Any]:
        """Flatten for persistence."""
        return {
            "record_id": self.record_id,
            "enriched_data": self.record.to_dict(),
            "enrichment_sources": list(self.sources),
            "enrichment_score": self.enrichment_score,
            "confidence_level": self.confidence,
            "processing_time_ms": self.elapsed_ms,
            "validation_status": self.status,
            "data_lineage": list(self.lineage),
        }


# === Orchestrator status ===


@dataclass(slots=True)
class EngineStatus:
    status: EngineState = "ready"
    last_update: datetime | None = None
    data_received: int = 0


@dataclass(slots=True)
class CollectedStats:
    total_records: int = 0
    quality_score: float = 0.0
    sources: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PerformanceMetrics:
    processing_time_ms: float = 0.0
    distribution_time_ms: float = 0.0
    success_rate: float = 0.0
    error_count: int = 0


@dataclass(slots=True)
class OrchestratorStatus:
    """Observable orchestrator state. Written by the orchestrator only."""

    phase: Phase = "idle"
    current_step: str = "Ready"
    progress: int = 0
    data_collected: CollectedStats = field(default_factory=CollectedStats)
    engines: dict[str, EngineStatus] = field(default_factory=dict)
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    last_run: datetime | None = None
    next_run: datetime | None = None
    last_error: str | None = None


# === Run journal ===


@dataclass(slots=True)
class RunRecord:
    """A single run/phase record persisted to the run journal."""

    run_id: str
    phase: str
    status: RunStatus
    strategies: list[str]
    updated_at: float
    records: int = 0
    quality_score: float | None = None
    error: str | None = None
    details: dict[str, Any] | None = None

    def to_json_line(self) -> str:
        """Serialize as a compact JSON line."""
        return json.dumps(asdict(self), separators=(",", ":"), default=str) + "\n"
