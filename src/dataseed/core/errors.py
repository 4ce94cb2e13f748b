"""Error taxonomy for the seeding pipeline.

Per-record and per-source failures are captured inside result objects and
never leave the component that produced them. Run-level failures
(`QualityBelowThreshold`, `EnrichmentError`) propagate to the caller of the
orchestrator. Lookups of unknown identifiers are programmer errors and raise
`KeyError` subclasses.
"""

from __future__ import annotations

from typing import Literal

Severity = Literal["warning", "error", "critical"]


class SeedingError(Exception):
    """Base class for every error raised by dataseed."""


# ---------------------------------------------------------------------------
# Operational errors
# ---------------------------------------------------------------------------


class SourceUnavailable(SeedingError):
    """A source could not be collected (adapter error, timeout, disabled)."""

    def __init__(self, source_id: str, reason: str, *, attempts: int = 0) -> None:
        super().__init__(f"{source_id}: {reason}")
        self.source_id = source_id
        self.reason = reason
        self.attempts = attempts


class ValidationFailure(SeedingError):
    """A validation rule rejected a value."""

    def __init__(self, message: str, *, severity: Severity = "error") -> None:
        super().__init__(message)
        self.severity = severity


class QualityBelowThreshold(SeedingError):
    """Combined quality of the processed batch is below the configured gate."""

    def __init__(self, score: float, threshold: float, checks: dict[str, float] | None = None) -> None:
        super().__init__(f"Data quality score {score:.3f} is below threshold {threshold:.3f}")
        self.score = score
        self.threshold = threshold
        self.checks = dict(checks or {})


class EngineRequirementNotMet(SeedingError):
    """A candidate batch does not satisfy an engine's requirement."""

    def __init__(self, engine: str, reason: str) -> None:
        super().__init__(f"{engine}: {reason}")
        self.engine = engine
        self.reason = reason


class TransformationError(SeedingError):
    """A field mapping, conversion or transformation rule failed for one value."""


class InvalidDate(TransformationError):
    """A value could not be parsed as a date."""


class EnrichmentError(SeedingError):
    """An enrichment batch could not be completed."""


# ---------------------------------------------------------------------------
# Programmer errors (unknown identifiers)
# ---------------------------------------------------------------------------


class SourceNotFound(SeedingError, KeyError):
    def __init__(self, source_id: str) -> None:
        super().__init__(f"Source not found: {source_id}")
        self.source_id = source_id

    def __str__(self) -> str:
        return f"Source not found: {self.source_id}"


class DuplicateSource(SeedingError, ValueError):
    def __init__(self, source_id: str) -> None:
        super().__init__(f"Source already registered: {source_id}")
        self.source_id = source_id


class StrategyNotFound(SeedingError, KeyError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Strategy not found: {name}")
        self.name = name

    def __str__(self) -> str:
        return f"Strategy not found: {self.name}"


class SchemaNotFound(SeedingError, KeyError):
    def __init__(self, schema_id: str) -> None:
        super().__init__(f"Normalization schema not found: {schema_id}")
        self.schema_id = schema_id

    def __str__(self) -> str:
        return f"Normalization schema not found: {self.schema_id}"


class EngineNotFound(SeedingError, KeyError):
    def __init__(self, engine: str) -> None:
        super().__init__(f"Engine not registered: {engine}")
        self.engine = engine

    def __str__(self) -> str:
        return f"Engine not registered: {self.engine}"
