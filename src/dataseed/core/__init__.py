"""Core data models, configuration, interfaces and errors.

This package provides:
- Record model (Record, RecordShape)
- Data models (SourceConfig, CollectionStrategy, CollectionResult, ...)
- Configuration classes (OrchestratorConfig, Settings)
- Error taxonomy (SeedingError and subclasses)
"""

from dataseed.core.config import OrchestratorConfig, Settings, get_settings
from dataseed.core.errors import (
    EngineNotFound,
    EngineRequirementNotMet,
    EnrichmentError,
    InvalidDate,
    QualityBelowThreshold,
    SchemaNotFound,
    SeedingError,
    SourceNotFound,
    SourceUnavailable,
    StrategyNotFound,
    TransformationError,
    ValidationFailure,
)
from dataseed.core.models import (
    CollectionResult,
    CollectionStrategy,
    DataRequirements,
    DistributionResult,
    EngineRequirement,
    EnrichmentResult,
    OrchestratorStatus,
    RunRecord,
    SourceConfig,
)
from dataseed.core.records import Record, RecordShape

__all__ = [
    "OrchestratorConfig",
    "Settings",
    "get_settings",
    "EngineNotFound",
    "EngineRequirementNotMet",
    "EnrichmentError",
    "InvalidDate",
    "QualityBelowThreshold",
    "SchemaNotFound",
    "SeedingError",
    "SourceNotFound",
    "SourceUnavailable",
    "StrategyNotFound",
    "TransformationError",
    "ValidationFailure",
    "CollectionResult",
    "CollectionStrategy",
    "DataRequirements",
    "DistributionResult",
    "EngineRequirement",
    "EnrichmentResult",
    "OrchestratorStatus",
    "RunRecord",
    "SourceConfig",
    "Record",
    "RecordShape",
]
