from __future__ import annotations

from .core.config import OrchestratorConfig, Settings
from .core.models import CollectionStrategy, DataRequirements, EngineRequirement, SourceConfig
from .core.records import Record, RecordShape
from .normalization.specs import FieldMapping, NormalizationSchema, TransformFunction, TransformKind
from .orchestration.orchestrator import RunOutcome, SeedingOrchestrator

__all__ = [
    "SeedingOrchestrator",
    "RunOutcome",
    "OrchestratorConfig",
    "Settings",
    "SourceConfig",
    "CollectionStrategy",
    "DataRequirements",
    "EngineRequirement",
    "Record",
    "RecordShape",
    "NormalizationSchema",
    "FieldMapping",
    "TransformFunction",
    "TransformKind",
]
