"""JSON pipeline definitions.

A definition file declares the catalog of one deployment:

    {
      "sources":    [ {source_id, kind, schedule, ...}, ... ],
      "strategies": [ {name, target_engines, sources, requirements, ...}, ... ],
      "schemas":    [ {schema_id, name, target_engines, field_mappings, ...}, ... ],
      "engines":    { "<engine>": {min_records, required_fields, ...}, ... },
      "endpoints":  { "<engine>": "https://..." },
      "orchestrator": { batch_size, collection_interval, ... }
    }

Every section is optional. Documents are validated with pydantic and turned
into the frozen dataclasses used by the pipeline. Transform functions are
referenced by `TransformFunction` value; unknown names fail validation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dataseed.core.config import Interval, OrchestratorConfig
from dataseed.core.errors import Severity
from dataseed.core.models import (
    CollectionStrategy,
    DataRequirements,
    EngineRequirement,
    Priority,
    Schedule,
    SourceConfig,
    SourceKind,
    TransportKind,
)
from dataseed.core.records import RecordShape
from dataseed.normalization.specs import (
    NO_DEFAULT,
    Condition,
    ConditionOp,
    FieldMapping,
    MetricName,
    NormalizationSchema,
    QualityThreshold,
    TargetType,
    TransformationRule,
    TransformFunction,
    TransformKind,
    TypeMapping,
    ValidationKind,
    ValidationRule,
)


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid")


# =============================================================================
# SOURCES & STRATEGIES
# =============================================================================


class SourceModel(_Model):
    source_id: str = Field(..., min_length=1)
    kind: SourceKind
    schedule: Schedule = "daily"
    priority: Priority = "medium"
    enabled: bool = True
    retry_attempts: int = Field(default=3, ge=0)
    timeout_ms: int = Field(default=30_000, gt=0)
    data_format: str = "generic"
    target: str | None = None

    def to_config(self) -> SourceConfig:
        return SourceConfig(**self.model_dump())


class RequirementsModel(_Model):
    min_records_per_source: int = Field(default=0, ge=0)
    required_date_range_days: int = Field(default=30, ge=0)
    quality_threshold: float = Field(default=0.0, ge=0.0, le=1.0)
    completeness_threshold: float = Field(default=0.0, ge=0.0, le=1.0)


class StrategyModel(_Model):
    name: str = Field(..., min_length=1)
    target_engines: list[str] = Field(..., min_length=1)
    sources: list[str]
    requirements: RequirementsModel = Field(default_factory=RequirementsModel)
    fallback_sources: list[str] = Field(default_factory=list)
    validation_rules: list[str] = Field(default_factory=list)
    parallel: bool = True
    schema_id: str | None = None

    def to_strategy(self) -> CollectionStrategy:
        return CollectionStrategy(
            name=self.name,
            target_engines=tuple(self.target_engines),
            sources=tuple(self.sources),
            requirements=DataRequirements(**self.requirements.model_dump()),
            fallback_sources=tuple(self.fallback_sources),
            validation_rules=tuple(self.validation_rules),
            parallel=self.parallel,
            schema_id=self.schema_id,
        )


# =============================================================================
# SCHEMAS
# =============================================================================


class FieldMappingModel(_Model):
    source_field: str
    target_field: str
    kind: TransformKind = TransformKind.DIRECT
    function: TransformFunction | None = None
    default: Any = None
    required: bool = False
    priority: int = 0
    alternates: list[str] = Field(default_factory=list)

    def to_mapping(self) -> FieldMapping:
        # an explicit "default": null is a real default, an absent key is not
        default = self.default if "default" in self.model_fields_set else NO_DEFAULT
        return FieldMapping(
            source_field=self.source_field,
            target_field=self.target_field,
            kind=self.kind,
            function=self.function,
            default=default,
            required=self.required,
            priority=self.priority,
            alternates=tuple(self.alternates),
        )


class TypeMappingModel(_Model):
    field: str
    target_type: TargetType
    number_precision: int | None = Field(default=None, ge=0)
    date_format: str = "iso8601"
    array_delimiter: str = ","


class ValidationRuleModel(_Model):
    rule_id: str
    field: str
    kind: ValidationKind
    params: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    severity: Severity = "error"


class ConditionModel(_Model):
    field: str
    op: ConditionOp = "exists"
    value: Any = None


class TransformationRuleModel(_Model):
    rule_id: str
    name: str
    source_fields: list[str]
    target_field: str
    function: TransformFunction
    conditions: list[ConditionModel] = Field(default_factory=list)
    priority: int = 0

    def to_rule(self) -> TransformationRule:
        return TransformationRule(
            rule_id=self.rule_id,
            name=self.name,
            source_fields=tuple(self.source_fields),
            target_field=self.target_field,
            function=self.function,
            conditions=tuple(Condition(**c.model_dump()) for c in self.conditions),
            priority=self.priority,
        )


class QualityThresholdModel(_Model):
    metric: MetricName
    min_threshold: float = Field(..., ge=0.0, le=1.0)
    target_threshold: float = Field(..., ge=0.0, le=1.0)
    weight: float = Field(..., ge=0.0)


class SchemaModel(_Model):
    schema_id: str = Field(..., min_length=1)
    name: str
    target_engines: list[str] = Field(..., min_length=1)
    shape: RecordShape = RecordShape.GENERIC
    carry_unmapped: bool = False
    field_mappings: list[FieldMappingModel] = Field(default_factory=list)
    type_mappings: list[TypeMappingModel] = Field(default_factory=list)
    validation_rules: list[ValidationRuleModel] = Field(default_factory=list)
    transformation_rules: list[TransformationRuleModel] = Field(default_factory=list)
    quality_thresholds: list[QualityThresholdModel] = Field(default_factory=list)

    def to_schema(self) -> NormalizationSchema:
        return NormalizationSchema(
            schema_id=self.schema_id,
            name=self.name,
            target_engines=tuple(self.target_engines),
            field_mappings=tuple(m.to_mapping() for m in self.field_mappings),
            type_mappings=tuple(TypeMapping(**t.model_dump()) for t in self.type_mappings),
            validation_rules=tuple(ValidationRule(**v.model_dump()) for v in self.validation_rules),
            transformation_rules=tuple(r.to_rule() for r in self.transformation_rules),
            quality_thresholds=tuple(QualityThreshold(**q.model_dump()) for q in self.quality_thresholds),
            shape=self.shape,
            carry_unmapped=self.carry_unmapped,
        )


# =============================================================================
# ENGINES & ORCHESTRATOR
# =============================================================================


class EngineModel(_Model):
    min_records: int = Field(..., ge=0)
    required_fields: list[str] = Field(default_factory=list)
    quality_threshold: float = Field(default=0.0, ge=0.0, le=1.0)
    transport: TransportKind = "database"
    data_format: str = "generic"
    shape: RecordShape = RecordShape.GENERIC
    optional_fields: list[str] = Field(default_factory=list)
    field_renames: dict[str, str] = Field(default_factory=dict)
    filters: dict[str, Any] = Field(default_factory=dict)

    def to_requirement(self) -> EngineRequirement:
        return EngineRequirement(
            min_records=self.min_records,
            required_fields=tuple(self.required_fields),
            quality_threshold=self.quality_threshold,
            transport=self.transport,
            data_format=self.data_format,
            shape=self.shape,
            optional_fields=tuple(self.optional_fields),
            field_renames=self.field_renames,
            filters=self.filters,
        )


class OrchestratorModel(_Model):
    batch_size: int = Field(default=1_000, ge=1)
    collection_interval: Interval = "daily"
    max_parallel_collections: int = Field(default=5, ge=1)
    quality_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    enrichment_enabled: bool = True
    bias_detection: bool = True
    governance_checks: bool = True
    distribution_retry_attempts: int = Field(default=3, ge=0)
    distribution_timeout_ms: int = Field(default=30_000, gt=0)
    retry_base_delay_s: float = Field(default=0.5, ge=0.0)
    retry_max_delay_s: float = Field(default=10.0, ge=0.0)
    continuous_mode: bool = False
    results_table: str = "data_seeding_results"

    def to_config(self) -> OrchestratorConfig:
        return OrchestratorConfig(**self.model_dump())


class PipelineDefinition(_Model):
    """Root document of a pipeline definition file."""

    sources: list[SourceModel] = Field(default_factory=list)
    strategies: list[StrategyModel] = Field(default_factory=list)
    schemas: list[SchemaModel] = Field(default_factory=list)
    engines: dict[str, EngineModel] = Field(default_factory=dict)
    endpoints: dict[str, str] = Field(default_factory=dict)
    orchestrator: OrchestratorModel | None = None

    def source_configs(self) -> list[SourceConfig]:
        return [s.to_config() for s in self.sources]

    def collection_strategies(self) -> list[CollectionStrategy]:
        return [s.to_strategy() for s in self.strategies]

    def normalization_schemas(self) -> list[NormalizationSchema]:
        return [s.to_schema() for s in self.schemas]

    def engine_requirements(self) -> dict[str, EngineRequirement]:
        return {name: e.to_requirement() for name, e in self.engines.items()}

    def orchestrator_config(self) -> OrchestratorConfig | None:
        return self.orchestrator.to_config() if self.orchestrator else None


def load_definition(path: str | Path) -> PipelineDefinition:
    """Read and validate a JSON pipeline definition.

    Raises:
        pydantic.ValidationError: the document does not match the models.
        OSError: the file cannot be read.
    """
    return PipelineDefinition.model_validate_json(Path(path).read_text(encoding="utf-8"))
