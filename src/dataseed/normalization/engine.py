"""Schema-driven normalization engine.

For each record: map fields, convert types, apply transformation rules,
validate, then score. Failures on a single field are logged and recorded in
the result; a record is never dropped by normalization.
"""

from __future__ import annotations

import logging
import time
from collections import ChainMap
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from dataseed.core.errors import SchemaNotFound, TransformationError
from dataseed.core.models import clamp01
from dataseed.core.records import Record, RecordShape
from dataseed.normalization.conversion import convert
from dataseed.normalization.specs import NormalizationSchema, TransformKind
from dataseed.normalization.transforms import apply_transform
from dataseed.normalization.validation import ValidationIssue, record_quality, validate_record

logger = logging.getLogger(__name__)

PASSTHROUGH_SCHEMA_ID = "passthrough"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(kw_only=True)
class TransformationSummary:
    fields_mapped: int = 0
    fields_calculated: int = 0
    fields_aggregated: int = 0
    fields_derived: int = 0
    types_converted: int = 0
    conversion_failures: int = 0
    rules_applied: int = 0
    validation_passes: int = 0
    validation_failures: int = 0

    def count_mapping(self, kind: TransformKind) -> None:
        match kind:
            case TransformKind.DIRECT:
                self.fields_mapped += 1
            case TransformKind.CALCULATED:
                self.fields_calculated += 1
            case TransformKind.AGGREGATED:
                self.fields_aggregated += 1
            case TransformKind.DERIVED:
                self.fields_derived += 1


@dataclass(kw_only=True)
class NormalizationResult:
    success: bool
    schema_id: str
    original_count: int
    normalized_count: int
    quality_score: float
    elapsed_ms: float
    summary: TransformationSummary
    validation_errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    records: list[Record] = field(default_factory=list)
    record_scores: list[float] = field(default_factory=list)
    lineage: tuple[str, ...] = ()
    engine_compatibility: tuple[str, ...] = ()
    normalized_at: float = 0.0

    @property
    def validation_failures(self) -> int:
        return self.summary.validation_failures


@dataclass(slots=True)
class _RecordOutcome:
    record: Record
    issues: list[ValidationIssue]
    warnings: list[str]
    score: float


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class NormalizationEngine:
    def __init__(self, schemas: Iterable[NormalizationSchema] = ()) -> None:
        self._schemas: dict[str, NormalizationSchema] = {}
        for s in schemas:
            self.register_schema(s)

    # ---------- schema registry ----------

    def register_schema(self, schema: NormalizationSchema) -> None:
        if schema.schema_id in self._schemas:
            logger.info("Replacing normalization schema %s", schema.schema_id)
        self._schemas[schema.schema_id] = schema

    def get_schema(self, schema_id: str) -> NormalizationSchema:
        try:
            return self._schemas[schema_id]
        except KeyError:
            raise SchemaNotFound(schema_id) from None

    def schemas(self) -> MappingProxyType[str, NormalizationSchema]:
        return MappingProxyType(dict(self._schemas))

    def schemas_for(self, engines: Iterable[str]) -> list[NormalizationSchema]:
        """Schemas targeting at least one of `engines`, in registration order."""
        wanted = set(engines)
        return [s for s in self._schemas.values() if wanted & set(s.target_engines)]

    # ---------- normalization ----------

    def normalize(
        self,
        records: Sequence[Mapping[str, Any]],
        schema: NormalizationSchema | str,
        *,
        lineage: Sequence[str] = (),
    ) -> NormalizationResult:
        """Normalize `records` with `schema` (instance or registered id)."""
        if isinstance(schema, str):
            schema = self.get_schema(schema)

        t0 = time.perf_counter()
        summary = TransformationSummary()
        issues: list[ValidationIssue] = []
        warnings: list[str] = []
        out: list[Record] = []
        scores: list[float] = []

        for idx, raw in enumerate(records):
            outcome = self._normalize_one(raw, idx, schema, summary)
            out.append(outcome.record)
            scores.append(outcome.score)
            issues.extend(outcome.issues)
            warnings.extend(outcome.warnings)
            if outcome.issues:
                summary.validation_failures += 1
            else:
                summary.validation_passes += 1

        quality = self._overall_quality(schema, scores, issues)
        for t in schema.quality_thresholds:
            metric = self._metric(t.metric, scores, issues)
            if out and metric < t.min_threshold:
                warnings.append(f"{t.metric} {metric:.3f} below minimum {t.min_threshold:.3f}")

        elapsed_ms = (time.perf_counter() - t0) * 1000
        result = NormalizationResult(
            success=not any(i.severity == "critical" for i in issues),
            schema_id=schema.schema_id,
            original_count=len(records),
            normalized_count=len(out),
            quality_score=quality,
            elapsed_ms=elapsed_ms,
            summary=summary,
            validation_errors=issues,
            warnings=warnings,
            records=out,
            record_scores=scores,
            lineage=tuple(lineage) + (schema.schema_id,),
            engine_compatibility=tuple(schema.target_engines),
            normalized_at=time.time(),
        )
        logger.info(
            "Normalized %d record(s) with %s: quality=%.3f failures=%d",
            result.normalized_count,
            schema.schema_id,
            result.quality_score,
            summary.validation_failures,
        )
        return result

    def normalize_for_engines(
        self,
        records: Sequence[Mapping[str, Any]],
        engines: Iterable[str],
        *,
        lineage: Sequence[str] = (),
    ) -> dict[str, NormalizationResult]:
        """One result per engine that has an applicable schema.

        Engines sharing a schema share the same result object.
        """
        engines = list(engines)
        by_schema: dict[str, NormalizationResult] = {}
        out: dict[str, NormalizationResult] = {}
        for schema in self.schemas_for(engines):
            for engine in engines:
                if engine in out or engine not in schema.target_engines:
                    continue
                if schema.schema_id not in by_schema:
                    by_schema[schema.schema_id] = self.normalize(records, schema, lineage=lineage)
                out[engine] = by_schema[schema.schema_id]
        return out

    def passthrough(
        self,
        records: Sequence[Mapping[str, Any]],
        *,
        engines: Sequence[str] = (),
        lineage: Sequence[str] = (),
        quality_score: float = 0.0,
    ) -> NormalizationResult:
        """Result for engines without a schema: records unchanged, no validation."""
        wrapped = [r if isinstance(r, Record) else Record.from_mapping(r) for r in records]
        return NormalizationResult(
            success=True,
            schema_id=PASSTHROUGH_SCHEMA_ID,
            original_count=len(wrapped),
            normalized_count=len(wrapped),
            quality_score=clamp01(quality_score) if wrapped else 0.0,
            elapsed_ms=0.0,
            summary=TransformationSummary(validation_passes=len(wrapped)),
            records=wrapped,
            record_scores=[1.0] * len(wrapped),
            lineage=tuple(lineage) + (PASSTHROUGH_SCHEMA_ID,),
            engine_compatibility=tuple(engines),
            normalized_at=time.time(),
        )

    # ---------- per-record steps ----------

    def _normalize_one(
        self,
        raw: Mapping[str, Any],
        idx: int,
        schema: NormalizationSchema,
        summary: TransformationSummary,
    ) -> _RecordOutcome:
        warnings: list[str] = []

        # 1) Field mappings
        mapped: dict[str, Any] = {}
        for m in schema.ordered_mappings():
            try:
                if m.kind is TransformKind.DIRECT:
                    value = next((raw.get(f) for f in m.source_fields if raw.get(f) is not None), None)
                else:
                    value = apply_transform(m.function, raw, m.source_fields)
            except TransformationError as e:
                logger.warning("Field mapping %s -> %s failed: %s", m.source_field, m.target_field, e)
                if not m.has_default:
                    warnings.append(f"record {idx}: {m.target_field} omitted ({e})")
                    continue
                value = m.default

            if value is None and m.has_default:
                value = m.default
            if value is None:
                if m.required:
                    warnings.append(f"record {idx}: required field {m.target_field} missing")
                continue
            mapped[m.target_field] = value
            summary.count_mapping(m.kind)

        # 2) Type conversion
        for tm in schema.type_mappings:
            if mapped.get(tm.field) is None:
                continue
            try:
                mapped[tm.field] = convert(mapped[tm.field], tm)
                summary.types_converted += 1
            except TransformationError as e:
                logger.warning("Type conversion failed for %s (record %d): %s", tm.field, idx, e)
                summary.conversion_failures += 1
                warnings.append(f"record {idx}: {tm.field} omitted ({e})")
                del mapped[tm.field]

        # 3) Transformation rules, evaluated over mapped fields layered on the raw record
        for rule in schema.ordered_rules():
            view = ChainMap(mapped, dict(raw))
            if not rule.applies_to(view):
                continue
            try:
                mapped[rule.target_field] = apply_transform(rule.function, view, rule.source_fields)
                summary.rules_applied += 1
            except TransformationError as e:
                logger.warning("Transformation rule %s failed (record %d): %s", rule.rule_id, idx, e)
                warnings.append(f"record {idx}: rule {rule.rule_id} skipped ({e})")

        if schema.carry_unmapped:
            consumed = {m.source_field for m in schema.field_mappings}
            for k, v in raw.items():
                if k not in consumed and k not in mapped:
                    mapped[k] = v

        # 4) Validation
        issues = validate_record(mapped, schema.validation_rules, idx)

        # 5) Per-record quality
        score = record_quality(len(mapped), issues)

        return _RecordOutcome(
            record=Record.from_mapping(mapped, schema.shape),
            issues=issues,
            warnings=warnings,
            score=score,
        )

    # ---------- aggregate quality ----------

    @staticmethod
    def _metric(name: str, scores: Sequence[float], issues: Sequence[ValidationIssue]) -> float:
        n = len(scores)
        if n == 0:
            return 0.0
        match name:
            case "completeness":
                return sum(scores) / n
            case "accuracy":
                return max(0.0, 1 - sum(1 for i in issues if i.severity == "error") / n)
            case "consistency":
                return max(0.0, 1 - sum(1 for i in issues if i.severity == "warning") / n)
        return 0.0

    def _overall_quality(
        self,
        schema: NormalizationSchema,
        scores: Sequence[float],
        issues: Sequence[ValidationIssue],
    ) -> float:
        if not scores:
            return 0.0
        total_weight = sum(t.weight for t in schema.quality_thresholds)
        if total_weight <= 0:
            return clamp01(sum(scores) / len(scores))
        weighted = sum(t.weight * self._metric(t.metric, scores, issues) for t in schema.quality_thresholds)
        return clamp01(weighted / total_weight)
