"""Schema-driven normalization.

This package provides:
- Schema primitives (FieldMapping, TypeMapping, ValidationRule, TransformationRule, ...)
- Statically bound transform functions keyed by TransformFunction
- NormalizationEngine applying a schema to a batch of records
- Built-in schemas for the content, navigation and marketing engines
"""

from dataseed.normalization.engine import NormalizationEngine, NormalizationResult, TransformationSummary
from dataseed.normalization.schemas import make_default_schemas
from dataseed.normalization.specs import (
    Condition,
    FieldMapping,
    NormalizationSchema,
    QualityThreshold,
    TransformationRule,
    TransformFunction,
    TransformKind,
    TypeMapping,
    ValidationRule,
)
from dataseed.normalization.validation import ValidationIssue

__all__ = [
    "NormalizationEngine",
    "NormalizationResult",
    "TransformationSummary",
    "ValidationIssue",
    "make_default_schemas",
    "Condition",
    "FieldMapping",
    "NormalizationSchema",
    "QualityThreshold",
    "TransformationRule",
    "TransformFunction",
    "TransformKind",
    "TypeMapping",
    "ValidationRule",
]
