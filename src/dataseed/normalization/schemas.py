"""Built-in normalization schemas for the dashboard's engines.

Available schemas:
- content_performance_schema: content_performance, self_learning_analytics
- navigation_ml_schema: navigation, ai_navigation_framework
- marketing_intelligence_schema: marketing_optimization, campaign_analyzer, analytics

Example
-------
>>> from dataseed.normalization.schemas import make_default_schemas
>>> engine = NormalizationEngine(make_default_schemas())
"""

from __future__ import annotations

from dataseed.core.records import RecordShape
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


# -------------------------
# Content performance
# -------------------------

def make_content_performance_schema() -> NormalizationSchema:
    return NormalizationSchema(
        schema_id="content_performance_schema",
        name="Content Performance Engine Schema",
        target_engines=("content_performance", "self_learning_analytics"),
        shape=RecordShape.CONTENT,
        field_mappings=(
            FieldMapping("post_id", "content_id", required=True, priority=1, alternates=("content_id", "id")),
            FieldMapping("platform", "platform", default="unknown", required=True, priority=1),
            FieldMapping(
                "engagement_metrics",
                "normalized_engagement",
                kind=TransformKind.CALCULATED,
                function=TransformFunction.ENGAGEMENT_SCORE,
                required=True,
                priority=2,
            ),
            FieldMapping("engagement_rate", "engagement_rate", default=0.0, priority=2),
            FieldMapping("performance_score", "performance_score", priority=2),
            FieldMapping(
                "platform_specific_metrics",
                "platform_metrics",
                kind=TransformKind.AGGREGATED,
                function=TransformFunction.AGGREGATE_PLATFORM_METRICS,
                priority=3,
            ),
            FieldMapping("created_at", "created_at", priority=4),
            FieldMapping("source", "source", priority=4),
        ),
        type_mappings=(
            TypeMapping("content_id", "string"),
            TypeMapping("normalized_engagement", "number", number_precision=4),
            TypeMapping("engagement_rate", "number", number_precision=4),
            TypeMapping("performance_score", "number", number_precision=2),
            TypeMapping("created_at", "date"),
        ),
        validation_rules=(
            ValidationRule(
                "content_id_required",
                "content_id",
                "required",
                message="Content ID is required for content performance analysis",
                severity="critical",
            ),
            ValidationRule(
                "engagement_range",
                "normalized_engagement",
                "range",
                {"min": 0, "max": 100},
                message="Engagement score must be between 0 and 100",
                severity="error",
            ),
        ),
        transformation_rules=(
            TransformationRule(
                "derive_performance_score",
                "Derive performance score from engagement",
                source_fields=("performance_score", "normalized_engagement"),
                target_field="performance_score",
                function=TransformFunction.COALESCE,
                conditions=(Condition("normalized_engagement", "exists"),),
                priority=1,
            ),
        ),
        quality_thresholds=(
            QualityThreshold("completeness", 0.8, 0.95, 0.3),
            QualityThreshold("accuracy", 0.85, 0.98, 0.4),
            QualityThreshold("consistency", 0.9, 0.99, 0.3),
        ),
    )


# -------------------------
# Navigation
# -------------------------

def make_navigation_schema() -> NormalizationSchema:
    return NormalizationSchema(
        schema_id="navigation_ml_schema",
        name="Navigation ML Engine Schema",
        target_engines=("navigation", "ai_navigation_framework"),
        shape=RecordShape.NAVIGATION,
        field_mappings=(
            FieldMapping("user_id", "user_id", required=True, priority=0),
            FieldMapping(
                "page_path",
                "page_path",
                kind=TransformKind.CALCULATED,
                function=TransformFunction.NORMALIZE_PAGE_PATH,
                required=True,
                priority=1,
            ),
            FieldMapping(
                "user_interactions",
                "interaction_features",
                kind=TransformKind.DERIVED,
                function=TransformFunction.INTERACTION_FEATURES,
                default=[],
                priority=2,
            ),
            FieldMapping("timestamp", "timestamp", required=True, priority=2),
            FieldMapping("session_data", "session_data", default={}, priority=3),
        ),
        type_mappings=(
            TypeMapping("user_id", "string"),
            TypeMapping("interaction_features", "array"),
            TypeMapping("timestamp", "date"),
            TypeMapping("session_data", "object"),
        ),
        validation_rules=(
            ValidationRule(
                "path_format",
                "page_path",
                "pattern",
                {"pattern": r"^/[a-zA-Z0-9/_\-]*$"},
                message="Page path must follow standard URL format",
                severity="error",
            ),
            ValidationRule("user_required", "user_id", "required", message="User id is required", severity="error"),
        ),
        quality_thresholds=(
            QualityThreshold("completeness", 0.85, 0.95, 0.4),
            QualityThreshold("consistency", 0.9, 0.98, 0.6),
        ),
    )


# -------------------------
# Marketing intelligence
# -------------------------

def make_marketing_intelligence_schema() -> NormalizationSchema:
    return NormalizationSchema(
        schema_id="marketing_intelligence_schema",
        name="Marketing Intelligence Schema",
        target_engines=("marketing_optimization", "campaign_analyzer", "analytics"),
        shape=RecordShape.GENERIC,
        carry_unmapped=True,
        field_mappings=(
            FieldMapping(
                "campaign_metrics",
                "unified_campaign_performance",
                kind=TransformKind.AGGREGATED,
                function=TransformFunction.AGGREGATE_CAMPAIGN_METRICS,
                required=True,
                priority=1,
            ),
            FieldMapping(
                "audience_data",
                "segmented_audience",
                kind=TransformKind.CALCULATED,
                function=TransformFunction.SEGMENT_AUDIENCE,
                priority=2,
            ),
        ),
        type_mappings=(
            TypeMapping("unified_campaign_performance", "object"),
        ),
        validation_rules=(
            ValidationRule(
                "roi_realistic",
                "campaign_roi",
                "range",
                {"min": -100, "max": 1000},
                message="Campaign ROI seems unrealistic",
                severity="warning",
            ),
        ),
        transformation_rules=(
            TransformationRule(
                "campaign_roi",
                "Lift ROI out of unified campaign performance",
                source_fields=("unified_campaign_performance", "roi_percentage"),
                target_field="campaign_roi",
                function=TransformFunction.EXTRACT,
                conditions=(Condition("unified_campaign_performance", "exists"),),
            ),
        ),
        quality_thresholds=(
            QualityThreshold("completeness", 0.9, 0.98, 0.5),
            QualityThreshold("accuracy", 0.85, 0.95, 0.5),
        ),
    )


def make_default_schemas() -> list[NormalizationSchema]:
    return [
        make_content_performance_schema(),
        make_navigation_schema(),
        make_marketing_intelligence_schema(),
    ]
