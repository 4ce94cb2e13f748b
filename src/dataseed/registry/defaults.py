"""Built-in sources, collection strategies and engine requirements.

These mirror the dashboard's production catalog. Pipeline definitions loaded
from JSON replace or extend them.
"""

from __future__ import annotations

from dataseed.core.models import CollectionStrategy, DataRequirements, EngineRequirement, SourceConfig
from dataseed.core.records import RecordShape


# -------------------------
# Sources
# -------------------------

def make_default_sources() -> list[SourceConfig]:
    return [
        # internal database tables
        SourceConfig("supabase_content_posts", "database", "daily", "high", target="content_posts",
                     data_format="content_analytics", retry_attempts=3, timeout_ms=30_000),
        SourceConfig("supabase_content_analytics", "database", "hourly", "high", target="content_analytics",
                     data_format="performance_metrics", retry_attempts=3, timeout_ms=30_000),
        SourceConfig("supabase_social_accounts", "database", "daily", "medium", target="social_accounts",
                     data_format="account_metadata", retry_attempts=2, timeout_ms=20_000),
        SourceConfig("supabase_campaigns", "database", "daily", "high", target="campaigns",
                     data_format="campaign_performance", retry_attempts=3, timeout_ms=30_000),
        SourceConfig("supabase_learning_patterns", "database", "daily", "high", target="learning_patterns",
                     data_format="ml_training_data", retry_attempts=3, timeout_ms=30_000),
        # social platform APIs
        SourceConfig("instagram_business_api", "api", "daily", "high", target="https://graph.facebook.com/v18.0",
                     data_format="instagram_insights", retry_attempts=3, timeout_ms=45_000),
        SourceConfig("linkedin_api", "api", "daily", "medium", target="https://api.linkedin.com/v2",
                     data_format="linkedin_analytics", retry_attempts=3, timeout_ms=30_000),
        SourceConfig("facebook_graph_api", "api", "daily", "medium", target="https://graph.facebook.com/v18.0",
                     data_format="facebook_insights", retry_attempts=3, timeout_ms=30_000),
        SourceConfig("twitter_api_v2", "api", "daily", "medium", target="https://api.twitter.com/2",
                     data_format="twitter_analytics", retry_attempts=3, timeout_ms=30_000),
        # scraping jobs
        SourceConfig("competitor_content_scraping", "scraping", "daily", "medium", target="competitor_social_media",
                     data_format="competitor_content", retry_attempts=2, timeout_ms=60_000),
        SourceConfig("trending_hashtags_scraping", "scraping", "hourly", "high", target="trending_platforms",
                     data_format="hashtag_trends", retry_attempts=3, timeout_ms=45_000),
        # benchmarks and synthetic data
        SourceConfig("industry_benchmarks", "benchmark", "weekly", "low",
                     data_format="benchmark_metrics", retry_attempts=2, timeout_ms=60_000),
        SourceConfig("synthetic_content_generator", "synthetic", "manual", "low",
                     data_format="synthetic_content", retry_attempts=1, timeout_ms=30_000),
    ]


# -------------------------
# Strategies
# -------------------------

def make_default_strategies() -> list[CollectionStrategy]:
    return [
        CollectionStrategy(
            name="content_performance_strategy",
            target_engines=("content_performance", "self_learning_analytics"),
            sources=(
                "supabase_content_posts",
                "supabase_content_analytics",
                "instagram_business_api",
                "linkedin_api",
                "facebook_graph_api",
                "trending_hashtags_scraping",
            ),
            requirements=DataRequirements(
                min_records_per_source=100,
                required_date_range_days=30,
                quality_threshold=0.85,
                completeness_threshold=0.9,
            ),
            fallback_sources=("synthetic_content_generator",),
            validation_rules=("min_engagement_rate_present", "platform_metadata_complete", "timestamp_within_range"),
            schema_id="content_performance_schema",
        ),
        CollectionStrategy(
            name="navigation_ml_strategy",
            target_engines=("navigation", "ai_navigation_framework"),
            sources=("supabase_content_analytics",),
            requirements=DataRequirements(
                min_records_per_source=200,
                required_date_range_days=14,
                quality_threshold=0.8,
                completeness_threshold=0.85,
            ),
            fallback_sources=("synthetic_content_generator",),
            validation_rules=("user_session_data_present", "page_navigation_events_complete", "timestamp_sequential"),
            schema_id="navigation_ml_schema",
        ),
        CollectionStrategy(
            name="research_intelligence_strategy",
            target_engines=("research", "competitor_analyzer", "content_ideation"),
            sources=("competitor_content_scraping", "trending_hashtags_scraping", "industry_benchmarks"),
            requirements=DataRequirements(
                min_records_per_source=50,
                required_date_range_days=7,
                quality_threshold=0.75,
                completeness_threshold=0.8,
            ),
            validation_rules=("competitor_data_recent", "trend_data_validated", "source_attribution_present"),
        ),
        CollectionStrategy(
            name="analytics_intelligence_strategy",
            target_engines=("analytics", "roi_algorithm", "optimization_engine"),
            sources=(
                "supabase_campaigns",
                "supabase_content_analytics",
                "instagram_business_api",
                "linkedin_api",
                "facebook_graph_api",
            ),
            requirements=DataRequirements(
                min_records_per_source=150,
                required_date_range_days=60,
                quality_threshold=0.9,
                completeness_threshold=0.95,
            ),
            fallback_sources=("industry_benchmarks",),
            validation_rules=("financial_metrics_present", "conversion_data_complete", "roi_calculable"),
            schema_id="marketing_intelligence_schema",
        ),
    ]


# -------------------------
# Engines
# -------------------------

def make_default_engine_requirements() -> dict[str, EngineRequirement]:
    content = RecordShape.CONTENT
    navigation = RecordShape.NAVIGATION
    return {
        "content_performance": EngineRequirement(
            50, ("content_id", "platform", "engagement_rate", "performance_score"), 0.8,
            transport="database", data_format="content_performance", shape=content,
            optional_fields=("hashtags", "posting_time", "content_type"),
        ),
        "self_learning_analytics": EngineRequirement(
            50, ("content_id", "platform", "engagement_rate"), 0.75,
            transport="file", data_format="content_performance", shape=content,
        ),
        "navigation": EngineRequirement(
            100, ("user_id", "page_path", "timestamp", "session_data"), 0.75,
            transport="api", data_format="navigation_events", shape=navigation,
            optional_fields=("referrer", "user_agent", "device_type"),
        ),
        "ai_navigation_framework": EngineRequirement(
            100, ("user_id", "page_path", "timestamp"), 0.75,
            transport="file", data_format="navigation_events", shape=navigation,
            optional_fields=("session_id", "page_url", "referrer"),
        ),
        "analytics": EngineRequirement(200, ("event_type", "user_id", "timestamp", "properties"), 0.85),
        "roi_algorithm": EngineRequirement(100, ("campaign_id", "campaign_roi"), 0.8),
        "optimization_engine": EngineRequirement(100, ("campaign_id",), 0.8, transport="file"),
        "marketing_optimization": EngineRequirement(100, ("campaign_id",), 0.8),
        "campaign_analyzer": EngineRequirement(50, ("campaign_id", "platform"), 0.75, transport="file"),
        "research": EngineRequirement(30, ("topic", "content", "source", "confidence"), 0.7, transport="api"),
        "competitor_analyzer": EngineRequirement(30, ("platform", "source"), 0.7, transport="file"),
        "content_ideation": EngineRequirement(30, ("content",), 0.7, transport="file"),
    }
