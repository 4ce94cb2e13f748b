import pytest

from dataseed.core.errors import DuplicateSource, SourceNotFound, StrategyNotFound
from dataseed.core.models import CollectionStrategy, EngineRequirement, SourceConfig
from dataseed.core.records import RecordShape
from dataseed.registry.defaults import (
    make_default_engine_requirements,
    make_default_sources,
    make_default_strategies,
)
from dataseed.registry.sources import DataSourceRegistry
from dataseed.registry.strategies import StrategyRegistry


def test_register_and_get_source() -> None:
    registry = DataSourceRegistry()
    cfg = SourceConfig("posts", "database", target="content_posts")

    assert registry.register(cfg) is None
    assert registry.get("posts") == cfg
    assert "posts" in registry
    assert len(registry) == 1


def test_register_same_id_replaces() -> None:
    registry = DataSourceRegistry([SourceConfig("posts", "database", schedule="daily")])
    updated = SourceConfig("posts", "database", schedule="hourly")

    previous = registry.register(updated)

    assert previous is not None and previous.schedule == "daily"
    assert registry.get("posts").schedule == "hourly"
    assert len(registry) == 1


def test_register_without_replace_rejects_duplicates() -> None:
    registry = DataSourceRegistry([SourceConfig("posts", "database")])
    with pytest.raises(DuplicateSource):
        registry.register(SourceConfig("posts", "api"), replace=False)


def test_get_unknown_source_raises() -> None:
    with pytest.raises(SourceNotFound):
        DataSourceRegistry().get("nope")


def test_list_by_schedule_and_enabled() -> None:
    registry = DataSourceRegistry(
        [
            SourceConfig("a", "database", schedule="hourly"),
            SourceConfig("b", "api", schedule="daily", enabled=False),
            SourceConfig("c", "synthetic", schedule="hourly"),
        ]
    )
    assert [s.source_id for s in registry.list_by_schedule("hourly")] == ["a", "c"]
    assert [s.source_id for s in registry.enabled()] == ["a", "c"]


def test_source_config_validation() -> None:
    with pytest.raises(ValueError):
        SourceConfig("", "database")
    with pytest.raises(ValueError):
        SourceConfig("x", "ftp")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        SourceConfig("x", "database", retry_attempts=-1)


def test_strategy_with_unknown_source_is_rejected() -> None:
    sources = DataSourceRegistry([SourceConfig("a", "database")])
    strategies = StrategyRegistry(sources)
    with pytest.raises(SourceNotFound):
        strategies.register(CollectionStrategy("s", ("engine",), ("a",), fallback_sources=("missing",)))
    assert "s" not in strategies


def test_strategy_lookup() -> None:
    sources = DataSourceRegistry([SourceConfig("a", "database")])
    strategies = StrategyRegistry(sources, [CollectionStrategy("s", ("e1", "e2"), ["a"])])

    assert strategies.get("s").sources == ("a",)
    assert [s.name for s in strategies.for_engine("e2")] == ["s"]
    with pytest.raises(StrategyNotFound):
        strategies.get("other")


def test_strategy_needs_target_engine() -> None:
    with pytest.raises(ValueError):
        CollectionStrategy("s", (), ("a",))


def test_default_catalog_is_consistent() -> None:
    sources = DataSourceRegistry(make_default_sources())
    strategies = StrategyRegistry(sources, make_default_strategies())
    engines = make_default_engine_requirements()

    assert len(sources) == 13
    assert strategies.names() == [
        "content_performance_strategy",
        "navigation_ml_strategy",
        "research_intelligence_strategy",
        "analytics_intelligence_strategy",
    ]
    for strategy in strategies:
        for engine in strategy.target_engines:
            assert engine in engines


def test_engine_requirement_fields_checked_against_shape() -> None:
    with pytest.raises(ValueError):
        EngineRequirement(10, ("content_id", "not_a_content_field"), shape=RecordShape.CONTENT)
    req = EngineRequirement(10, ("anything",))
    assert req.shape is RecordShape.GENERIC
