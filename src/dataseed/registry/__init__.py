"""Source and strategy catalogs.

This package provides:
- DataSourceRegistry: configured sources keyed by id
- StrategyRegistry: collection strategies validated against the source registry
- Built-in catalog (make_default_sources, make_default_strategies, make_default_engine_requirements)
"""

from dataseed.registry.defaults import (
    make_default_engine_requirements,
    make_default_sources,
    make_default_strategies,
)
from dataseed.registry.sources import DataSourceRegistry
from dataseed.registry.strategies import StrategyRegistry

__all__ = [
    "DataSourceRegistry",
    "StrategyRegistry",
    "make_default_sources",
    "make_default_strategies",
    "make_default_engine_requirements",
]
