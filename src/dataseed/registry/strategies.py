"""Collection strategy registry.

Every source a strategy references (primary or fallback) must already be
registered in the source registry when the strategy is registered.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from types import MappingProxyType

from dataseed.core.errors import SourceNotFound, StrategyNotFound
from dataseed.core.models import CollectionStrategy
from dataseed.registry.sources import DataSourceRegistry

logger = logging.getLogger(__name__)


class StrategyRegistry:
    def __init__(self, sources: DataSourceRegistry, strategies: Iterable[CollectionStrategy] = ()) -> None:
        self._sources = sources
        self._strategies: dict[str, CollectionStrategy] = {}
        for s in strategies:
            self.register(s)

    def register(self, strategy: CollectionStrategy) -> CollectionStrategy | None:
        """Add or replace a strategy (last write wins)."""
        for source_id in strategy.referenced_sources():
            if source_id not in self._sources:
                raise SourceNotFound(source_id)
        previous = self._strategies.get(strategy.name)
        if previous is not None and previous != strategy:
            logger.info("Replacing registered strategy %s", strategy.name)
        self._strategies[strategy.name] = strategy
        return previous

    def get(self, name: str) -> CollectionStrategy:
        try:
            return self._strategies[name]
        except KeyError:
            raise StrategyNotFound(name) from None

    def names(self) -> list[str]:
        return list(self._strategies)

    def for_engine(self, engine: str) -> list[CollectionStrategy]:
        return [s for s in self._strategies.values() if engine in s.target_engines]

    def snapshot(self) -> MappingProxyType[str, CollectionStrategy]:
        return MappingProxyType(dict(self._strategies))

    def __contains__(self, name: object) -> bool:
        return name in self._strategies

    def __len__(self) -> int:
        return len(self._strategies)

    def __iter__(self) -> Iterator[CollectionStrategy]:
        return iter(list(self._strategies.values()))
