"""Data source registry keyed by source id."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from types import MappingProxyType

from dataseed.core.errors import DuplicateSource, SourceNotFound
from dataseed.core.models import Schedule, SourceConfig

logger = logging.getLogger(__name__)


class DataSourceRegistry:
    """Read-mostly mapping of `source_id -> SourceConfig`.

    Registration is idempotent by id: registering the same id again replaces
    the previous config (last write wins), unless `replace=False`.
    """

    def __init__(self, sources: Iterable[SourceConfig] = ()) -> None:
        self._sources: dict[str, SourceConfig] = {}
        for s in sources:
            self.register(s)

    def register(self, config: SourceConfig, *, replace: bool = True) -> SourceConfig | None:
        """Add or replace a source. Returns the config it replaced, if any."""
        previous = self._sources.get(config.source_id)
        if previous is not None:
            if not replace:
                raise DuplicateSource(config.source_id)
            if previous != config:
                logger.info("Replacing registered source %s", config.source_id)
        self._sources[config.source_id] = config
        return previous

    def get(self, source_id: str) -> SourceConfig:
        try:
            return self._sources[source_id]
        except KeyError:
            raise SourceNotFound(source_id) from None

    def list_by_schedule(self, schedule: Schedule) -> list[SourceConfig]:
        return [s for s in self._sources.values() if s.schedule == schedule]

    def enabled(self) -> list[SourceConfig]:
        return [s for s in self._sources.values() if s.enabled]

    def snapshot(self) -> MappingProxyType[str, SourceConfig]:
        """Immutable copy for readers."""
        return MappingProxyType(dict(self._sources))

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self) -> Iterator[SourceConfig]:
        return iter(list(self._sources.values()))
