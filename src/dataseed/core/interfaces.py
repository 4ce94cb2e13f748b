from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from dataseed.core.models import RunRecord, SourceConfig
from dataseed.core.records import Record


# ---------------------------------------------------------------------------
# ISourceAdapter
# ---------------------------------------------------------------------------

@runtime_checkable
class ISourceAdapter(Protocol):
    """
    Leaf collaborator that pulls raw rows for one kind of source.

    Domain expectations:
    - It returns plain mappings; wrapping into `Record`s, scoring and sizing
      are done by the collector.
    - It may raise on any failure. Retries and deadlines are the collector's job.
    """

    async def fetch(
        self,
        source: SourceConfig,
        since: datetime | None = None,
    ) -> Sequence[Mapping[str, Any]]:
        """
        Return raw rows for `source`, optionally only those newer than `since`.

        Implementations:
        - Database reader over the record store
        - HTTP API client
        - Synthetic / benchmark generators
        - External scraping job wrapper
        """
        ...


# ---------------------------------------------------------------------------
# IRecordStore
# ---------------------------------------------------------------------------

@runtime_checkable
class IRecordStore(Protocol):
    """
    Storage collaborator for collected, normalized and enriched rows.

    Domain expectations:
    - Tables are created on first insert.
    - Rows are arbitrary JSON-serializable mappings.
    """

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> int:
        """Insert rows into `table`; return the number of rows written."""
        ...

    async def fetch(
        self,
        table: str,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return rows from `table`, newest first."""
        ...


# ---------------------------------------------------------------------------
# IRecordTransport
# ---------------------------------------------------------------------------

@runtime_checkable
class IRecordTransport(Protocol):
    """
    Delivery channel to an engine (database table, HTTP endpoint, file drop).

    Domain expectations:
    - `send` raises on failure; the distribution engine turns that into a
      refused delivery.
    """

    async def send(self, engine: str, records: Sequence[Record]) -> None:
        ...


# ---------------------------------------------------------------------------
# IEnrichmentSource
# ---------------------------------------------------------------------------

@runtime_checkable
class IEnrichmentSource(Protocol):
    """
    One enrichment provider. Returns the fields to add and a quality estimate
    for what it produced.
    """

    name: str

    async def enrich(self, record: Record) -> tuple[dict[str, Any], float]:
        ...


# ---------------------------------------------------------------------------
# IBatchScorer
# ---------------------------------------------------------------------------

@runtime_checkable
class IBatchScorer(Protocol):
    """Deterministic batch-level score in [0, 1] (bias, governance, ...)."""

    name: str

    def score(self, records: Sequence[Mapping[str, Any]]) -> float:
        ...


# ---------------------------------------------------------------------------
# IRunJournal
# ---------------------------------------------------------------------------

@runtime_checkable
class IRunJournal(Protocol):
    """Append-only journal of run phases."""

    async def append(self, record: RunRecord) -> None:
        ...
