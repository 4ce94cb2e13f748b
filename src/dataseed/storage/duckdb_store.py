"""DuckDB-backed record store.

Each table holds one JSON document (as text) per row plus the insertion timestamp:

    CREATE TABLE <name> (inserted_at TIMESTAMP, payload VARCHAR)

Batches are inserted through a registered pandas DataFrame. DuckDB calls are
blocking, so they run in a worker thread; an asyncio.Lock serializes access to
the single connection.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import duckdb
import pandas as pd

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _check_table(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"invalid table name: {name!r}")
    return name


class DuckDBRecordStore:
    def __init__(self, path: str | Path = ":memory:") -> None:
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._con = duckdb.connect(self.path)
        self._lock = asyncio.Lock()
        self._tables: set[str] = set()

    # ---------- sync helpers (worker thread) ----------

    def _ensure_table(self, table: str) -> None:
        if table in self._tables:
            return
        self._con.execute(f'CREATE TABLE IF NOT EXISTS "{table}" (inserted_at TIMESTAMP, payload VARCHAR)')
        self._tables.add(table)

    def _insert_sync(self, table: str, rows: Sequence[Mapping[str, Any]]) -> int:
        self._ensure_table(table)
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        df = pd.DataFrame(
            {
                "inserted_at": [now] * len(rows),
                "payload": [json.dumps(dict(r), default=str) for r in rows],
            }
        )
        self._con.register("_batch_df", df)
        try:
            self._con.execute(f'INSERT INTO "{table}" SELECT inserted_at, payload FROM _batch_df')
        finally:
            self._con.unregister("_batch_df")
        return len(rows)

    def _fetch_sync(self, table: str, since: datetime | None, limit: int | None) -> list[dict[str, Any]]:
        exists = self._con.execute(
            "SELECT count(*) FROM information_schema.tables WHERE table_name = ?", [table]
        ).fetchone()
        if not exists or exists[0] == 0:
            return []
        sql = f'SELECT payload FROM "{table}"'
        params: list[Any] = []
        if since is not None:
            if since.tzinfo is not None:
                since = since.astimezone(timezone.utc).replace(tzinfo=None)
            sql += " WHERE inserted_at >= ?"
            params.append(since)
        sql += " ORDER BY inserted_at DESC"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        return [json.loads(row[0]) for row in self._con.execute(sql, params).fetchall()]

    # ---------- async API ----------

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> int:
        """Insert rows into `table` (created on first use)."""
        _check_table(table)
        if not rows:
            return 0
        async with self._lock:
            return await asyncio.to_thread(self._insert_sync, table, rows)

    async def fetch(
        self,
        table: str,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return row payloads from `table`, newest first."""
        _check_table(table)
        async with self._lock:
            return await asyncio.to_thread(self._fetch_sync, table, since, limit)

    async def count(self, table: str) -> int:
        _check_table(table)
        async with self._lock:
            return await asyncio.to_thread(self._count_sync, table)

    def _count_sync(self, table: str) -> int:
        if table not in self._tables:
            self._ensure_table(table)
        row = self._con.execute(f'SELECT count(*) FROM "{table}"').fetchone()
        return int(row[0]) if row else 0

    def close(self) -> None:
        self._con.close()
