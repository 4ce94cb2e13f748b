from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from collections.abc import Mapping, Sequence
from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq

from dataseed.clients.http import HttpClient
from dataseed.core.interfaces import IRecordStore
from dataseed.core.records import Record

logger = logging.getLogger(__name__)


class DatabaseTransport:
    """Inserts batches into `<engine><table_suffix>` through the record store."""

    def __init__(self, store: IRecordStore, *, table_suffix: str = "_seed_data") -> None:
        self._store = store
        self._suffix = table_suffix

    def table_for(self, engine: str) -> str:
        return f"{engine}{self._suffix}"

    async def send(self, engine: str, records: Sequence[Record]) -> None:
        await self._store.insert(self.table_for(engine), [r.to_dict() for r in records])


class ApiTransport:
    """POSTs batches as JSON to the endpoint registered for each engine."""

    def __init__(self, client: HttpClient, endpoints: Mapping[str, str]) -> None:
        self._client = client
        self._endpoints = dict(endpoints)

    async def send(self, engine: str, records: Sequence[Record]) -> None:
        url = self._endpoints.get(engine)
        if url is None:
            raise LookupError(f"no API endpoint configured for engine {engine!r}")
        await self._client.post_records(
            url,
            [r.to_dict() for r in records],
            engine=engine,
            sent_at=time.time(),
        )


class FileTransport:
    """Writes each batch as one Parquet file under `<root>/<engine>/`.

    Nested values are stored as JSON strings so that heterogeneous records
    produce a stable string column per field.
    """

    def __init__(self, root: Path, *, codec: str = "zstd") -> None:
        self.root = root
        self.codec = codec

    async def send(self, engine: str, records: Sequence[Record]) -> None:
        await asyncio.to_thread(self._write_batch, engine, [r.to_dict() for r in records])

    def _write_batch(self, engine: str, rows: list[dict]) -> Path | None:
        engine_dir = self.root / engine
        engine_dir.mkdir(parents=True, exist_ok=True)
        out_path = engine_dir / f"batch_{time.strftime('%Y%m%d_%H%M%S', time.gmtime())}_{time.time_ns() % 1_000_000:06d}.parquet"
        return self._atomic_write(out_path, self._to_table(rows))

    @staticmethod
    def _to_table(rows: list[dict]) -> pa.Table:
        columns: dict[str, list[str | None]] = {}
        for i, row in enumerate(rows):
            for k in row:
                if k not in columns:
                    columns[k] = [None] * i
            for k, col in columns.items():
                v = row.get(k)
                if v is None:
                    col.append(None)
                elif isinstance(v, str):
                    col.append(v)
                else:
                    col.append(json.dumps(v, default=str))
        names = sorted(columns)
        return pa.Table.from_pydict(
            {n: pa.array(columns[n], type=pa.string()) for n in names},
            schema=pa.schema([pa.field(n, pa.string()) for n in names]),
        )

    def _atomic_write(self, out_path: Path, table: pa.Table) -> Path | None:
        """Write Parquet atomically (tmp + replace)."""
        if len(table) == 0:
            return None
        tmp = out_path.with_suffix(".tmp")
        pq.write_table(table, tmp, compression=self.codec)
        os.replace(tmp, out_path)
        logger.info("wrote %s (rows=%d, cols=%d)", out_path, len(table), len(table.schema))
        return out_path
