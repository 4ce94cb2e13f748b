from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any

from dataseed.core.models import RunRecord


class RunJournal:
    """JSONL trail of orchestration runs, one `RunRecord` per phase transition.

    Each run writes `started`, one `done` line per completed phase, and a final
    `done` / `failed` / `stopped` line. Lines are durable once `append` returns,
    so a crashed process leaves a readable prefix of its last run.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(exist_ok=True)
        self._lock = asyncio.Lock()

    async def append(self, rec: RunRecord) -> None:
        """Record one phase transition of a run; concurrent runs never interleave lines."""
        line = rec.to_json_line()
        async with self._lock:
            await asyncio.to_thread(self._append_durably, line)

    def read(self) -> list[dict[str, Any]]:
        """Every run record written so far, oldest first.

        A line torn by a crash mid-write is skipped.
        """
        entries: list[dict[str, Any]] = []
        for line in self.path.read_text().splitlines():
            if not line.strip():
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return entries

    def _append_durably(self, line: str) -> None:
        with self.path.open("a", buffering=1) as f:
            f.write(line)
            f.flush()
            os.fsync(f.fileno())
