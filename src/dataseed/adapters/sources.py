"""Source adapters: one per source kind.

This module provides:
- `DatabaseSourceAdapter`: reads a table from the record store
- `ApiSourceAdapter`: GETs rows from an HTTP endpoint
- `SyntheticSourceAdapter`: deterministic generated rows (seeded per source)
- `BenchmarkSourceAdapter`: static industry benchmark table
- `ScrapingSourceAdapter`: wraps an external scraping job callable

Adapters only fetch. Retries, deadlines, scoring and wrapping into records
are done by the collector.
"""

from __future__ import annotations

import random
import zlib
from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

from dataseed.clients.http import HttpClient
from dataseed.core.interfaces import IRecordStore
from dataseed.core.models import SourceConfig

Rows = Sequence[Mapping[str, Any]]

PLATFORMS: tuple[str, ...] = ("instagram", "linkedin", "facebook", "twitter")

# Median engagement rate per platform (fraction of reach), used by the
# benchmark source and the benchmark comparison enrichment.
PLATFORM_ENGAGEMENT_BENCHMARKS: dict[str, float] = {
    "instagram": 0.06,
    "linkedin": 0.045,
    "facebook": 0.03,
    "twitter": 0.025,
    "tiktok": 0.08,
}


class DatabaseSourceAdapter:
    """Reads `source.target` (table name) from the record store."""

    def __init__(self, store: IRecordStore, *, limit: int | None = 10_000) -> None:
        self._store = store
        self._limit = limit

    async def fetch(self, source: SourceConfig, since: datetime | None = None) -> Rows:
        if not source.target:
            raise ValueError(f"{source.source_id}: database source needs a target table")
        return await self._store.fetch(source.target, since=since, limit=self._limit)


class ApiSourceAdapter:
    """GETs `source.target`; `since` is passed as an ISO `since` query parameter."""

    def __init__(self, client: HttpClient) -> None:
        self._client = client

    async def fetch(self, source: SourceConfig, since: datetime | None = None) -> Rows:
        if not source.target:
            raise ValueError(f"{source.source_id}: api source needs a target URL")
        params = {"since": since.isoformat()} if since else None
        return await self._client.get_records(source.target, params=params)


class ScrapingSourceAdapter:
    """Delegates to an external scraping job: ``await job(target, since)``."""

    def __init__(self, job: Callable[[str, datetime | None], Awaitable[Rows]]) -> None:
        self._job = job

    async def fetch(self, source: SourceConfig, since: datetime | None = None) -> Rows:
        return await self._job(source.target or source.source_id, since)


class SyntheticSourceAdapter:
    """Generates `count` rows shaped after `source.data_format`.

    The generator is seeded from the source id, so repeated runs produce the
    same rows.
    """

    def __init__(self, *, count: int = 100, seed: int = 0, now: datetime | None = None) -> None:
        self.count = count
        self.seed = seed
        self._now = now

    async def fetch(self, source: SourceConfig, since: datetime | None = None) -> Rows:
        rng = random.Random(self.seed ^ zlib.crc32(source.source_id.encode()))
        now = self._now or datetime.now(timezone.utc)
        rows: list[dict[str, Any]] = []
        for i in range(self.count):
            created = now - timedelta(hours=rng.randint(1, 24 * 29))
            if since is not None and created < since:
                continue
            row: dict[str, Any] = {
                "id": f"{source.source_id}_{i}",
                "created_at": created.isoformat(),
                "source": source.source_id,
            }
            row.update(self._format_fields(source.data_format, rng, i, created))
            rows.append(row)
        return rows

    @staticmethod
    def _format_fields(data_format: str, rng: random.Random, i: int, created: datetime) -> dict[str, Any]:
        match data_format:
            case "navigation_events":
                return {
                    "user_id": f"user_{rng.randint(1, 50)}",
                    "page_path": f"/page-{rng.randint(0, 9)}",
                    "timestamp": created.isoformat(),
                    "session_data": {"duration_s": rng.randint(5, 300), "bounce": rng.random() < 0.3},
                    "user_interactions": [{"type": "click", "clicks": rng.randint(0, 10)}],
                }
            case "campaign_performance":
                spend = round(rng.uniform(100, 5_000), 2)
                return {
                    "campaign_id": f"campaign_{i}",
                    "platform": rng.choice(PLATFORMS),
                    "campaign_metrics": {
                        "total_spend": spend,
                        "total_conversions": rng.randint(0, 200),
                        "revenue": round(spend * rng.uniform(0.5, 3.0), 2),
                    },
                }
            case _:
                likes = rng.randint(0, 500)
                comments = rng.randint(0, 80)
                shares = rng.randint(0, 40)
                impressions = rng.randint(1_000, 20_000)
                return {
                    "post_id": f"post_{i}",
                    "platform": rng.choice(PLATFORMS),
                    "content_type": "post",
                    "likes": likes,
                    "comments": comments,
                    "shares": shares,
                    "impressions": impressions,
                    "reach": rng.randint(500, impressions),
                    "engagement_rate": round((likes + comments + shares) / impressions, 4),
                }


class BenchmarkSourceAdapter:
    """Serves the industry benchmark table as rows."""

    def __init__(
        self,
        benchmarks: Mapping[str, float] | None = None,
        *,
        industry: str = "digital_marketing",
        period: str | None = None,
    ) -> None:
        self._benchmarks = dict(benchmarks or PLATFORM_ENGAGEMENT_BENCHMARKS)
        self._industry = industry
        self._period = period

    async def fetch(self, source: SourceConfig, since: datetime | None = None) -> Rows:
        today = datetime.now(timezone.utc).date().isoformat()
        return [
            {
                "id": f"benchmark_{platform}",
                "industry": self._industry,
                "platform": platform,
                "metric": "engagement_rate",
                "value": value,
                "percentile": 50,
                "period": self._period or today[:7],
                "date": today,
                "source": source.source_id,
            }
            for platform, value in sorted(self._benchmarks.items())
        ]
