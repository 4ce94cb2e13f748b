"""Lightweight async HTTP client for JSON record endpoints.

This module provides:
- `HttpClient`: an async client with sane timeouts/connection limits
- `extract_rows`: unwraps the common list / {"data": [...]} payload shapes

It is shared by the API source adapter and the API distribution transport.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

import httpx

_ENVELOPE_KEYS: tuple[str, ...] = ("data", "results", "records", "items")


def extract_rows(payload: Any) -> list[dict[str, Any]]:
    """Return the list of row objects carried by a JSON payload."""
    if isinstance(payload, list):
        rows = payload
    elif isinstance(payload, dict):
        rows = next((payload[k] for k in _ENVELOPE_KEYS if isinstance(payload.get(k), list)), None)
        if rows is None:
            raise ValueError(f"no record list in payload (keys: {sorted(payload)[:8]})")
    else:
        raise ValueError(f"unexpected payload type: {type(payload).__name__}")
    return [r for r in rows if isinstance(r, dict)]


class HttpClient:
    """Minimal async JSON client.

    Parameters
    ----------
    timeout_s : int
        Per-operation timeout in seconds (connect/read/write).
    max_connections : int
        Maximum concurrent connections to keep in the pool.
    headers : Mapping[str, str] | None
        Default headers sent with every request.
    """

    def __init__(
        self,
        *,
        timeout_s: int = 30,
        max_connections: int = 32,
        headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=timeout_s,
                read=timeout_s,
                write=timeout_s,
                pool=max(30, timeout_s * 3),
            ),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(1, max_connections // 2),
            ),
            headers=dict(headers or {}),
            http2=transport is None,
            transport=transport,
        )

    async def get_records(self, url: str, *, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """GET `url` and return the row objects in the response."""
        r = await self.client.get(url, params=dict(params) if params else None)
        r.raise_for_status()
        return extract_rows(r.json())

    async def post_records(self, url: str, records: Sequence[Mapping[str, Any]], **meta: Any) -> None:
        """POST `{"records": [...], **meta}` as JSON."""
        payload = {"records": [dict(r) for r in records], **meta}
        r = await self.client.post(
            url,
            content=json.dumps(payload, default=str),
            headers={"Content-Type": "application/json"},
        )
        r.raise_for_status()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
