# src/backup_keeper/logs/loki.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.outcome import Outcome
from ..core.ports import LogEntry

logger = logging.getLogger(__name__)

QUERY_RANGE_PATH = "/loki/api/v1/query_range"


def parse_query_range(payload: Any) -> list[LogEntry]:
    """
    Flatten a Loki query_range response into entries, in response order.

    Raises ValueError on an unexpected shape. Values whose timestamp is not an
    integer are skipped.
    """
    if not isinstance(payload, dict):
        raise ValueError("response is not a JSON object")
    if payload.get("status") != "success":
        raise ValueError(f"query status is {payload.get('status')!r}")

    data = payload.get("data")
    result = data.get("result") if isinstance(data, dict) else None
    if not isinstance(result, list):
        raise ValueError("missing data.result")

    entries: list[LogEntry] = []
    for stream in result:
        values = stream.get("values") if isinstance(stream, dict) else None
        if not isinstance(values, list):
            continue
        for value in values:
            if not isinstance(value, (list, tuple)) or len(value) < 2:
                continue
            try:
                ts = int(str(value[0]))
            except ValueError:
                continue
            entries.append(LogEntry(timestamp_ns=ts, line=str(value[1] if value[1] is not None else "")))
    return entries


class LokiLogSource:
    """LogSource backed by Loki's HTTP query_range API (backward direction)."""

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        log: logging.Logger | None = None,
    ) -> None:
        base = base_url.rstrip("/")
        self._url = base if base.endswith(QUERY_RANGE_PATH) else base + QUERY_RANGE_PATH
        self._client = client
        self._timeout = timeout
        self._log = log or logger

    async def _get(self, params: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(self._url, params=params, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(self._url, params=params)

    async def query(
            self,
            filter_expr: str,
            *,
            start_ns: int,
            end_ns: int,
            limit: int,
    ) -> Outcome[list[LogEntry]]:
        params = {
            "query": filter_expr,
            "limit": int(limit),
            "start": int(start_ns),
            "end": int(end_ns),
            "direction": "backward",
        }
        self._log.info("Querying Loki: start=%s end=%s limit=%s", start_ns, end_ns, limit)

        try:
            resp = await self._get(params)
        except httpx.HTTPError as e:
            self._log.error("Error querying Loki: %s", e)
            return Outcome.failure(f"transport error: {e}")

        if not resp.is_success:
            self._log.error("Error querying Loki: HTTP %s", resp.status_code)
            return Outcome.failure(f"HTTP {resp.status_code}")

        try:
            entries = parse_query_range(resp.json())
        except ValueError as e:
            # json.JSONDecodeError is a ValueError as well.
            self._log.error("Loki query failed: %s", e)
            return Outcome.failure(f"bad response: {e}")

        return Outcome.success(entries)
