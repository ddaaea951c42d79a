# src/backup_keeper/tasks/health.py

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


class HttpHealthProbe:
    """
    Application health gate.

    - empty URL -> always healthy
    - GET url: 2xx -> healthy
    - any other status, timeout or transport error -> unhealthy (fail-closed)
    """

    def __init__(
        self,
        url: str | None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        log: logging.Logger | None = None,
    ) -> None:
        self._url = (url or "").strip()
        self._client = client
        self._timeout = timeout
        self._log = log or logger

    async def check(self) -> bool:
        if not self._url:
            self._log.debug("No health check URL configured, assuming healthy.")
            return True

        try:
            if self._client is not None:
                resp = await self._client.get(self._url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.get(self._url)
        except httpx.HTTPError as e:
            self._log.error("Health check failed: %s", e)
            return False

        if resp.is_success:
            self._log.debug("Health check succeeded (%s).", resp.status_code)
            return True

        self._log.warning("Health check returned status %s.", resp.status_code)
        return False
