# src/backup_keeper/backups/logs_backup.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from ..core.ports import RemoteStore
from ..errors import TaskFailedError
from ..logs.aggregator import LogAggregator

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LogsBackup:
    """Aggregate today's logs into the dated file, then upload that file."""

    def __init__(
        self,
        *,
        aggregator: LogAggregator,
        remote: RemoteStore,
        scope: str,
        cancel_event: asyncio.Event | None = None,
        clock: Callable[[], datetime] = _utcnow,
        log: logging.Logger | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._remote = remote
        self._scope = scope
        self._cancel_event = cancel_event
        self._clock = clock
        self._log = log or logger

    async def run(self) -> None:
        path, result = await self._aggregator.run(self._clock(), cancel_event=self._cancel_event)
        self._log.info(
            "Collected %d record(s) from %d entries over %d page(s), status=%s",
            len(result.records),
            result.entries,
            result.pages,
            result.status.value,
        )

        res = self._remote.upload(path, self._scope, "text/plain")
        if not res.ok:
            raise TaskFailedError(f"upload of {path.name} failed: {res.error}")
        self._log.info("Log file uploaded: %s", path.name)
