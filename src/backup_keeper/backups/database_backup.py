# src/backup_keeper/backups/database_backup.py

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from ..core.ports import RemoteStore
from ..errors import TaskFailedError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DatabaseBackup:
    """Copy the application database file to the backup dir and upload it."""

    def __init__(
        self,
        *,
        db_path: str | Path,
        backup_dir: str | Path,
        remote: RemoteStore,
        scope: str,
        app_name: str = "webistecs",
        clock: Callable[[], datetime] = _utcnow,
        log: logging.Logger | None = None,
    ) -> None:
        self._db_path = Path(db_path)
        self._backup_dir = Path(backup_dir)
        self._remote = remote
        self._scope = scope
        self._app_name = app_name
        self._clock = clock
        self._log = log or logger

    def backup_file_path(self, now: datetime) -> Path:
        return self._backup_dir / f"{self._app_name}-db-{now:%Y-%m-%d}.db"

    def _copy(self, target: Path) -> None:
        self._backup_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(self._db_path, target)

    async def run(self) -> None:
        target = self.backup_file_path(self._clock())
        self._log.info("Creating database backup: %s", target)

        try:
            await asyncio.to_thread(self._copy, target)
        except OSError as e:
            raise TaskFailedError(f"database copy {self._db_path} -> {target} failed: {e}") from e

        res = self._remote.upload(target, self._scope, "application/octet-stream")
        if not res.ok:
            raise TaskFailedError(f"upload of {target.name} failed: {res.error}")

        self._log.info("Successfully uploaded database backup: %s", target.name)
