# src/backup_keeper/backups/monitoring_backup.py

from __future__ import annotations

"""
Monitoring tools backup (grafana, prometheus).

For every tool: zip its data dir and its config dir, replace the previous
remote copy of the same archive, upload. Prometheus additionally gets a TSDB
snapshot taken through the admin API, and the snapshot dir is archived too.
"""

import asyncio
import logging
import zipfile
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import httpx

from ..core.outcome import Outcome
from ..core.ports import RemoteStore
from ..errors import TaskFailedError

logger = logging.getLogger(__name__)

ZIP_CONTENT_TYPE = "application/zip"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def zip_directory(source_dir: Path, destination: Path, *, log: logging.Logger | None = None) -> int:
    """
    Archive every file under source_dir (relative names), skipping "*lock" files.

    Files that cannot be read (rotated away mid-walk, permissions) are skipped
    with a warning. Returns the number of files added.
    """
    log = log or logger
    destination.parent.mkdir(parents=True, exist_ok=True)
    if destination.exists():
        log.info("Existing backup file %s found. Deleting...", destination)
        destination.unlink()

    count = 0
    with zipfile.ZipFile(destination, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(source_dir.rglob("*")):
            if not path.is_file():
                continue
            if path.name.endswith("lock"):
                log.debug("Skipping lock file: %s", path)
                continue
            try:
                archive.write(path, arcname=path.relative_to(source_dir).as_posix())
            except OSError as e:
                log.warning("Skipping file %s due to error: %s", path, e)
                continue
            count += 1

    log.info("ZIP file created: %s. Total files added: %d", destination, count)
    return count


def parse_snapshot_name(payload: Any) -> str | None:
    """{"status": "success", "data": {"name": "<snapshot id>"}} -> snapshot id."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if not isinstance(data, dict):
        return None
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    return name.strip()


async def trigger_snapshot(
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        log: logging.Logger | None = None,
) -> Outcome[str]:
    log = log or logger
    try:
        if client is not None:
            resp = await client.post(url, timeout=timeout)
        else:
            async with httpx.AsyncClient(timeout=timeout) as c:
                resp = await c.post(url)
        resp.raise_for_status()
        payload = resp.json()
    except httpx.HTTPError as e:
        log.error("Failed to create Prometheus snapshot: %s", e)
        return Outcome.failure(str(e))
    except ValueError as e:
        log.error("Snapshot response is not JSON: %s", e)
        return Outcome.failure(f"bad response: {e}")

    name = parse_snapshot_name(payload)
    if name is None:
        log.error("Snapshot response format unexpected: %r", payload)
        return Outcome.failure("unexpected snapshot response shape")

    log.debug("Parsed snapshot name: %s", name)
    return Outcome.success(name)


class MonitoringBackup:
    def __init__(
        self,
        *,
        tools: list[str],
        data_dirs: Mapping[str, Path],
        config_dirs: Mapping[str, Path],
        staging_dir: str | Path,
        remote: RemoteStore,
        scope: str,
        snapshot_url: str | None = None,
        snapshot_dir: str | Path | None = None,
        http_client: httpx.AsyncClient | None = None,
        http_timeout: float = 30.0,
        clock: Callable[[], datetime] = _utcnow,
        log: logging.Logger | None = None,
    ) -> None:
        self._tools = list(tools)
        self._data_dirs = dict(data_dirs)
        self._config_dirs = dict(config_dirs)
        self._staging_dir = Path(staging_dir)
        self._remote = remote
        self._scope = scope
        self._snapshot_url = (snapshot_url or "").strip()
        self._snapshot_dir = Path(snapshot_dir) if snapshot_dir else None
        self._http_client = http_client
        self._http_timeout = http_timeout
        self._clock = clock
        self._log = log or logger

    async def backup_directory(self, name: str, source_dir: Path, day: datetime) -> bool | None:
        """
        Zip + upload one directory as "<name>-<dd-MM-yyyy>.zip".

        Returns None when there was nothing to back up, else whether the upload succeeded.
        """
        if not source_dir.is_dir():
            self._log.warning("Directory %s does not exist. Skipping %s backup.", source_dir, name)
            return None

        zip_name = f"{name}-{day:%d-%m-%Y}.zip"
        zip_path = self._staging_dir / zip_name
        try:
            await asyncio.to_thread(zip_directory, source_dir, zip_path, log=self._log)
        except (OSError, zipfile.BadZipFile) as e:
            self._log.error("Failed to create ZIP file %s: %s", zip_path, e)
            return False

        existing = self._remote.find(zip_name, self._scope)
        if existing is not None:
            deleted = self._remote.delete(existing)
            if deleted.ok:
                self._log.info("Deleted previous %s backup (%s)", name, existing.id)

        res = self._remote.upload(zip_path, self._scope, ZIP_CONTENT_TYPE)
        if not res.ok:
            self._log.error("Upload of %s failed: %s", zip_name, res.error)
            return False

        self._log.info("%s backup successfully uploaded.", name)
        return True

    async def _snapshot(self, day: datetime) -> bool | None:
        if not self._snapshot_url or self._snapshot_dir is None:
            return None

        self._log.info("Creating Prometheus snapshot...")
        res = await trigger_snapshot(
            self._snapshot_url,
            client=self._http_client,
            timeout=self._http_timeout,
            log=self._log,
        )
        if not res.ok or not res.value:
            # Snapshot failures do not fail the task.
            return None

        return await self.backup_directory("prometheus-snapshot", self._snapshot_dir / res.value, day)

    async def run(self) -> None:
        day = self._clock()
        failed: list[str] = []

        for tool in self._tools:
            self._log.info("Processing tool: %s", tool)

            targets = [(tool, self._data_dirs.get(tool)), (f"{tool}-config", self._config_dirs.get(tool))]
            for name, source in targets:
                if source is None:
                    self._log.warning("No directory defined for %s. Skipping.", name)
                    continue
                if await self.backup_directory(name, Path(source), day) is False:
                    failed.append(name)

            if tool == "prometheus" and await self._snapshot(day) is False:
                failed.append("prometheus-snapshot")

        if failed:
            raise TaskFailedError(f"monitoring backup failed for: {', '.join(failed)}")
