# src/backup_keeper/tasks/task_store.py

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from ..core.outcome import Outcome
from ..core.ports import RemoteHandle, RemoteStore
from .task_models import Schedule, schedule_from_json_obj, schedule_to_json_obj

logger = logging.getLogger(__name__)

SCHEDULE_FILE_NAME = "scheduled_tasks_status.json"
JSON_CONTENT_TYPE = "application/json"


class ScheduleStore:
    """
    Persisted task schedule, kept as a single JSON document in a RemoteStore.

    - load() never raises: a missing / unreadable / malformed document is an empty schedule
    - save() replaces the whole document with one upload call, so the previous
      version stays intact if the upload fails
    """

    def __init__(
        self,
        remote: RemoteStore,
        *,
        scope: str,
        file_name: str = SCHEDULE_FILE_NAME,
        log: logging.Logger | None = None,
    ) -> None:
        self._remote = remote
        self._scope = scope
        self._file_name = file_name
        self._log = log or logger

    def load(self) -> Schedule:
        try:
            handle = self._remote.find(self._file_name, self._scope)
            if handle is None:
                self._log.warning("%s not found in scope %s", self._file_name, self._scope)
                return {}
            res = self._remote.read_text(handle)
        except Exception:
            self._log.exception("Reading %s failed", self._file_name)
            return {}

        if not res.ok:
            self._log.error("Failed to read %s: %s", self._file_name, res.error)
            return {}

        try:
            obj = json.loads(res.value or "")
        except json.JSONDecodeError as e:
            self._log.error("Schedule document %s is not valid JSON: %s", self._file_name, e)
            return {}

        schedule = schedule_from_json_obj(obj)
        self._log.info("Loaded schedule with %d task(s) from %s", len(schedule), self._file_name)
        return schedule

    def save(self, schedule: Schedule) -> Outcome[RemoteHandle]:
        body = json.dumps(schedule_to_json_obj(schedule), ensure_ascii=False, indent=2)

        try:
            # The remote store uploads files by path; the upload name must match the document name.
            with tempfile.TemporaryDirectory(prefix="backup-keeper-") as tmp_dir:
                path = Path(tmp_dir) / self._file_name
                path.write_text(body, "utf-8")
                res = self._remote.upload(path, self._scope, JSON_CONTENT_TYPE)
        except Exception as e:
            self._log.exception("Saving %s failed", self._file_name)
            return Outcome.failure(str(e) or type(e).__name__)

        if res.ok:
            self._log.info("Saved schedule (%d task(s)) to %s", len(schedule), self._file_name)
        else:
            self._log.error("Failed to save %s: %s", self._file_name, res.error)
        return res
