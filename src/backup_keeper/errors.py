# src/backup_keeper/errors.py

from __future__ import annotations


class BackupKeeperError(Exception):
    """Base class for errors raised by backup_keeper."""


class ConfigurationError(BackupKeeperError):
    """A setting or schedule entry is unusable. Fatal for the affected task only."""


class UnknownScheduleError(ConfigurationError):
    def __init__(self, schedule: str) -> None:
        super().__init__(f"Unsupported schedule: {schedule!r}")
        self.schedule = schedule


class TaskFailedError(BackupKeeperError):
    """A backup task could not complete a required step; its last run is not advanced."""
