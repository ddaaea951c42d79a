# src/backup_keeper/tasks/task_models.py

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

from ..errors import UnknownScheduleError

logger = logging.getLogger(__name__)

# Sentinel for "never ran": any real interval added to it is already in the past.
NEVER = datetime.min.replace(tzinfo=UTC)

# .NET round-trip timestamps carry 7 fractional digits; datetime keeps 6.
_EXTRA_FRACTION = re.compile(r"(\.\d{6})\d+")


class SchedulePeriod(StrEnum):
    DAILY = "DAILY"
    HOURLY = "HOURLY"
    WEEKLY = "WEEKLY"

    @classmethod
    def parse(cls, raw: Any) -> SchedulePeriod | str:
        """
        Case-insensitive parse.

        Unknown values are returned as the raw string so they survive a save
        and are reported only when the scheduler evaluates that task.
        """
        text = str(raw or "").strip()
        try:
            return cls(text.upper())
        except ValueError:
            return text


_INTERVALS: dict[SchedulePeriod, timedelta] = {
    SchedulePeriod.DAILY: timedelta(days=1),
    SchedulePeriod.HOURLY: timedelta(hours=1),
    SchedulePeriod.WEEKLY: timedelta(days=7),
}


def interval_for(schedule: SchedulePeriod | str) -> timedelta:
    try:
        return _INTERVALS[SchedulePeriod(str(schedule).upper())]
    except (ValueError, KeyError):
        raise UnknownScheduleError(str(schedule)) from None


def parse_timestamp(raw: Any) -> datetime:
    """ISO-8601 -> aware UTC datetime. Missing/garbage -> NEVER."""
    if isinstance(raw, datetime):
        dt = raw
    else:
        s = str(raw or "").strip()
        if not s:
            return NEVER
        try:
            dt = datetime.fromisoformat(_EXTRA_FRACTION.sub(r"\1", s.replace("Z", "+00:00")))
        except ValueError:
            logger.warning("Unparseable lastUpdate %r; treating task as never run", s)
            return NEVER
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    try:
        return dt.astimezone(UTC)
    except OverflowError:
        # e.g. DateTime.MinValue written with a positive local offset
        logger.warning("lastUpdate %s is out of range in UTC; treating task as never run", dt.isoformat())
        return NEVER


_TRUTHY = {"1", "true", "yes", "y", "on"}


def parse_flag(raw: Any, default: bool = False) -> bool:
    """JSON bool, or a hand-edited string/number ("false", "0", "true")."""
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw != 0
    if isinstance(raw, str):
        return raw.strip().lower() in _TRUTHY
    logger.warning("Ignoring non-boolean flag value %r", raw)
    return default


@dataclass(slots=True)
class TaskMetadata:
    last_run_at: datetime
    schedule: SchedulePeriod | str
    skip_health_gate: bool = False
    disabled: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskMetadata:
        raw_schedule = data.get("Schedule", data.get("schedule"))
        return cls(
            last_run_at=parse_timestamp(data.get("lastUpdate")),
            schedule=SchedulePeriod.parse(raw_schedule),
            skip_health_gate=parse_flag(data.get("OverrideAppHealthStatus")),
            disabled=parse_flag(data.get("disableUpdates")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastUpdate": self.last_run_at.isoformat(),
            "Schedule": str(self.schedule),
            "OverrideAppHealthStatus": self.skip_health_gate,
            "disableUpdates": self.disabled,
        }


Schedule = dict[str, TaskMetadata]


def schedule_from_json_obj(obj: Any) -> Schedule:
    if not isinstance(obj, dict):
        logger.warning("Schedule document is not a JSON object (%s); ignoring it", type(obj).__name__)
        return {}

    out: Schedule = {}
    for name, entry in obj.items():
        if not isinstance(name, str) or not isinstance(entry, dict):
            logger.warning("Dropping malformed schedule entry %r", name)
            continue
        out[name] = TaskMetadata.from_dict(entry)
    return out


def schedule_to_json_obj(schedule: Schedule) -> dict[str, dict[str, Any]]:
    return {name: meta.to_dict() for name, meta in schedule.items()}
