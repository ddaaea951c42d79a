# src/backup_keeper/tasks/task_scheduler.py

from __future__ import annotations

"""
Task scheduler.

One pass over the persisted schedule:
- skips disabled tasks,
- gates each task on the health probe unless the entry opts out,
- dispatches due tasks through the registry,
- advances last_run_at only for tasks that completed.

A pass is best effort: one task failing never stops its siblings, and the
(partially) updated schedule is always returned for persisting.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ..core.ports import HealthProbe
from ..errors import ConfigurationError
from .task_models import Schedule, TaskMetadata, interval_for
from .task_registry import TaskRegistry
from .task_store import ScheduleStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PassReport:
    ran: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    not_due: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)  # disabled / unhealthy / misconfigured / unknown
    bootstrapped: bool = False
    saved: bool = False


def bootstrap_schedule(now: datetime, registry: TaskRegistry) -> Schedule:
    """
    Default schedule used when nothing is persisted yet.

    Every registered task starts with last_run_at=now so nothing fires on the
    very first invocation; tasks become due one interval later.
    """
    schedule: Schedule = {}
    for name in registry:
        d = registry.defaults_for(name)
        schedule[name] = TaskMetadata(
            last_run_at=now,
            schedule=d.schedule,
            skip_health_gate=d.skip_health_gate,
            disabled=d.disabled,
        )
    return schedule


async def _is_healthy(probe: HealthProbe, log: logging.Logger) -> bool:
    try:
        return bool(await probe.check())
    except Exception:
        # Fail-closed: a probe that blows up counts as unhealthy.
        log.exception("Health probe raised")
        return False


async def run_pass(
        now: datetime,
        schedule: Schedule,
        health_probe: HealthProbe,
        registry: TaskRegistry,
        *,
        report: PassReport | None = None,
        log: logging.Logger | None = None,
) -> Schedule:
    """Evaluate every schedule entry once, sequentially, mutating `schedule` in place."""
    log = log or logger
    report = report if report is not None else PassReport()

    for name, meta in schedule.items():
        if meta.disabled:
            log.info("Skipping %s, updates disabled.", name)
            report.skipped.append(name)
            continue

        if not meta.skip_health_gate and not await _is_healthy(health_probe, log):
            log.warning("Health check failed. Skipping %s this pass.", name)
            report.skipped.append(name)
            continue

        try:
            interval = interval_for(meta.schedule)
        except ConfigurationError as e:
            log.error("Task %s has a bad schedule entry: %s", name, e)
            report.skipped.append(name)
            continue

        try:
            next_run = meta.last_run_at + interval
        except OverflowError:
            log.error("Task %s has an out-of-range lastUpdate %s; skipping.", name, meta.last_run_at.isoformat())
            report.skipped.append(name)
            continue

        if next_run > now:
            log.info("Skipping %s, last run at %s.", name, meta.last_run_at.isoformat())
            report.not_due.append(name)
            continue

        task = registry.get(name)
        if task is None:
            log.warning("Unknown task: %s", name)
            report.skipped.append(name)
            continue

        log.info("Running %s...", name)
        try:
            await task.run()
        except Exception:
            # last_run_at stays put, so the task is due again on the next invocation.
            log.exception("Task %s failed", name)
            report.failed.append(name)
            continue

        meta.last_run_at = now
        report.ran.append(name)
        log.info("Task %s completed.", name)

    return schedule


async def run_once(
        store: ScheduleStore,
        health_probe: HealthProbe,
        registry: TaskRegistry,
        *,
        now: datetime | None = None,
        log: logging.Logger | None = None,
) -> PassReport:
    """Load -> (bootstrap) -> pass -> save."""
    log = log or logger
    now = now or datetime.now(UTC)
    report = PassReport()

    log.info("Fetching task schedule...")
    schedule = store.load()
    if not schedule:
        log.warning("No task schedule found! Using default schedule.")
        schedule = bootstrap_schedule(now, registry)
        report.bootstrapped = True

    await run_pass(now, schedule, health_probe, registry, report=report, log=log)

    report.saved = store.save(schedule).ok
    log.info(
        "Pass finished: ran=%s failed=%s not_due=%s skipped=%s saved=%s",
        report.ran,
        report.failed,
        report.not_due,
        report.skipped,
        report.saved,
    )
    return report
