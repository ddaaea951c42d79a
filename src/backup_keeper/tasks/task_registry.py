# src/backup_keeper/tasks/task_registry.py

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from ..core.ports import RunnableTask
from .task_models import SchedulePeriod


@dataclass(slots=True, frozen=True)
class TaskDefaults:
    """Schedule entry used when a task first appears in a bootstrap schedule."""

    schedule: SchedulePeriod = SchedulePeriod.DAILY
    skip_health_gate: bool = False
    disabled: bool = False


class TaskRegistry:
    """Task name -> runnable task. Names are matched exactly (they are schedule keys)."""

    def __init__(self) -> None:
        self._tasks: dict[str, RunnableTask] = {}
        self._defaults: dict[str, TaskDefaults] = {}

    def register(
        self,
        name: str,
        task: RunnableTask,
        defaults: TaskDefaults | None = None,
    ) -> None:
        if not name or not name.strip():
            raise ValueError("task name is required")
        self._tasks[name] = task
        self._defaults[name] = defaults or TaskDefaults()

    def get(self, name: str) -> RunnableTask | None:
        return self._tasks.get(name)

    def defaults_for(self, name: str) -> TaskDefaults:
        return self._defaults.get(name, TaskDefaults())

    def names(self) -> list[str]:
        return list(self._tasks)

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __iter__(self) -> Iterator[str]:
        return iter(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)
