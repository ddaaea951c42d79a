# src/backup_keeper/core/state.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import httpx

from ..tasks.task_registry import TaskRegistry
from ..tasks.task_store import ScheduleStore
from .ports import HealthProbe, RemoteStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    remote: RemoteStore
    schedule_store: ScheduleStore
    health_probe: HealthProbe
    registry: TaskRegistry
    http_client: httpx.AsyncClient

    # Set by SIGINT/SIGTERM; long-running steps (log pagination) watch it.
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
