# src/backup_keeper/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the remote store backend,
- wires the backup tasks into a TaskRegistry and everything into AppState.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from ..backups.database_backup import DatabaseBackup
from ..backups.logs_backup import LogsBackup
from ..backups.monitoring_backup import MonitoringBackup
from ..config import Settings, get_settings
from ..core.ports import RemoteStore
from ..core.state import AppState
from ..errors import ConfigurationError
from ..logs.aggregator import LogAggregator
from ..logs.loki import LokiLogSource
from ..storage.local_store import LocalFolderStore
from ..storage.s3_store import S3Store
from ..tasks.health import HttpHealthProbe
from ..tasks.task_models import SchedulePeriod
from ..tasks.task_registry import TaskDefaults, TaskRegistry
from ..tasks.task_store import ScheduleStore

logger = logging.getLogger(__name__)

DATABASE_BACKUP = "DatabaseBackup"
MONITORING_BACKUP = "MonitoringBackup"
LOG_BACKUP = "LogBackup"


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.backup_dir.mkdir(parents=True, exist_ok=True)
    settings.local_backup_dir.mkdir(parents=True, exist_ok=True)


def create_remote_store(settings: Settings) -> RemoteStore:
    backend = settings.storage_backend
    if backend == "local":
        return LocalFolderStore(settings.storage_root)
    if backend == "s3":
        if not settings.s3_bucket:
            raise ConfigurationError("BACKUP_S3_BUCKET is required for the s3 storage backend")
        return S3Store(
            settings.s3_bucket,
            prefix=settings.s3_prefix,
            endpoint_url=settings.s3_endpoint_url,
            region_name=settings.s3_region,
        )
    raise ConfigurationError(f"Unknown storage backend: {backend!r}")


def build_registry(
    settings: Settings,
    remote: RemoteStore,
    http_client: httpx.AsyncClient,
    cancel_event: asyncio.Event,
) -> TaskRegistry:
    registry = TaskRegistry()

    registry.register(
        DATABASE_BACKUP,
        DatabaseBackup(
            db_path=settings.db_path,
            backup_dir=settings.backup_dir,
            remote=remote,
            scope=settings.database_scope,
            app_name=settings.app_name,
        ),
        TaskDefaults(schedule=SchedulePeriod.DAILY),
    )

    registry.register(
        MONITORING_BACKUP,
        MonitoringBackup(
            tools=settings.monitoring_tools,
            data_dirs=settings.monitoring_data_dirs,
            config_dirs=settings.monitoring_config_dirs,
            staging_dir=settings.local_backup_dir,
            remote=remote,
            scope=settings.monitoring_scope,
            snapshot_url=settings.prometheus_snapshot_url,
            snapshot_dir=settings.prometheus_snapshot_dir,
            http_client=http_client,
            http_timeout=settings.http_timeout_seconds,
        ),
        TaskDefaults(schedule=SchedulePeriod.HOURLY),
    )

    aggregator = LogAggregator(
        LokiLogSource(settings.loki_url, client=http_client, timeout=settings.http_timeout_seconds),
        output_dir=settings.backup_dir,
        filter_expr=settings.loki_query,
        page_size=settings.loki_page_size,
        keep_files=settings.log_retention_files,
        dedupe=settings.log_dedupe,
    )
    registry.register(
        LOG_BACKUP,
        LogsBackup(
            aggregator=aggregator,
            remote=remote,
            scope=settings.logs_scope,
            cancel_event=cancel_event,
        ),
        TaskDefaults(schedule=SchedulePeriod.HOURLY),
    )

    return registry


def create_initial_state(*, settings: Settings | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Must be called from inside the running event loop (the HTTP client and the
    cancel event belong to it). If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    remote = create_remote_store(settings)
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.http_timeout_seconds))
    cancel_event = asyncio.Event()

    return AppState(
        settings=settings,
        remote=remote,
        schedule_store=ScheduleStore(remote, scope=settings.config_scope),
        health_probe=HttpHealthProbe(
            settings.health_check_url,
            client=http_client,
            timeout=settings.http_timeout_seconds,
        ),
        registry=build_registry(settings, remote, http_client, cancel_event),
        http_client=http_client,
        cancel_event=cancel_event,
    )
