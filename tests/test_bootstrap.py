# tests/test_bootstrap.py

from __future__ import annotations

import pytest

from backup_keeper.cli.bootstrap import (
    DATABASE_BACKUP,
    LOG_BACKUP,
    MONITORING_BACKUP,
    create_initial_state,
    create_remote_store,
)
from backup_keeper.errors import ConfigurationError
from backup_keeper.storage.local_store import LocalFolderStore
from backup_keeper.tasks.task_models import SchedulePeriod
from backup_keeper.tasks.task_scheduler import bootstrap_schedule


@pytest.mark.asyncio
async def test_create_initial_state_wires_default_tasks(settings, now) -> None:
    state = create_initial_state(settings=settings)
    try:
        assert isinstance(state.remote, LocalFolderStore)
        assert state.registry.names() == [DATABASE_BACKUP, MONITORING_BACKUP, LOG_BACKUP]
        assert settings.backup_dir.is_dir()
        assert settings.local_backup_dir.is_dir()

        schedule = bootstrap_schedule(now, state.registry)
        assert schedule[DATABASE_BACKUP].schedule == SchedulePeriod.DAILY
        assert schedule[MONITORING_BACKUP].schedule == SchedulePeriod.HOURLY
        assert schedule[LOG_BACKUP].schedule == SchedulePeriod.HOURLY
        assert not any(m.skip_health_gate or m.disabled for m in schedule.values())
    finally:
        await state.http_client.aclose()


def test_remote_store_backend_validation(settings) -> None:
    settings.storage_backend = "s3"
    with pytest.raises(ConfigurationError, match="BUCKET"):
        create_remote_store(settings)

    settings.storage_backend = "ftp"
    with pytest.raises(ConfigurationError, match="ftp"):
        create_remote_store(settings)
