# tests/conftest.py

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from .fakes import FakeRemoteStore


@pytest.fixture()
def now() -> datetime:
    return datetime(2024, 3, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture()
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the process environment.
    """
    return SimpleNamespace(
        app_name="webistecs",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        db_path=tmp_path / "source" / "app.db",
        backup_dir=tmp_path / "backups",
        local_backup_dir=tmp_path / "staging",
        health_check_url="",
        http_timeout_seconds=5.0,
        loki_url="http://loki.test:3100",
        loki_query='{job="kubernetes-logs"}',
        loki_page_size=100,
        log_retention_files=7,
        log_dedupe=False,
        monitoring_tools=["grafana"],
        monitoring_data_dirs={"grafana": tmp_path / "source" / "grafana"},
        monitoring_config_dirs={"grafana": tmp_path / "source" / "grafana-etc"},
        prometheus_snapshot_url="",
        prometheus_snapshot_dir=tmp_path / "source" / "snapshots",
        storage_backend="local",
        storage_root=tmp_path / "remote",
        s3_bucket=None,
        s3_prefix="webistecs",
        s3_endpoint_url=None,
        s3_region=None,
        config_scope="config",
        logs_scope="logs",
        database_scope="database",
        monitoring_scope="monitoring",
    )
