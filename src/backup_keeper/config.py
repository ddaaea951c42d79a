# src/backup_keeper/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Unprefixed names from older deployments (HEALTH_CHECK_URL, DB_PATH, ...) still work.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "BACKUP"

DEFAULT_LOKI_QUERY = (
    '{job="kubernetes-logs", filename=~"/var/log/containers/webistecs-.*", '
    'filename!~"/var/log/containers/webistecs-monitor-.*", '
    'source!~"node_exporter|diskstats|systemd|prometheus"}'
)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv() -> None:
    """Load .env from the working directory. Real environment variables win."""
    load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(*names: str, default: Path) -> Path:
    raw = _first_env(*names)
    if raw is None:
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Backup sources / local staging ----
    db_path: Path
    backup_dir: Path
    local_backup_dir: Path

    # ---- Health gate / HTTP ----
    health_check_url: str
    http_timeout_seconds: float

    # ---- Logs (Loki) ----
    loki_url: str
    loki_query: str
    loki_page_size: int
    log_retention_files: int
    log_dedupe: bool

    # ---- Monitoring tools ----
    monitoring_tools: List[str]
    monitoring_data_dirs: Dict[str, Path]
    monitoring_config_dirs: Dict[str, Path]
    prometheus_snapshot_url: str
    prometheus_snapshot_dir: Path

    # ---- Remote store ----
    storage_backend: str  # "local" | "s3"
    storage_root: Path
    s3_bucket: Optional[str]
    s3_prefix: str
    s3_endpoint_url: Optional[str]
    s3_region: Optional[str]

    # ---- Remote scopes (folders / key prefixes) ----
    config_scope: str
    logs_scope: str
    database_scope: str
    monitoring_scope: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "webistecs")
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), default=Path(".local/backup-keeper"))

        db_path = _env_path(_k("DB_PATH"), "DB_PATH", default=Path("/mnt/source/webistecs.db"))
        backup_dir = _env_path(_k("BACKUP_DIR"), "BACKUP_PATH", default=data_dir / "backups")
        local_backup_dir = _env_path(_k("LOCAL_BACKUP_DIR"), "LOCAL_BACKUP_PATH", default=backup_dir)

        health_check_url = (_first_env(_k("HEALTH_CHECK_URL"), "HEALTH_CHECK_URL", default="") or "").strip()
        http_timeout_seconds = _env_float(_k("HTTP_TIMEOUT_SECONDS"), 30.0)

        loki_url = _env(_k("LOKI_URL"), "http://loki.monitoring.svc.cluster.local:3100")
        loki_query = _env(_k("LOKI_QUERY"), DEFAULT_LOKI_QUERY)
        loki_page_size = max(1, _env_int(_k("LOKI_PAGE_SIZE"), 1000))
        log_retention_files = max(1, _env_int(_k("LOG_RETENTION_FILES"), 7))
        log_dedupe = _env_bool(_k("LOG_DEDUPE"), False)

        monitoring_tools = _env_list(_k("MONITORING_TOOLS"), ["grafana", "prometheus"])
        monitoring_data_dirs = {
            tool: _env_path(_k(f"{tool.upper()}_DATA_DIR"), default=Path(f"/mnt/source/{tool}/data"))
            for tool in monitoring_tools
        }
        monitoring_config_dirs = {
            tool: _env_path(_k(f"{tool.upper()}_CONFIG_DIR"), default=Path(f"/etc/{tool}"))
            for tool in monitoring_tools
        }
        prometheus_snapshot_url = _env(
            _k("PROMETHEUS_SNAPSHOT_URL"),
            "http://prometheus.monitoring.svc.cluster.local:9090/api/v1/admin/tsdb/snapshot",
        )
        prometheus_snapshot_dir = _env_path(
            _k("PROMETHEUS_SNAPSHOT_DIR"),
            default=Path("/mnt/source/prometheus/data/snapshots"),
        )

        storage_backend = _env(_k("STORAGE_BACKEND"), "local").strip().lower()
        storage_root = _env_path(_k("STORAGE_ROOT"), default=data_dir / "remote")
        s3_bucket = _first_env(_k("S3_BUCKET"), default=None)
        s3_prefix = _env(_k("S3_PREFIX"), app_name)
        s3_endpoint_url = _first_env(_k("S3_ENDPOINT_URL"), default=None)
        s3_region = _first_env(_k("S3_REGION"), "AWS_DEFAULT_REGION", default=None)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            backup_dir=backup_dir,
            local_backup_dir=local_backup_dir,
            health_check_url=health_check_url,
            http_timeout_seconds=http_timeout_seconds,
            loki_url=loki_url,
            loki_query=loki_query,
            loki_page_size=loki_page_size,
            log_retention_files=log_retention_files,
            log_dedupe=log_dedupe,
            monitoring_tools=monitoring_tools,
            monitoring_data_dirs=monitoring_data_dirs,
            monitoring_config_dirs=monitoring_config_dirs,
            prometheus_snapshot_url=prometheus_snapshot_url,
            prometheus_snapshot_dir=prometheus_snapshot_dir,
            storage_backend=storage_backend,
            storage_root=storage_root,
            s3_bucket=s3_bucket,
            s3_prefix=s3_prefix,
            s3_endpoint_url=s3_endpoint_url,
            s3_region=s3_region,
            config_scope=_env(_k("CONFIG_SCOPE"), "config"),
            logs_scope=_env(_k("LOGS_SCOPE"), "logs"),
            database_scope=_env(_k("DATABASE_SCOPE"), "database"),
            monitoring_scope=_env(_k("MONITORING_SCOPE"), "monitoring"),
        )


def _apply_local_overrides(settings: Settings) -> Settings:
    """
    Optional local overrides (never committed).

    Prefer .env for secrets; use config_local.py only for safe overrides.
    """
    try:
        import config_local as _config_local  # type: ignore
    except ImportError:
        return settings

    overrides = {
        name.lower(): getattr(_config_local, name)
        for name in dir(_config_local)
        if name.isupper() and name.lower() in Settings.__dataclass_fields__
    }
    if overrides:
        logger.info("Applying config_local overrides: %s", sorted(overrides))
        settings = replace(settings, **overrides)
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    _load_dotenv()
    return _apply_local_overrides(Settings.from_env())
