# src/backup_keeper/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

_THIRD_PARTY_CHATTY = ("httpx", "httpcore", "botocore", "boto3", "s3transfer", "urllib3")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep `kubectl logs` output readable:
    - allow all backup_keeper logs
    - show Python warnings (captured as 'py.warnings', logged at WARNING)
    - suppress third-party noise (httpx request lines, botocore retries) unless ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name == "backup_keeper" or name.startswith("backup_keeper."):
            return True

        if name == "py.warnings":
            return record.levelno >= logging.WARNING

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path | None = ".local/backup-keeper",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Configure logging with:
    - Console handler: filtered, this is what the cluster log collector picks up
    - File handler: full logs for debugging (skipped when log_dir is None)

    Call this ONCE, very early (before first logger.info).
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_dir / "backup-keeper.log"), encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    for name in _THIRD_PARTY_CHATTY:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Route warnings.warn(...) into logging as 'py.warnings'
    logging.captureWarnings(True)
