# src/backup_keeper/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, runs one scheduling pass and exits.
Meant to be started periodically (cron / Kubernetes CronJob).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..errors import ConfigurationError
from ..logging_setup import setup_logging
from ..tasks.task_scheduler import PassReport, run_once

logger = logging.getLogger(__name__)


async def _run(settings) -> PassReport:
    state = create_initial_state(settings=settings)

    loop = asyncio.get_running_loop()

    def _handle_signal(signum: int) -> None:
        logger.info("Signal %s received, stopping after the current step...", signum)
        state.cancel_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        # Some platforms (Windows) cannot install loop signal handlers.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, _handle_signal, sig)

    try:
        return await run_once(state.schedule_store, state.health_probe, state.registry)
    finally:
        await state.http_client.aclose()


def main() -> int:
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s backup keeper...", settings.app_name)
    logger.info(
        "Config: db=%s backup_dir=%s storage=%s health_check=%s",
        settings.db_path,
        settings.backup_dir,
        settings.storage_backend,
        settings.health_check_url or "(none)",
    )

    try:
        report = asyncio.run(_run(settings))
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    logger.info("Tasks completed (ran=%d, failed=%d). Exiting.", len(report.ran), len(report.failed))
    return 0


if __name__ == "__main__":
    sys.exit(main())
