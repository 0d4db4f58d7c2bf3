#!/usr/bin/env python
# travel_scheduler/tasks/worker.py
"""
Standalone job worker.

Runs the scheduler jobs without the HTTP app, e.g. as a separate process
or container.

Usage:
    python -m travel_scheduler.tasks.worker
"""

import logging
import signal
from typing import Any

from ..core.config import settings
from ..core.logging import setup_logging
from ..database import init_db
from .schedule import build_job_runner

setup_logging()
logger = logging.getLogger(__name__)


def start_worker() -> None:
    """Start every job timer and block until SIGINT/SIGTERM."""
    logger.info("Starting travel scheduler job worker")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Database: {settings.database_url.split('@')[-1]}")

    if settings.is_sqlite:
        init_db()

    runner = build_job_runner()

    def _shutdown(signum: int, _frame: Any) -> None:
        logger.info(f"Received signal {signum}, stopping job worker")
        runner.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    runner.start()
    while runner.is_started:
        runner.wait(timeout=1.0)


if __name__ == "__main__":
    start_worker()
