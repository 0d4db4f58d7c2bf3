# travel_scheduler/main.py
"""
FastAPI application for the scheduler.

The app exists for operations: job status, guarded manual triggers and the
Prometheus scrape endpoint. The JobRunner starts with the app's lifespan
unless ``JOB_RUNNER_ENABLED`` is false or the process is under pytest.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from .core.config import is_running_tests, settings
from .core.logging import setup_logging
from .database import init_db
from .routes import internal_jobs
from .tasks.job_runner import JobRunner
from .tasks.schedule import build_job_runner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    runner: JobRunner = app.state.job_runner
    logger.info(f"Travel scheduler starting (environment={settings.environment})")

    if settings.is_sqlite and not is_running_tests():
        init_db()

    if settings.job_runner_enabled and not is_running_tests():
        runner.start()
    else:
        logger.info("[JOBS] Job runner disabled; manual triggers only")

    yield

    logger.info("Travel scheduler shutting down...")
    runner.stop()


def create_app(job_runner: Optional[JobRunner] = None) -> FastAPI:
    app = FastAPI(
        title="Travel Scheduler",
        description="Timezone-aware notification scheduling and booking lifecycle jobs",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.job_runner = job_runner or build_job_runner()
    app.include_router(internal_jobs.router)
    app.include_router(internal_jobs.metrics_router)
    return app


setup_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("travel_scheduler.main:app", host="0.0.0.0", port=8000, log_level="info")
