# travel_scheduler/routes/internal_jobs.py
"""
Operational endpoints for the scheduler jobs.

Manual triggers go through the same JobRunner guard as the timers, so a
manual run never overlaps a scheduled one (409 instead).
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from ..core.exceptions import DomainException, ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..schemas.jobs import (
    CleanupResponse,
    DispatchResponse,
    JobListResponse,
    JobRunResponse,
    TransitionResponse,
)
from ..tasks.job_runner import JobRun, JobRunner, JobRunStatus
from ..tasks.schedule import CLEANUP_NOTIFICATIONS, DISPATCH_NOTIFICATIONS, TRANSITION_BOOKINGS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal/jobs", tags=["internal-jobs"])
metrics_router = APIRouter(tags=["monitoring"])


def get_job_runner(request: Request) -> JobRunner:
    return request.app.state.job_runner


def _run_or_raise(runner: JobRunner, name: str, **kwargs: Any) -> JobRun:
    try:
        run = runner.run_now(name, raise_if_running=True, **kwargs)
    except DomainException as e:
        raise e.to_http_exception()
    if run.status == JobRunStatus.FAILED:
        logger.error(f"[JOBS] Manual run of {name} failed: {run.error}")
        raise ServiceException(
            f"Job '{name}' failed", code="JOB_FAILED", details={"error": run.error}
        ).to_http_exception()
    return run


@router.get("", response_model=JobListResponse)
def list_jobs(runner: JobRunner = Depends(get_job_runner)) -> JobListResponse:
    return JobListResponse(started=runner.is_started, jobs=runner.status())


@router.post("/notifications/dispatch", response_model=DispatchResponse)
def dispatch_notifications(runner: JobRunner = Depends(get_job_runner)) -> DispatchResponse:
    run = _run_or_raise(runner, DISPATCH_NOTIFICATIONS)
    return DispatchResponse(**run.result)


@router.post("/bookings/transition", response_model=TransitionResponse)
def transition_bookings(runner: JobRunner = Depends(get_job_runner)) -> TransitionResponse:
    run = _run_or_raise(runner, TRANSITION_BOOKINGS)
    return TransitionResponse(**run.result)


@router.post("/notifications/cleanup", response_model=CleanupResponse)
def cleanup_notifications(
    retention_days: Optional[int] = Query(
        None, ge=0, description="Delete terminal records older than this (default: configured retention)"
    ),
    runner: JobRunner = Depends(get_job_runner),
) -> CleanupResponse:
    kwargs: Dict[str, Any] = {}
    if retention_days is not None:
        kwargs["retention_days"] = retention_days
    run = _run_or_raise(runner, CLEANUP_NOTIFICATIONS, **kwargs)
    return CleanupResponse(**run.result)


@router.post("/{name}/run", response_model=JobRunResponse)
def run_job(name: str, runner: JobRunner = Depends(get_job_runner)) -> JobRunResponse:
    """Run any registered job once; failures are reported in the body, not as 5xx."""
    try:
        run = runner.run_now(name, raise_if_running=True)
    except DomainException as e:
        raise e.to_http_exception()
    return JobRunResponse(**run.to_dict())


@metrics_router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
