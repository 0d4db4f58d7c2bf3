# travel_scheduler/schemas/jobs.py
"""Response models for the operational job endpoints."""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class DispatchResponse(BaseModel):
    checked: int = Field(..., description="Pending rows inspected in this batch")
    sent: int = Field(..., description="Rows delivered as notifications")
    failed: int = Field(..., description="Rows that raised while being delivered")


class TransitionResponse(BaseModel):
    checked: int
    to_ongoing: int
    to_completed: int
    reprompted: int = 0
    failed: int = 0


class CleanupResponse(BaseModel):
    removed: int
    retention_days: int


class JobRunResponse(BaseModel):
    job: str
    status: str = Field(..., description="success | failed | skipped")
    started_at: str
    duration_seconds: float
    result: Optional[Any] = None
    error: Optional[str] = None


class JobStatusResponse(BaseModel):
    name: str
    trigger: str
    running: bool
    skipped: int
    last_run: Optional[JobRunResponse] = None
    next_run_at: Optional[str] = None


class JobListResponse(BaseModel):
    started: bool
    jobs: List[JobStatusResponse]
