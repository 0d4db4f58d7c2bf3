# travel_scheduler/tasks/job_runner.py
"""
In-process periodic job runner.

Each registered job gets its own daemon thread that sleeps on a shared stop
event until the job's trigger fires. A per-job non-blocking lock makes every
job non-reentrant: if a run (timer or manual) is still in progress, the next
invocation is skipped and reported instead of running alongside it.

Only guards a single process. Running several instances needs an external
lock around each job.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Union

from ..core.exceptions import JobAlreadyRunningException, UnknownJobException
from ..core.timezone_service import NowProvider, ensure_utc, utc_now
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntervalTrigger:
    """Fire every ``seconds`` after the previous fire time."""

    seconds: float

    def __post_init__(self) -> None:
        if self.seconds <= 0:
            raise ValueError("IntervalTrigger seconds must be positive")

    def next_fire(self, after: datetime) -> datetime:
        return ensure_utc(after) + timedelta(seconds=self.seconds)

    def describe(self) -> str:
        return f"every {self.seconds:g}s"


@dataclass(frozen=True)
class DailyTrigger:
    """Fire once a day at ``hour:minute`` UTC."""

    hour: int
    minute: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.hour <= 23 or not 0 <= self.minute <= 59:
            raise ValueError("DailyTrigger needs 0 <= hour <= 23 and 0 <= minute <= 59")

    def next_fire(self, after: datetime) -> datetime:
        after = ensure_utc(after)
        candidate = after.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= after:
            candidate += timedelta(days=1)
        return candidate

    def describe(self) -> str:
        return f"daily at {self.hour:02d}:{self.minute:02d} UTC"


Trigger = Union[IntervalTrigger, DailyTrigger]


class JobRunStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class JobRun:
    job: str
    status: JobRunStatus
    started_at: datetime
    duration_seconds: float = 0.0
    result: Any = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job": self.job,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 4),
            "result": self.result,
            "error": self.error,
        }


@dataclass
class Job:
    name: str
    func: Callable[..., Any]
    trigger: Trigger
    run_on_start: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    last_run: Optional[JobRun] = None
    next_run_at: Optional[datetime] = None
    skipped: int = 0
    thread: Optional[threading.Thread] = field(default=None, repr=False)

    @property
    def is_running(self) -> bool:
        return self.lock.locked()


class JobRunner:
    """
    Named periodic jobs with a non-reentrant guard and a shared stop event.

    Usage:
        runner = JobRunner()
        runner.register("notifications.dispatch", dispatch, IntervalTrigger(120))
        runner.start()
        ...
        runner.stop()
    """

    def __init__(self, now_provider: NowProvider = utc_now):
        self.now_provider = now_provider
        self._jobs: Dict[str, Job] = {}
        self._stop_event = threading.Event()
        self._started = False

    def register(
        self,
        name: str,
        func: Callable[..., Any],
        trigger: Trigger,
        run_on_start: bool = False,
    ) -> Job:
        if name in self._jobs:
            raise ValueError(f"Job '{name}' is already registered")
        if self._started:
            raise RuntimeError("Cannot register jobs after the runner has started")
        job = Job(name=name, func=func, trigger=trigger, run_on_start=run_on_start)
        self._jobs[name] = job
        return job

    @property
    def job_names(self) -> List[str]:
        return list(self._jobs)

    @property
    def is_started(self) -> bool:
        return self._started

    def get_job(self, name: str) -> Job:
        try:
            return self._jobs[name]
        except KeyError:
            raise UnknownJobException(name)

    def is_running(self, name: str) -> bool:
        return self.get_job(name).is_running

    def run_now(self, name: str, raise_if_running: bool = False, **kwargs: Any) -> JobRun:
        """
        Run a job on the calling thread, honouring the same guard as the timer.

        Raises:
            UnknownJobException: no job with that name
            JobAlreadyRunningException: the job is mid-run and ``raise_if_running`` is set
        """
        job = self.get_job(name)
        run = self._execute(job, **kwargs)
        if run.status == JobRunStatus.SKIPPED and raise_if_running:
            raise JobAlreadyRunningException(name)
        return run

    def _execute(self, job: Job, **kwargs: Any) -> JobRun:
        started_at = ensure_utc(self.now_provider())

        if not job.lock.acquire(blocking=False):
            job.skipped += 1
            logger.warning(f"[JOBS] {job.name} still running, skipping this invocation")
            prometheus_metrics.record_job_run(job.name, JobRunStatus.SKIPPED.value, 0.0)
            return JobRun(job=job.name, status=JobRunStatus.SKIPPED, started_at=started_at)

        prometheus_metrics.track_job_start(job.name)
        start = time.monotonic()
        try:
            try:
                result = job.func(**kwargs)
                run = JobRun(
                    job=job.name,
                    status=JobRunStatus.SUCCESS,
                    started_at=started_at,
                    result=result,
                )
            except Exception as exc:
                logger.error(f"[JOBS] {job.name} failed: {exc}", exc_info=True)
                run = JobRun(
                    job=job.name,
                    status=JobRunStatus.FAILED,
                    started_at=started_at,
                    error=f"{type(exc).__name__}: {exc}",
                )
            run.duration_seconds = time.monotonic() - start
            job.last_run = run
            prometheus_metrics.record_job_run(job.name, run.status.value, run.duration_seconds)
            logger.debug(f"[JOBS] {job.name} finished {run.status.value} in {run.duration_seconds:.3f}s")
            return run
        finally:
            prometheus_metrics.track_job_end(job.name)
            job.lock.release()

    def _loop(self, job: Job) -> None:
        if job.run_on_start and not self._stop_event.is_set():
            self._execute(job)

        while not self._stop_event.is_set():
            try:
                now = ensure_utc(self.now_provider())
                job.next_run_at = job.trigger.next_fire(now)
                wait_seconds = max(0.0, (job.next_run_at - now).total_seconds())
                if self._stop_event.wait(wait_seconds):
                    break
                self._execute(job)
            except Exception as exc:
                # Keep the timer alive; the next tick retries
                logger.error(f"[JOBS] Scheduler loop error in {job.name}: {exc}", exc_info=True)
                if self._stop_event.wait(1.0):
                    break

        job.next_run_at = None
        logger.info(f"[JOBS] {job.name} timer stopped")

    def start(self) -> None:
        if self._started:
            return
        self._stop_event.clear()
        self._started = True
        for job in self._jobs.values():
            job.thread = threading.Thread(target=self._loop, args=(job,), name=f"job-{job.name}", daemon=True)
            job.thread.start()
            logger.info(f"[JOBS] Started {job.name} ({job.trigger.describe()})")

    def stop(self, timeout: Optional[float] = 30.0) -> None:
        """Signal every timer to stop and wait for in-flight runs to finish."""
        if not self._started:
            return
        self._stop_event.set()
        for job in self._jobs.values():
            if job.thread is not None:
                job.thread.join(timeout)
                if job.thread.is_alive():
                    logger.warning(f"[JOBS] {job.name} did not stop within {timeout}s")
                job.thread = None
        self._started = False
        logger.info("[JOBS] Job runner stopped")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until ``stop`` is called (or ``timeout`` elapses)."""
        return self._stop_event.wait(timeout)

    def status(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": job.name,
                "trigger": job.trigger.describe(),
                "running": job.is_running,
                "skipped": job.skipped,
                "last_run": job.last_run.to_dict() if job.last_run else None,
                "next_run_at": job.next_run_at.isoformat() if job.next_run_at else None,
            }
            for job in self._jobs.values()
        ]
