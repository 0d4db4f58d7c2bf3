# travel_scheduler/tasks/schedule.py
"""
Production job schedule.

Every job opens its own short-lived session, runs one bounded batch and
returns the batch counters (which the runner keeps as ``last_run.result``).
"""

from contextlib import AbstractContextManager
import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.timezone_service import NowProvider, utc_now
from ..database import get_db_session
from ..services.booking_lifecycle_service import BookingLifecycleManager
from ..services.itinerary_status_service import ItineraryStatusService
from ..services.notification_scheduler import NotificationScheduler
from .job_runner import DailyTrigger, IntervalTrigger, JobRunner

logger = logging.getLogger(__name__)

SessionScope = Callable[[], AbstractContextManager[Session]]

DISPATCH_NOTIFICATIONS = "notifications.dispatch"
TRANSITION_BOOKINGS = "bookings.transition"
SWEEP_ITINERARIES = "itineraries.status"
ACTIVITY_REMINDERS = "itineraries.activity_reminders"
CLEANUP_NOTIFICATIONS = "notifications.cleanup"


class ScheduledJobs:
    """Job bodies bound to a session scope and a clock."""

    def __init__(
        self,
        session_scope: SessionScope = get_db_session,
        now_provider: NowProvider = utc_now,
        config: Optional[Settings] = None,
    ):
        self.session_scope = session_scope
        self.now_provider = now_provider
        self.config = config or default_settings

    def dispatch_notifications(self) -> Dict[str, int]:
        with self.session_scope() as db:
            scheduler = NotificationScheduler(
                db,
                self.now_provider,
                batch_size=self.config.dispatch_batch_size,
                retry_backoff_seconds=self.config.dispatch_retry_backoff_seconds,
            )
            return scheduler.poll_and_dispatch().to_dict()

    def transition_bookings(self) -> Dict[str, int]:
        with self.session_scope() as db:
            manager = BookingLifecycleManager(
                db, self.now_provider, reprompt_minutes=self.config.attendance_reprompt_minutes
            )
            return manager.poll_and_transition().to_dict()

    def sweep_itineraries(self) -> Dict[str, int]:
        with self.session_scope() as db:
            return ItineraryStatusService(db, self.now_provider).sweep_statuses().to_dict()

    def send_activity_reminders(self) -> Dict[str, int]:
        with self.session_scope() as db:
            return ItineraryStatusService(db, self.now_provider).send_activity_reminders().to_dict()

    def cleanup_notifications(self, retention_days: Optional[int] = None) -> Dict[str, Any]:
        days = self.config.notification_retention_days if retention_days is None else retention_days
        with self.session_scope() as db:
            removed = NotificationScheduler(db, self.now_provider).cleanup(days)
        return {"removed": removed, "retention_days": days}


def build_job_runner(
    session_scope: SessionScope = get_db_session,
    now_provider: NowProvider = utc_now,
    config: Optional[Settings] = None,
) -> JobRunner:
    """Register the five production jobs on a fresh runner (not started)."""
    config = config or default_settings
    jobs = ScheduledJobs(session_scope, now_provider, config)
    runner = JobRunner(now_provider)

    runner.register(
        DISPATCH_NOTIFICATIONS,
        jobs.dispatch_notifications,
        IntervalTrigger(config.notification_dispatch_interval_seconds),
    )
    runner.register(
        TRANSITION_BOOKINGS,
        jobs.transition_bookings,
        IntervalTrigger(config.booking_lifecycle_interval_seconds),
    )
    runner.register(
        SWEEP_ITINERARIES,
        jobs.sweep_itineraries,
        IntervalTrigger(config.itinerary_status_interval_seconds),
    )
    runner.register(
        ACTIVITY_REMINDERS,
        jobs.send_activity_reminders,
        IntervalTrigger(config.activity_reminder_interval_seconds),
    )
    runner.register(
        CLEANUP_NOTIFICATIONS,
        jobs.cleanup_notifications,
        DailyTrigger(config.cleanup_hour, config.cleanup_minute),
    )
    logger.info(f"[JOBS] Registered {len(runner.job_names)} jobs: {', '.join(runner.job_names)}")
    return runner
