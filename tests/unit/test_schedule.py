from contextlib import contextmanager
from datetime import time

import pytest
from tests.unit._clock import FixedClock, utc

from travel_scheduler.core.config import Settings
from travel_scheduler.core.enums import BookingStatus
from travel_scheduler.services.notification_scheduler import NotificationScheduler, NotificationSpec
from travel_scheduler.tasks.job_runner import DailyTrigger, IntervalTrigger, JobRunStatus
from travel_scheduler.tasks.schedule import (
    ACTIVITY_REMINDERS,
    CLEANUP_NOTIFICATIONS,
    DISPATCH_NOTIFICATIONS,
    SWEEP_ITINERARIES,
    TRANSITION_BOOKINGS,
    build_job_runner,
)


@pytest.fixture
def session_scope(session_factory):
    @contextmanager
    def _scope():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return _scope


@pytest.fixture
def config():
    return Settings(
        _env_file=None,
        notification_dispatch_interval_seconds=60,
        booking_lifecycle_interval_seconds=300,
        cleanup_hour=3,
        cleanup_minute=15,
    )


@pytest.mark.unit
def test_registers_every_job_with_configured_triggers(session_scope, config):
    runner = build_job_runner(session_scope, FixedClock(utc(2025, 1, 1, 0, 0)), config)

    assert runner.job_names == [
        DISPATCH_NOTIFICATIONS,
        TRANSITION_BOOKINGS,
        SWEEP_ITINERARIES,
        ACTIVITY_REMINDERS,
        CLEANUP_NOTIFICATIONS,
    ]
    assert runner.get_job(DISPATCH_NOTIFICATIONS).trigger == IntervalTrigger(60)
    assert runner.get_job(TRANSITION_BOOKINGS).trigger == IntervalTrigger(300)
    assert runner.get_job(CLEANUP_NOTIFICATIONS).trigger == DailyTrigger(3, 15)
    assert not runner.is_started


@pytest.mark.unit
def test_dispatch_job_runs_in_its_own_session(db, session_scope, config, make_user):
    clock = FixedClock(utc(2025, 1, 1, 0, 0))
    user = make_user("Pacific/Auckland")
    NotificationScheduler(db, clock).enqueue(
        NotificationSpec(user_id=user.id, type="reminder", title="Flight check-in"),
        "2025-01-01 12:00",
    )
    runner = build_job_runner(session_scope, clock, config)

    run = runner.run_now(DISPATCH_NOTIFICATIONS)

    assert run.status == JobRunStatus.SUCCESS
    assert run.result == {"checked": 1, "sent": 1, "failed": 0}


@pytest.mark.unit
def test_transition_job_reports_counts(session_scope, config, make_booking):
    make_booking(start=time(10, 0), end=time(11, 0), status=BookingStatus.CONFIRMED)
    runner = build_job_runner(session_scope, FixedClock(utc(2025, 6, 1, 10, 30)), config)

    run = runner.run_now(TRANSITION_BOOKINGS)

    assert run.result["to_ongoing"] == 1
    assert run.result["checked"] == 1


@pytest.mark.unit
def test_itinerary_jobs_report_counts(session_scope, config, make_itinerary):
    make_itinerary()
    runner = build_job_runner(session_scope, FixedClock(utc(2025, 6, 1, 12, 0)), config)

    assert runner.run_now(SWEEP_ITINERARIES).result["to_ongoing"] == 1
    assert runner.run_now(ACTIVITY_REMINDERS).result == {"checked": 0, "sent": 0, "failed": 0}


@pytest.mark.unit
def test_cleanup_job_uses_configured_retention_by_default(session_scope, config):
    runner = build_job_runner(session_scope, FixedClock(utc(2025, 1, 1, 0, 0)), config)

    assert runner.run_now(CLEANUP_NOTIFICATIONS).result == {
        "removed": 0,
        "retention_days": config.notification_retention_days,
    }
    assert runner.run_now(CLEANUP_NOTIFICATIONS, retention_days=7).result["retention_days"] == 7
