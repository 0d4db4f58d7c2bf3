from datetime import date, time, timedelta
from unittest.mock import MagicMock

import pytest
from tests.unit._clock import FixedClock, utc

from travel_scheduler.core.enums import AttendanceStatus, BookingStatus, NotificationType, UserRole
from travel_scheduler.core.exceptions import BusinessRuleException
from travel_scheduler.models.notification import Notification
from travel_scheduler.services.booking_lifecycle_service import BookingLifecycleManager
from travel_scheduler.services.notification_service import NotificationService

# 10:00-11:00 in Manila (UTC+8) is 02:00Z-03:00Z
WINDOW_START = utc(2025, 1, 1, 2, 0)


@pytest.fixture
def manila_booking(make_user, make_booking):
    creator = make_user("Asia/Manila", role=UserRole.CREATOR)
    traveler = make_user("America/New_York")
    return make_booking(
        creator=creator,
        traveler=traveler,
        booking_date=date(2025, 1, 1),
        start=time(10, 0),
        end=time(11, 0),
    )


def _feed(db, booking) -> list:
    return (
        db.query(Notification)
        .filter(Notification.booking_id == booking.id)
        .order_by(Notification.created_at, Notification.id)
        .all()
    )


@pytest.mark.unit
class TestTransitions:
    def test_nothing_happens_before_the_window(self, db, manila_booking):
        clock = FixedClock(WINDOW_START - timedelta(minutes=1))

        result = BookingLifecycleManager(db, clock).poll_and_transition()

        assert result.checked == 1
        assert result.to_ongoing == 0
        assert manila_booking.booking_status == BookingStatus.CONFIRMED
        assert _feed(db, manila_booking) == []

    def test_confirmed_to_ongoing_in_creator_timezone(self, db, manila_booking):
        clock = FixedClock(utc(2025, 1, 1, 2, 5))

        result = BookingLifecycleManager(db, clock).poll_and_transition()

        assert result.to_ongoing == 1
        assert manila_booking.booking_status == BookingStatus.ONGOING
        assert manila_booking.attendance == AttendanceStatus.WAITING
        feed = _feed(db, manila_booking)
        assert len(feed) == 3
        to_creator = [n for n in feed if n.user_id == manila_booking.creator_id]
        to_traveler = [n for n in feed if n.user_id == manila_booking.traveler_id]
        assert {n.title for n in to_creator} == {"Experience Started!", "Confirm Traveler Attendance"}
        assert [n.title for n in to_traveler] == ["Experience Started!"]
        prompt = next(n for n in to_creator if n.type == NotificationType.ATTENDANCE_CONFIRMATION.value)
        assert prompt.description == 'Did the traveler show up for "Sunset Kayak Tour"?'

    def test_ongoing_to_completed_after_window(self, db, manila_booking):
        clock = FixedClock(utc(2025, 1, 1, 2, 5))
        BookingLifecycleManager(db, clock).poll_and_transition()

        clock.set(utc(2025, 1, 1, 3, 5))
        result = BookingLifecycleManager(db, clock).poll_and_transition()

        assert result.to_completed == 1
        assert manila_booking.booking_status == BookingStatus.COMPLETED
        feed = _feed(db, manila_booking)
        assert len(feed) == 5
        assert {n.title for n in feed[3:]} == {"Experience Fulfilled", "Experience Completed!"}

    def test_missed_window_goes_straight_to_completed(self, db, manila_booking):
        clock = FixedClock(utc(2025, 1, 1, 3, 5))

        result = BookingLifecycleManager(db, clock).poll_and_transition()

        assert result.to_ongoing == 0
        assert result.to_completed == 1
        assert manila_booking.booking_status == BookingStatus.COMPLETED
        assert len(_feed(db, manila_booking)) == 2

    def test_repeat_runs_do_not_duplicate(self, db, manila_booking):
        clock = FixedClock(utc(2025, 1, 1, 2, 5))
        manager = BookingLifecycleManager(db, clock)

        manager.poll_and_transition()
        second = manager.poll_and_transition()

        assert second.to_ongoing == 0
        assert len(_feed(db, manila_booking)) == 3

    def test_cancelled_and_pending_bookings_are_ignored(self, db, make_booking):
        make_booking(status=BookingStatus.CANCELLED)
        make_booking(status=BookingStatus.PENDING)
        clock = FixedClock(utc(2025, 6, 2, 0, 0))

        result = BookingLifecycleManager(db, clock).poll_and_transition()

        assert result.checked == 0

    def test_window_ending_at_midnight_rolls_over(self, db, make_booking):
        booking = make_booking(booking_date=date(2025, 1, 1), start=time(23, 0), end=time(0, 0))
        clock = FixedClock(utc(2025, 1, 1, 23, 30))

        BookingLifecycleManager(db, clock).poll_and_transition()

        assert booking.booking_status == BookingStatus.ONGOING

    def test_one_failing_booking_does_not_stop_the_run(self, db, make_booking):
        first = make_booking(booking_date=date(2025, 1, 1), start=time(9, 0), end=time(10, 0))
        second = make_booking(booking_date=date(2025, 1, 1), start=time(11, 0), end=time(12, 0))
        clock = FixedClock(utc(2025, 1, 1, 13, 0))
        manager = BookingLifecycleManager(db, clock)
        original = manager._transition

        def flaky(booking, target):
            if booking.id == first.id:
                raise RuntimeError("boom")
            return original(booking, target)

        manager._transition = flaky
        result = manager.poll_and_transition()

        assert result.failed == 1
        assert result.to_completed == 1
        assert second.booking_status == BookingStatus.COMPLETED

    def test_push_is_sent_after_commit(self, db, manila_booking):
        clock = FixedClock(utc(2025, 1, 1, 2, 5))
        provider = MagicMock()
        service = NotificationService(db, clock, provider=provider, push_enabled=True)

        BookingLifecycleManager(db, clock, notification_service=service).poll_and_transition()

        assert provider.send.call_count == 3

    def test_push_failure_keeps_the_transition(self, db, manila_booking):
        clock = FixedClock(utc(2025, 1, 1, 2, 5))
        provider = MagicMock()
        provider.send.side_effect = RuntimeError("push gateway down")
        service = NotificationService(db, clock, provider=provider, push_enabled=True)

        result = BookingLifecycleManager(db, clock, notification_service=service).poll_and_transition()

        assert result.failed == 0
        assert manila_booking.booking_status == BookingStatus.ONGOING


@pytest.mark.unit
class TestAdvanceTo:
    def test_backward_move_is_rejected(self, manila_booking):
        manila_booking.advance_to(BookingStatus.ONGOING, WINDOW_START)

        with pytest.raises(BusinessRuleException) as exc_info:
            manila_booking.advance_to(BookingStatus.CONFIRMED, WINDOW_START)
        assert exc_info.value.code == "INVALID_STATUS_TRANSITION"

    def test_completed_is_terminal(self, manila_booking):
        manila_booking.advance_to(BookingStatus.COMPLETED, WINDOW_START)

        with pytest.raises(BusinessRuleException):
            manila_booking.advance_to(BookingStatus.ONGOING, WINDOW_START)

    def test_entering_ongoing_starts_attendance(self, manila_booking):
        manila_booking.advance_to(BookingStatus.ONGOING, WINDOW_START)

        assert manila_booking.attendance == AttendanceStatus.WAITING
        assert manila_booking.last_attendance_prompt == WINDOW_START


@pytest.mark.unit
class TestAttendanceEscalation:
    @pytest.mark.parametrize(
        "minutes_after,expected",
        [(10, 0), (15, 1)],
    )
    def test_reprompt_after_interval(self, db, manila_booking, minutes_after, expected):
        started = utc(2025, 1, 1, 2, 5)
        clock = FixedClock(started)
        BookingLifecycleManager(db, clock, reprompt_minutes=15).poll_and_transition()

        clock.set(started + timedelta(minutes=minutes_after))
        result = BookingLifecycleManager(db, clock, reprompt_minutes=15).poll_and_transition()

        assert result.reprompted == expected

    def test_reprompt_cadence_follows_last_prompt(self, db, manila_booking):
        started = utc(2025, 1, 1, 2, 5)
        clock = FixedClock(started)
        manager = BookingLifecycleManager(db, clock, reprompt_minutes=15)
        manager.poll_and_transition()

        outcomes = []
        for minutes in (10, 15, 29, 30):
            clock.set(started + timedelta(minutes=minutes))
            outcomes.append(manager.poll_and_transition().reprompted)

        assert outcomes == [0, 1, 0, 1]
        reprompts = [n for n in _feed(db, manila_booking) if n.title == "Still waiting for traveler?"]
        assert len(reprompts) == 2
        assert all(n.user_id == manila_booking.creator_id for n in reprompts)
        assert reprompts[0].description.startswith("15 minutes have passed.")

    def test_resolved_attendance_is_not_reprompted(self, db, manila_booking):
        started = utc(2025, 1, 1, 2, 5)
        clock = FixedClock(started)
        manager = BookingLifecycleManager(db, clock, reprompt_minutes=15)
        manager.poll_and_transition()
        manila_booking.traveler_attendance = AttendanceStatus.CONFIRMED.value
        db.commit()

        clock.set(started + timedelta(minutes=20))

        assert manager.poll_and_transition().reprompted == 0

    def test_missing_last_prompt_counts_as_due(self, db, manila_booking):
        clock = FixedClock(utc(2025, 1, 1, 2, 5))
        manager = BookingLifecycleManager(db, clock, reprompt_minutes=15)
        manager.poll_and_transition()
        manila_booking.last_attendance_prompt = None
        db.commit()

        assert manager.poll_and_transition().reprompted == 1
        assert manila_booking.last_attendance_prompt == clock()

    def test_completed_bookings_stop_reprompting(self, db, manila_booking):
        clock = FixedClock(utc(2025, 1, 1, 2, 5))
        manager = BookingLifecycleManager(db, clock, reprompt_minutes=15)
        manager.poll_and_transition()

        clock.set(utc(2025, 1, 1, 3, 30))
        result = manager.poll_and_transition()

        assert result.to_completed == 1
        assert result.reprompted == 0
