from datetime import date, time

import pytest

from travel_scheduler.core.enums import BookingStatus, UserRole
from travel_scheduler.core.exceptions import ValidationException
from travel_scheduler.services.conflict_checker import (
    ConflictChecker,
    TimeSlot,
    conflict_free,
    overlaps,
)

DAY = date(2025, 6, 1)


@pytest.mark.unit
class TestTimeSlot:
    def test_back_to_back_slots_do_not_overlap(self):
        morning = TimeSlot.parse("09:00", "10:00")
        next_slot = TimeSlot.parse("10:00", "11:00")

        assert not overlaps(morning, next_slot)
        assert not overlaps(next_slot, morning)

    @pytest.mark.parametrize(
        "other",
        [("09:30", "10:30"), ("08:00", "09:01"), ("09:15", "09:45"), ("08:00", "12:00")],
    )
    def test_partial_and_full_overlaps(self, other):
        slot = TimeSlot.parse("09:00", "10:00")
        assert slot.overlaps(TimeSlot.parse(*other))

    def test_inverted_or_empty_range_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            TimeSlot.parse("10:00", "09:00")
        assert exc_info.value.code == "INVALID_TIME_RANGE"

        with pytest.raises(ValidationException):
            TimeSlot(time(9, 0), time(9, 0))

    def test_bad_time_format_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            TimeSlot.parse("nine", "10:00")
        assert exc_info.value.code == "INVALID_TIME_FORMAT"

    def test_to_dict(self):
        assert TimeSlot.parse("09:00:00", "10:30").to_dict() == {
            "start_time": "09:00",
            "end_time": "10:30",
        }


@pytest.mark.unit
def test_conflict_free_keeps_input_order():
    candidates = [
        TimeSlot.parse("11:00", "12:00"),
        TimeSlot.parse("09:00", "10:00"),
        TimeSlot.parse("10:00", "11:00"),
        TimeSlot.parse("13:00", "14:00"),
    ]
    booked = [TimeSlot.parse("10:30", "11:30")]

    assert conflict_free(candidates, booked) == [candidates[1], candidates[3]]


@pytest.mark.unit
def test_conflict_free_with_nothing_booked():
    candidates = [TimeSlot.parse("09:00", "10:00")]
    assert conflict_free(candidates, []) == candidates


@pytest.mark.unit
class TestConflictChecker:
    @pytest.fixture
    def creator(self, make_user):
        return make_user(role=UserRole.CREATOR)

    def test_available_slots_against_stored_bookings(self, db, creator, make_booking):
        make_booking(creator=creator, booking_date=DAY, start=time(10, 0), end=time(11, 0))
        candidates = [
            TimeSlot.parse("09:00", "10:00"),
            TimeSlot.parse("10:00", "11:00"),
            TimeSlot.parse("11:00", "12:00"),
        ]

        available = ConflictChecker(db).available_slots(creator.id, DAY, candidates)

        assert available == [candidates[0], candidates[2]]

    def test_cancelled_and_completed_bookings_free_the_slot(self, db, creator, make_booking):
        for status in (BookingStatus.CANCELLED, BookingStatus.COMPLETED):
            make_booking(
                creator=creator, booking_date=DAY, start=time(10, 0), end=time(11, 0), status=status
            )

        checker = ConflictChecker(db)

        assert not checker.has_conflict(creator.id, DAY, TimeSlot.parse("10:00", "11:00"))

    def test_pending_bookings_block(self, db, creator, make_booking):
        make_booking(
            creator=creator,
            booking_date=DAY,
            start=time(10, 0),
            end=time(11, 0),
            status=BookingStatus.PENDING,
        )

        assert ConflictChecker(db).has_conflict(creator.id, DAY, TimeSlot.parse("10:30", "12:00"))

    def test_other_days_and_creators_do_not_block(self, db, creator, make_booking):
        make_booking(creator=creator, booking_date=date(2025, 6, 2), start=time(10, 0), end=time(11, 0))
        make_booking(booking_date=DAY, start=time(10, 0), end=time(11, 0))

        assert ConflictChecker(db).find_conflicts(creator.id, DAY, TimeSlot.parse("10:00", "11:00")) == []

    def test_find_conflicts_reports_booking_details(self, db, creator, make_booking):
        booking = make_booking(creator=creator, booking_date=DAY, start=time(10, 0), end=time(11, 0))

        conflicts = ConflictChecker(db).find_conflicts(creator.id, DAY, TimeSlot.parse("10:30", "11:30"))

        assert conflicts == [
            {
                "booking_id": booking.id,
                "start_time": "10:00:00",
                "end_time": "11:00:00",
                "experience_title": "Sunset Kayak Tour",
                "status": "Confirmed",
            }
        ]

    def test_excluded_booking_is_ignored_when_rescheduling(self, db, creator, make_booking):
        booking = make_booking(creator=creator, booking_date=DAY, start=time(10, 0), end=time(11, 0))

        assert not ConflictChecker(db).has_conflict(
            creator.id, DAY, TimeSlot.parse("10:30", "11:30"), exclude_booking_id=booking.id
        )
