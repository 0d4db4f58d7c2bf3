# travel_scheduler/services/conflict_checker.py
"""
Conflict Checker Service

Intervals are half-open ``[start, end)``: two intervals overlap iff
``s1 < e2 and e1 > s2``, so back-to-back slots never conflict.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy.orm import Session

from ..core.exceptions import ValidationException
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from .base import BaseService

logger = logging.getLogger(__name__)

TimeLike = Union[str, time]


def _parse_time(value: TimeLike) -> time:
    if isinstance(value, time):
        return value
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except (AttributeError, ValueError):
            continue
    raise ValidationException(
        f"Invalid time '{value}', expected HH:MM",
        code="INVALID_TIME_FORMAT",
        details={"value": str(value)},
    )


@dataclass(frozen=True, order=True)
class TimeSlot:
    """Half-open ``[start, end)`` time window within one day."""

    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValidationException(
                "End time must be after start time",
                code="INVALID_TIME_RANGE",
                details={"start_time": str(self.start), "end_time": str(self.end)},
            )

    @classmethod
    def parse(cls, start: TimeLike, end: TimeLike) -> "TimeSlot":
        return cls(_parse_time(start), _parse_time(end))

    def overlaps(self, other: "TimeSlot") -> bool:
        return overlaps(self, other)

    def to_dict(self) -> Dict[str, str]:
        return {"start_time": self.start.strftime("%H:%M"), "end_time": self.end.strftime("%H:%M")}


def overlaps(first: TimeSlot, second: TimeSlot) -> bool:
    return first.start < second.end and first.end > second.start


def conflict_free(
    candidate_slots: Iterable[TimeSlot], booked_intervals: Iterable[TimeSlot]
) -> List[TimeSlot]:
    """Keep the candidates that overlap none of the booked intervals, in input order."""
    booked = list(booked_intervals)
    return [slot for slot in candidate_slots if not any(overlaps(slot, b) for b in booked)]


class ConflictChecker(BaseService):
    """
    Conflict detection against a creator's stored bookings.

    Works on the booking's own date/start/end fields; Pending, Confirmed and
    Ongoing bookings block time.
    """

    def __init__(self, db: Session, repository: Optional[ConflictCheckerRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    def booked_intervals(
        self, creator_id: str, check_date: date, exclude_booking_id: Optional[str] = None
    ) -> List[TimeSlot]:
        bookings = self.repository.get_bookings_for_conflict_check(
            creator_id, check_date, exclude_booking_id
        )
        return [TimeSlot(booking.start_time, booking.end_time) for booking in bookings]

    @BaseService.measure_operation("available_slots")
    def available_slots(
        self,
        creator_id: str,
        check_date: date,
        candidates: Iterable[TimeSlot],
        exclude_booking_id: Optional[str] = None,
    ) -> List[TimeSlot]:
        booked = self.booked_intervals(creator_id, check_date, exclude_booking_id)
        return conflict_free(candidates, booked)

    @BaseService.measure_operation("find_conflicts")
    def find_conflicts(
        self,
        creator_id: str,
        check_date: date,
        slot: TimeSlot,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Bookings that overlap ``slot`` on ``check_date``.

        Returns:
            List of conflicts with booking details
        """
        bookings = self.repository.get_bookings_for_conflict_check(
            creator_id, check_date, exclude_booking_id
        )

        conflicts = []
        for booking in bookings:
            if overlaps(slot, TimeSlot(booking.start_time, booking.end_time)):
                conflicts.append(
                    {
                        "booking_id": booking.id,
                        "start_time": str(booking.start_time),
                        "end_time": str(booking.end_time),
                        "experience_title": booking.experience_title,
                        "status": booking.status,
                    }
                )

        if conflicts:
            self.logger.warning(
                f"Found {len(conflicts)} booking conflicts for {creator_id} "
                f"on {check_date} between {slot.start}-{slot.end}"
            )

        return conflicts

    def has_conflict(
        self,
        creator_id: str,
        check_date: date,
        slot: TimeSlot,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        return bool(self.find_conflicts(creator_id, check_date, slot, exclude_booking_id))
