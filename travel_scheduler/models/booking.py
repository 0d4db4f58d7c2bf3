# travel_scheduler/models/booking.py
"""
Booking model.

A booking stores its own date and wall-clock window. The window is
interpreted in the creator's timezone, since the creator's availability
defines it.
"""

from datetime import date, datetime, time, timedelta
import logging
from typing import Any, Optional, cast

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, String, Time
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import AttendanceStatus, BookingStatus
from ..core.exceptions import BusinessRuleException
from ..core.timezone_service import combine_wall_clock
from ..database import Base

logger = logging.getLogger(__name__)

# Forward-only moves the scheduler may make
_ALLOWED_TRANSITIONS = {
    BookingStatus.CONFIRMED: {BookingStatus.ONGOING, BookingStatus.COMPLETED},
    BookingStatus.ONGOING: {BookingStatus.COMPLETED},
}


class Booking(Base):
    """Booked experience between a traveler and the experience creator."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    creator_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    traveler_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    experience_id = Column(String(26), nullable=True)
    # Snapshot for notification copy
    experience_title = Column(String(255), nullable=False, default="")

    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value, index=True)
    traveler_attendance = Column(String(20), nullable=True)
    last_attendance_prompt = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    creator = relationship("User", foreign_keys=[creator_id])
    traveler = relationship("User", foreign_keys=[traveler_id])

    __table_args__ = (
        CheckConstraint(
            "status IN ('Pending', 'Confirmed', 'Ongoing', 'Completed', 'Cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "traveler_attendance IS NULL OR traveler_attendance IN ('Waiting', 'Confirmed', 'NoShow')",
            name="ck_bookings_traveler_attendance",
        ),
        Index("ix_bookings_creator_date", "creator_id", "booking_date"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.CONFIRMED.value

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: creator={self.creator_id}, traveler={self.traveler_id}, "
            f"date={self.booking_date}, time={self.start_time}-{self.end_time}, "
            f"status={self.status}>"
        )

    @property
    def booking_status(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def attendance(self) -> Optional[AttendanceStatus]:
        return AttendanceStatus(self.traveler_attendance) if self.traveler_attendance else None

    @property
    def start_wall_clock(self) -> str:
        return combine_wall_clock(cast(date, self.booking_date), cast(time, self.start_time))

    @property
    def end_wall_clock(self) -> str:
        """End of the window; an end at or before the start (e.g. 00:00) is the next day."""
        end_day = cast(date, self.booking_date)
        if cast(time, self.end_time) <= cast(time, self.start_time):
            end_day += timedelta(days=1)
        return combine_wall_clock(end_day, cast(time, self.end_time))

    def advance_to(self, new_status: BookingStatus, now: datetime) -> None:
        """Move forward along Confirmed -> Ongoing -> Completed; never backwards."""
        current = self.booking_status
        if new_status not in _ALLOWED_TRANSITIONS.get(current, set()):
            raise BusinessRuleException(
                f"Booking {self.id} cannot move from {current.value} to {new_status.value}",
                code="INVALID_STATUS_TRANSITION",
                details={"from": current.value, "to": new_status.value},
            )
        self.status = new_status.value
        self.updated_at = now
        if new_status == BookingStatus.ONGOING:
            self.traveler_attendance = AttendanceStatus.WAITING.value
            self.last_attendance_prompt = now

    def record_attendance_prompt(self, now: datetime) -> None:
        self.last_attendance_prompt = now
