# travel_scheduler/core/enums.py
"""
Closed value sets used across the scheduler.

Stored as plain strings in the database; the ``str`` mixin keeps
comparisons against raw column values working.
"""

from enum import Enum


class BookingStatus(str, Enum):
    """Booking lifecycle. The scheduler only moves Confirmed -> Ongoing -> Completed."""

    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    ONGOING = "Ongoing"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @classmethod
    def lifecycle_managed(cls) -> tuple["BookingStatus", ...]:
        return (cls.CONFIRMED, cls.ONGOING)

    @classmethod
    def blocking(cls) -> tuple["BookingStatus", ...]:
        """Statuses whose time window is unavailable to new bookings."""
        return (cls.PENDING, cls.CONFIRMED, cls.ONGOING)


class AttendanceStatus(str, Enum):
    WAITING = "Waiting"
    CONFIRMED = "Confirmed"
    NO_SHOW = "NoShow"


class NotificationType(str, Enum):
    REMINDER = "reminder"
    ACTIVITY = "activity"
    UPDATE = "update"
    ALERT = "alert"
    ITINERARY = "itinerary"
    ATTENDANCE_CONFIRMATION = "attendance_confirmation"


class ItineraryStatus(str, Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class NotificationContext(str, Enum):
    """Reference columns a scheduled notification can be cancelled by."""

    ITINERARY = "itinerary"
    BOOKING = "booking"
    EXPERIENCE = "experience"

    @property
    def column(self) -> str:
        return f"{self.value}_id"


class UserRole(str, Enum):
    TRAVELER = "Traveler"
    CREATOR = "Creator"
