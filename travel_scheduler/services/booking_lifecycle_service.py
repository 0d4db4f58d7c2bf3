# travel_scheduler/services/booking_lifecycle_service.py
"""
Booking Lifecycle Manager

Advances bookings along Confirmed -> Ongoing -> Completed by comparing the
booking window, read in the creator's timezone, with the clock:

- Confirmed -> Ongoing when the window has started and not yet ended
- Confirmed -> Completed when the window has already ended (missed polls)
- Ongoing -> Completed when the window has ended

Each status change and the notifications it emits commit together. While a
traveler's attendance is still Waiting, the creator is re-prompted every
``attendance_reprompt_minutes``.
"""

from dataclasses import asdict, dataclass
from datetime import timedelta
import logging
from typing import Dict, List, NamedTuple, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import AttendanceStatus, BookingStatus, NotificationType
from ..core.timezone_service import NowProvider, utc_now
from ..models.booking import Booking
from ..models.notification import Notification
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from .base import BaseService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


class BookingMessage(NamedTuple):
    type: NotificationType
    title: str
    template: str
    icon: str
    icon_color: str


STARTED_CREATOR = BookingMessage(
    NotificationType.UPDATE,
    "Experience Started!",
    'Your experience "{title}" is now ongoing.',
    "play-circle",
    "#10B981",
)
STARTED_TRAVELER = BookingMessage(
    NotificationType.UPDATE,
    "Experience Started!",
    'Your experience "{title}" has begun. Enjoy!',
    "play-circle",
    "#10B981",
)
ATTENDANCE_PROMPT = BookingMessage(
    NotificationType.ATTENDANCE_CONFIRMATION,
    "Confirm Traveler Attendance",
    'Did the traveler show up for "{title}"?',
    "help-circle",
    "#F59E0B",
)
COMPLETED_CREATOR = BookingMessage(
    NotificationType.UPDATE,
    "Experience Fulfilled",
    'The booking for "{title}" is now marked as completed.',
    "checkmark-circle",
    "#3B82F6",
)
COMPLETED_TRAVELER = BookingMessage(
    NotificationType.UPDATE,
    "Experience Completed!",
    'Hope you enjoyed "{title}"! Please consider leaving a review.',
    "checkmark-circle",
    "#3B82F6",
)
ATTENDANCE_REPROMPT = BookingMessage(
    NotificationType.ATTENDANCE_CONFIRMATION,
    "Still waiting for traveler?",
    '{minutes} minutes have passed. Did the traveler show up for "{title}"?',
    "help-circle",
    "#F59E0B",
)


@dataclass
class LifecycleResult:
    checked: int = 0
    to_ongoing: int = 0
    to_completed: int = 0
    reprompted: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class BookingLifecycleManager(BaseService):
    def __init__(
        self,
        db: Session,
        now_provider: NowProvider = utc_now,
        notification_service: Optional[NotificationService] = None,
        reprompt_minutes: Optional[int] = None,
    ):
        super().__init__(db, now_provider)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.notification_service = notification_service or NotificationService(db, now_provider)
        self.reprompt_interval = timedelta(
            minutes=reprompt_minutes or settings.attendance_reprompt_minutes
        )

    def target_status(self, booking: Booking) -> Optional[BookingStatus]:
        """The status the clock implies for ``booking``, or None to leave it alone."""
        tz = booking.creator.user_timezone
        current = booking.booking_status

        if current == BookingStatus.CONFIRMED:
            if self.time_evaluator.has_passed(booking.end_wall_clock, tz):
                return BookingStatus.COMPLETED
            if self.time_evaluator.due(booking.start_wall_clock, tz):
                return BookingStatus.ONGOING
        elif current == BookingStatus.ONGOING:
            if self.time_evaluator.has_passed(booking.end_wall_clock, tz):
                return BookingStatus.COMPLETED
        return None

    def _notify(self, booking: Booking, user_id: str, message: BookingMessage, **fmt: object) -> Notification:
        title = booking.experience_title or "your experience"
        return self.notification_service.create_notification(
            user_id=user_id,
            type=message.type,
            title=message.title,
            description=message.template.format(title=title, **fmt),
            icon=message.icon,
            icon_color=message.icon_color,
            booking_id=booking.id,
            experience_id=booking.experience_id,
        )

    def _transition(self, booking: Booking, target: BookingStatus) -> List[Notification]:
        now = self.now()
        previous = booking.booking_status

        with self.transaction():
            booking.advance_to(target, now)
            if target == BookingStatus.ONGOING:
                created = [
                    self._notify(booking, booking.creator_id, STARTED_CREATOR),
                    self._notify(booking, booking.traveler_id, STARTED_TRAVELER),
                    self._notify(booking, booking.creator_id, ATTENDANCE_PROMPT),
                ]
            else:
                created = [
                    self._notify(booking, booking.creator_id, COMPLETED_CREATOR),
                    self._notify(booking, booking.traveler_id, COMPLETED_TRAVELER),
                ]

        prometheus_metrics.record_booking_transition(previous.value, target.value)
        self.logger.info(f"[BOOKINGS] Booking {booking.id} {previous.value} -> {target.value}")
        return created

    def reprompt_due(self, booking: Booking) -> bool:
        if booking.attendance != AttendanceStatus.WAITING:
            return False
        elapsed = self.time_evaluator.elapsed_since(booking.last_attendance_prompt)
        return elapsed is None or elapsed >= self.reprompt_interval

    def _reprompt(self, booking: Booking) -> Notification:
        minutes = int(self.reprompt_interval.total_seconds() // 60)
        with self.transaction():
            notification = self._notify(
                booking, booking.creator_id, ATTENDANCE_REPROMPT, minutes=minutes
            )
            booking.record_attendance_prompt(self.now())

        prometheus_metrics.record_attendance_reprompt()
        self.logger.info(f"[BOOKINGS] Re-prompted creator {booking.creator_id} for booking {booking.id}")
        return notification

    @BaseService.measure_operation("poll_and_transition")
    def poll_and_transition(self) -> LifecycleResult:
        result = LifecycleResult()

        for booking_id, booking in [(b.id, b) for b in self.repository.get_lifecycle_candidates()]:
            result.checked += 1
            try:
                target = self.target_status(booking)
                if target is None:
                    continue
                created = self._transition(booking, target)
                if target == BookingStatus.ONGOING:
                    result.to_ongoing += 1
                else:
                    result.to_completed += 1
                self.notification_service.push(created)
            except Exception as exc:
                result.failed += 1
                self.logger.error(
                    f"[BOOKINGS] Failed to update booking {booking_id}: {exc}", exc_info=True
                )

        self._escalate(result)

        if result.to_ongoing or result.to_completed or result.reprompted or result.failed:
            self.logger.info(
                f"[BOOKINGS] Lifecycle run checked={result.checked} ongoing={result.to_ongoing} "
                f"completed={result.to_completed} reprompted={result.reprompted} failed={result.failed}"
            )
        return result

    def _escalate(self, result: LifecycleResult) -> None:
        """Re-prompt creators of still-Ongoing bookings whose traveler is Waiting."""
        for booking_id, booking in [(b.id, b) for b in self.repository.get_awaiting_attendance()]:
            try:
                if not self.reprompt_due(booking):
                    continue
                notification = self._reprompt(booking)
                result.reprompted += 1
                self.notification_service.push([notification])
            except Exception as exc:
                result.failed += 1
                self.logger.error(
                    f"[BOOKINGS] Failed to re-prompt attendance for booking {booking_id}: {exc}",
                    exc_info=True,
                )
