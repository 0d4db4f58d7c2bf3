"""
Itinerary sweeps.

``sweep_statuses`` keeps itinerary status in line with the traveler's local
calendar day; ``send_activity_reminders`` tells the traveler when each
activity of an ongoing itinerary starts. Both run per record: one failing
itinerary or item is logged and skipped.
"""

from dataclasses import asdict, dataclass
from datetime import timedelta
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import ItineraryStatus, NotificationType
from ..core.timezone_service import NowProvider, parse_wall_clock, utc_now
from ..models.itinerary import Itinerary, ItineraryItem
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from .base import BaseService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

_STATUS_COPY = {
    ItineraryStatus.ONGOING: ("Trip Started!", 'Your itinerary "{title}" starts today. Have a great trip!'),
    ItineraryStatus.COMPLETED: ("Trip Completed", 'Your itinerary "{title}" has ended. Welcome back!'),
}


@dataclass
class StatusSweepResult:
    checked: int = 0
    to_ongoing: int = 0
    to_completed: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class ReminderResult:
    checked: int = 0
    sent: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class ItineraryStatusService(BaseService):
    def __init__(
        self,
        db: Session,
        now_provider: NowProvider = utc_now,
        notification_service: Optional[NotificationService] = None,
        reminder_lead_minutes: Optional[int] = None,
    ):
        super().__init__(db, now_provider)
        self.repository = RepositoryFactory.create_itinerary_repository(db)
        self.notification_service = notification_service or NotificationService(db, now_provider)
        lead = (
            settings.activity_reminder_lead_minutes
            if reminder_lead_minutes is None
            else reminder_lead_minutes
        )
        self.reminder_lead = timedelta(minutes=lead)

    def _apply_status(self, itinerary: Itinerary, target: ItineraryStatus) -> None:
        title, template = _STATUS_COPY[target]
        with self.transaction():
            itinerary.status = target.value
            itinerary.updated_at = self.now()
            notification = self.notification_service.create_notification(
                user_id=itinerary.traveler_id,
                type=NotificationType.ITINERARY,
                title=title,
                description=template.format(title=itinerary.title or "your trip"),
                itinerary_id=itinerary.id,
            )
        prometheus_metrics.record_itinerary_transition(target.value)
        self.notification_service.push([notification])

    @BaseService.measure_operation("sweep_statuses")
    def sweep_statuses(self) -> StatusSweepResult:
        result = StatusSweepResult()

        for itinerary_id, itinerary in [(i.id, i) for i in self.repository.get_open_itineraries()]:
            result.checked += 1
            try:
                today = itinerary.traveler.user_timezone.today(self.now_provider)
                current = itinerary.itinerary_status
                target = itinerary.status_on(today)
                # Forward only: upcoming -> ongoing -> completed
                if target == current or target == ItineraryStatus.UPCOMING:
                    continue

                self._apply_status(itinerary, target)
                if target == ItineraryStatus.ONGOING:
                    result.to_ongoing += 1
                else:
                    result.to_completed += 1
                self.logger.info(
                    f"[ITINERARY] Itinerary {itinerary_id} {current.value} -> {target.value}"
                )
            except Exception as exc:
                result.failed += 1
                self.logger.error(
                    f"[ITINERARY] Failed to update itinerary {itinerary_id}: {exc}", exc_info=True
                )

        return result

    def reminder_due(self, item: ItineraryItem) -> bool:
        """Due from ``lead`` minutes before the start until the activity ends."""
        tz = item.itinerary.traveler.user_timezone
        remind_at = parse_wall_clock(item.start_wall_clock) - self.reminder_lead
        if not self.time_evaluator.due(remind_at, tz):
            return False
        return not self.time_evaluator.has_passed(item.end_wall_clock, tz)

    @BaseService.measure_operation("send_activity_reminders")
    def send_activity_reminders(self) -> ReminderResult:
        result = ReminderResult()

        for item_id, item in [(i.id, i) for i in self.repository.get_items_awaiting_reminder()]:
            result.checked += 1
            try:
                if not self.reminder_due(item):
                    continue

                itinerary = item.itinerary
                with self.transaction():
                    if not self.repository.mark_reminder_sent(item_id, self.now()):
                        continue
                    notification = self.notification_service.create_notification(
                        user_id=itinerary.traveler_id,
                        type=NotificationType.ACTIVITY,
                        title="Activity Starting",
                        description=(
                            f"{item.display_title or 'Your next activity'} starts at "
                            f"{item.start_time.strftime('%H:%M')}."
                        ),
                        itinerary_id=itinerary.id,
                        itinerary_item_id=item_id,
                        experience_id=item.experience_id,
                    )
                result.sent += 1
                self.notification_service.push([notification])
            except Exception as exc:
                result.failed += 1
                self.logger.error(
                    f"[ITINERARY] Failed to send reminder for item {item_id}: {exc}", exc_info=True
                )

        if result.sent or result.failed:
            self.logger.info(
                f"[ITINERARY] Activity reminders checked={result.checked} sent={result.sent} "
                f"failed={result.failed}"
            )
        return result
