# travel_scheduler/services/notification_scheduler.py
"""
Notification Scheduler

Stores notifications for a future local wall-clock instant and delivers
each one exactly once:

- ``poll_and_dispatch`` re-checks every pending row in its own timezone
  (``scheduled_for_utc`` only orders the batch)
- the sent flag and the feed entry commit in one transaction, guarded by a
  conditional claim so a row can never be delivered twice
- one bad row is logged and counted; the rest of the batch still runs
- a failed row backs off exponentially so it cannot starve later rows
"""

from dataclasses import dataclass, field
from datetime import timedelta
import logging
from typing import Dict, Optional, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import NotificationContext, NotificationType
from ..core.exceptions import NotFoundException, ValidationException
from ..core.timezone_service import (
    NowProvider,
    UserTimezone,
    WallClock,
    format_wall_clock,
    parse_wall_clock,
    utc_now,
)
from ..models.notification import Notification, ScheduledNotification
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from .base import BaseService
from .notification_service import NotificationService, default_icon, default_icon_color

logger = logging.getLogger(__name__)

MAX_RETRY_BACKOFF = timedelta(days=1)


@dataclass
class NotificationSpec:
    """What to show, to whom, and which records it belongs to."""

    user_id: str
    type: Union[NotificationType, str]
    title: str
    description: Optional[str] = None
    icon: Optional[str] = None
    icon_color: Optional[str] = None
    itinerary_id: Optional[str] = None
    itinerary_item_id: Optional[str] = None
    booking_id: Optional[str] = None
    experience_id: Optional[str] = None

    @property
    def type_value(self) -> str:
        return self.type.value if isinstance(self.type, NotificationType) else str(self.type)

    def references(self) -> Dict[str, Optional[str]]:
        return {
            "itinerary_id": self.itinerary_id,
            "itinerary_item_id": self.itinerary_item_id,
            "booking_id": self.booking_id,
            "experience_id": self.experience_id,
        }


@dataclass
class DispatchResult:
    checked: int = 0
    sent: int = 0
    failed: int = 0
    # Claims lost to a concurrent cancel or dispatcher; not failures
    skipped: int = 0
    failed_ids: list = field(default_factory=list)

    def to_dict(self) -> Dict[str, int]:
        return {"checked": self.checked, "sent": self.sent, "failed": self.failed}


class NotificationScheduler(BaseService):
    def __init__(
        self,
        db: Session,
        now_provider: NowProvider = utc_now,
        notification_service: Optional[NotificationService] = None,
        batch_size: Optional[int] = None,
        retry_backoff_seconds: Optional[int] = None,
    ):
        super().__init__(db, now_provider)
        self.repository = RepositoryFactory.create_scheduled_notification_repository(db)
        self.notification_repository = RepositoryFactory.create_notification_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.notification_service = notification_service or NotificationService(db, now_provider)
        self.batch_size = batch_size or settings.dispatch_batch_size
        self.retry_backoff = timedelta(
            seconds=retry_backoff_seconds or settings.dispatch_retry_backoff_seconds
        )

    def _resolve_timezone(
        self, user_id: str, timezone: Union[UserTimezone, str, None]
    ) -> UserTimezone:
        if isinstance(timezone, UserTimezone):
            return timezone
        if timezone is not None:
            return UserTimezone.from_raw(timezone)
        stored = self.user_repository.get_timezone(user_id)
        if stored is None:
            raise NotFoundException(
                f"User {user_id} not found", code="USER_NOT_FOUND", details={"user_id": user_id}
            )
        return stored

    @BaseService.measure_operation("enqueue")
    def enqueue(
        self,
        spec: NotificationSpec,
        scheduled_local: WallClock,
        timezone: Union[UserTimezone, str, None] = None,
    ) -> str:
        """
        Store a pending notification for ``scheduled_local`` in ``timezone``.

        ``timezone`` defaults to the owner's stored timezone. Unknown ids fall
        back to UTC; an unparseable wall clock raises ValidationException.

        Returns:
            The scheduled notification id
        """
        naive = parse_wall_clock(scheduled_local)
        tz = self._resolve_timezone(spec.user_id, timezone)
        instant = self.time_evaluator.to_instant(naive, tz)

        with self.transaction():
            row = self.repository.create(
                user_id=spec.user_id,
                type=spec.type_value,
                title=spec.title,
                description=spec.description,
                icon=spec.icon or default_icon(spec.type_value),
                icon_color=spec.icon_color or default_icon_color(spec.type_value),
                scheduled_for=format_wall_clock(naive),
                scheduled_for_utc=instant.replace(tzinfo=None),
                user_timezone=tz.name,
                created_at=self.now(),
                **spec.references(),
            )
            scheduled_id = row.id

        prometheus_metrics.record_scheduled_notification("enqueued")
        self.logger.info(
            f"[NOTIFY] Scheduled {spec.type_value} notification {scheduled_id} for user "
            f"{spec.user_id} at {format_wall_clock(naive)} {tz.name}"
        )
        return scheduled_id

    @BaseService.measure_operation("cancel_for_context")
    def cancel_for_context(
        self,
        context_id: str,
        context: NotificationContext = NotificationContext.ITINERARY,
    ) -> int:
        """Cancel every pending row for the context. Sent rows are left alone."""
        with self.transaction():
            cancelled = self.repository.cancel_pending_for(context, context_id, self.now())

        prometheus_metrics.record_scheduled_notification("cancelled", cancelled)
        self.logger.info(
            f"[NOTIFY] Cancelled {cancelled} scheduled notifications for {context.value} {context_id}"
        )
        return cancelled

    def _dispatch_row(self, row: ScheduledNotification) -> Optional[Notification]:
        """Claim and deliver one due row. Returns None when the claim was lost."""
        with self.transaction():
            if not self.repository.claim_for_dispatch(row.id, self.now()):
                return None
            return self.notification_service.create_notification(
                user_id=row.user_id,
                type=row.type,
                title=row.title,
                description=row.description,
                icon=row.icon,
                icon_color=row.icon_color,
                **row.references(),
            )

    def _defer_after_failure(self, row_id: str) -> None:
        """Record the failure and push the row back by an exponentially growing delay."""
        try:
            with self.transaction():
                row = self.repository.get_by_id(row_id, load_relationships=False)
                if row is None or not row.is_pending:
                    return
                attempts = (row.dispatch_attempts or 0) + 1
                delay = min(self.retry_backoff * (2 ** min(attempts - 1, 16)), MAX_RETRY_BACKOFF)
                next_attempt_at = self.now() + delay
                self.repository.record_failed_attempt(row_id, attempts, next_attempt_at)
        except Exception as exc:
            self.logger.error(f"[NOTIFY] Could not defer scheduled notification {row_id}: {exc}")
            return

        prometheus_metrics.record_scheduled_notification("deferred")
        self.logger.warning(
            f"[NOTIFY] Scheduled notification {row_id} failed {attempts} time(s); "
            f"next attempt at {next_attempt_at.isoformat()}"
        )

    @BaseService.measure_operation("poll_and_dispatch")
    def poll_and_dispatch(self) -> DispatchResult:
        result = DispatchResult()
        batch = [(row.id, row) for row in self.repository.get_pending_batch(self.batch_size, self.now())]

        for row_id, row in batch:
            result.checked += 1
            try:
                if not self.time_evaluator.due(row.scheduled_for, row.owner_timezone):
                    continue

                notification = self._dispatch_row(row)
                if notification is None:
                    result.skipped += 1
                    self.logger.info(f"[NOTIFY] Scheduled notification {row_id} no longer pending")
                    continue

                result.sent += 1
                self.notification_service.push([notification])
            except Exception as exc:
                result.failed += 1
                result.failed_ids.append(row_id)
                self.logger.error(
                    f"[NOTIFY] Failed to dispatch scheduled notification {row_id}: {exc}",
                    exc_info=True,
                )
                self._defer_after_failure(row_id)

        prometheus_metrics.record_scheduled_notification("sent", result.sent)
        prometheus_metrics.record_scheduled_notification("failed", result.failed)
        prometheus_metrics.record_scheduled_notification("skipped", result.skipped)
        if result.sent or result.failed:
            self.logger.info(
                f"[NOTIFY] Dispatch run checked={result.checked} sent={result.sent} "
                f"failed={result.failed} skipped={result.skipped}"
            )
        return result

    @BaseService.measure_operation("cleanup")
    def cleanup(self, retention_days: Optional[int] = None) -> int:
        """
        Delete terminal scheduled rows and read notifications older than the window.

        Returns:
            Total rows removed
        """
        days = retention_days if retention_days is not None else settings.notification_retention_days
        if days < 0:
            raise ValidationException(
                "retention_days must not be negative", details={"retention_days": days}
            )
        cutoff = self.now() - timedelta(days=days)

        with self.transaction():
            scheduled_removed = self.repository.delete_terminal_before(cutoff)
            read_removed = self.notification_repository.delete_read_before(cutoff)

        total = scheduled_removed + read_removed
        self.logger.info(
            f"[NOTIFY] Cleanup removed {scheduled_removed} scheduled and {read_removed} read "
            f"notifications older than {days} days"
        )
        return total
