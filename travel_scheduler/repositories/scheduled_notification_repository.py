# travel_scheduler/repositories/scheduled_notification_repository.py
"""
Repository for pending (scheduled) notifications.

Terminal rows (sent or cancelled) are never updated here: every write that
flips a flag filters on ``is_sent = false AND is_cancelled = false``.
"""

from datetime import datetime
from typing import List, cast

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import NotificationContext
from ..core.exceptions import RepositoryException
from ..core.timezone_service import ensure_utc
from ..models.notification import ScheduledNotification
from .base_repository import BaseRepository


class ScheduledNotificationRepository(BaseRepository[ScheduledNotification]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, ScheduledNotification)

    def _pending(self):
        return self.db.query(ScheduledNotification).filter(
            ScheduledNotification.is_sent.is_(False),
            ScheduledNotification.is_cancelled.is_(False),
        )

    def get_pending_batch(self, limit: int, now: datetime) -> List[ScheduledNotification]:
        """
        Oldest pending rows first; due-ness is decided per row by the caller.

        Rows backing off after a failed dispatch are left out until their
        ``next_attempt_at`` so they cannot hold the head of every batch.
        """
        now_utc = ensure_utc(now).replace(tzinfo=None)
        try:
            rows = (
                self._pending()
                .filter(
                    or_(
                        ScheduledNotification.next_attempt_at.is_(None),
                        ScheduledNotification.next_attempt_at <= now_utc,
                    )
                )
                .order_by(ScheduledNotification.scheduled_for_utc.asc(), ScheduledNotification.id.asc())
                .limit(limit)
                .all()
            )
            return cast(List[ScheduledNotification], rows)
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading pending scheduled notifications: {str(e)}")
            raise RepositoryException(f"Failed to load pending notifications: {str(e)}")

    def claim_for_dispatch(self, scheduled_id: str, now: datetime) -> bool:
        """
        Mark one pending row as sent.

        Returns False when the row was already sent or cancelled, so two
        dispatchers (or a racing cancel) can never both win it.
        """
        try:
            updated = (
                self._pending()
                .filter(ScheduledNotification.id == scheduled_id)
                .update({"is_sent": True, "sent_at": now}, synchronize_session="fetch")
            )
            return bool(updated)
        except SQLAlchemyError as e:
            self.logger.error(f"Error claiming scheduled notification {scheduled_id}: {str(e)}")
            raise RepositoryException(f"Failed to claim scheduled notification: {str(e)}")

    def record_failed_attempt(
        self, scheduled_id: str, attempts: int, next_attempt_at: datetime
    ) -> bool:
        """Push a still-pending row back; terminal rows are never touched."""
        try:
            updated = (
                self._pending()
                .filter(ScheduledNotification.id == scheduled_id)
                .update(
                    {
                        "dispatch_attempts": attempts,
                        "next_attempt_at": ensure_utc(next_attempt_at).replace(tzinfo=None),
                    },
                    synchronize_session="fetch",
                )
            )
            return bool(updated)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deferring scheduled notification {scheduled_id}: {str(e)}")
            raise RepositoryException(f"Failed to defer scheduled notification: {str(e)}")

    def cancel_pending_for(
        self, context: NotificationContext, context_id: str, now: datetime
    ) -> int:
        column = getattr(ScheduledNotification, context.column)
        try:
            updated = (
                self._pending()
                .filter(column == context_id)
                .update({"is_cancelled": True, "cancelled_at": now}, synchronize_session="fetch")
            )
            return int(updated or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error cancelling notifications for {context.value} {context_id}: {str(e)}")
            raise RepositoryException(f"Failed to cancel scheduled notifications: {str(e)}")

    def count_pending_for(self, context: NotificationContext, context_id: str) -> int:
        column = getattr(ScheduledNotification, context.column)
        return self._pending().filter(column == context_id).count()

    def delete_terminal_before(self, cutoff: datetime) -> int:
        """Delete sent/cancelled rows whose terminal timestamp is older than ``cutoff``."""
        try:
            deleted = (
                self.db.query(ScheduledNotification)
                .filter(
                    or_(
                        and_(
                            ScheduledNotification.is_sent.is_(True),
                            ScheduledNotification.sent_at < cutoff,
                        ),
                        and_(
                            ScheduledNotification.is_cancelled.is_(True),
                            ScheduledNotification.cancelled_at < cutoff,
                        ),
                    )
                )
                .delete(synchronize_session=False)
            )
            return int(deleted or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting terminal scheduled notifications: {str(e)}")
            raise RepositoryException(f"Failed to delete scheduled notifications: {str(e)}")
