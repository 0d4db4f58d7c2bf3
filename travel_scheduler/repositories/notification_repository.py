"""Repository for delivered in-app notifications."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, cast

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.notification import REFERENCE_COLUMNS, Notification
from .base_repository import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Data access for the notification feed."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, Notification)

    def create_notification(
        self,
        user_id: str,
        type: str,
        title: str,
        description: str | None = None,
        icon: str | None = None,
        icon_color: str | None = None,
        created_at: datetime | None = None,
        **references: Any,
    ) -> Notification:
        unknown = set(references) - set(REFERENCE_COLUMNS)
        if unknown:
            raise RepositoryException(f"Unknown notification references: {sorted(unknown)}")
        try:
            notification = Notification(
                user_id=user_id,
                type=type,
                title=title,
                description=description,
                icon=icon,
                icon_color=icon_color,
                **references,
            )
            if created_at is not None:
                notification.created_at = created_at
            self.db.add(notification)
            self.db.flush()
            return notification
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating notification for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to create notification: {str(e)}")

    def get_user_notifications(
        self,
        user_id: str,
        limit: int = 20,
        unread_only: bool = False,
        type: Optional[str] = None,
    ) -> List[Notification]:
        try:
            query = self.db.query(Notification).filter(Notification.user_id == user_id)
            if unread_only:
                query = query.filter(Notification.is_read.is_(False))
            if type is not None:
                query = query.filter(Notification.type == type)
            query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
            return cast(List[Notification], query.all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading notifications for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load notifications: {str(e)}")

    def get_unread_count(self, user_id: str) -> int:
        count = (
            self.db.query(func.count(Notification.id))
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .scalar()
        )
        return int(count or 0)

    def delete_read_before(self, cutoff: datetime) -> int:
        """Delete read notifications created before ``cutoff``."""
        try:
            deleted = (
                self.db.query(Notification)
                .filter(Notification.is_read.is_(True), Notification.created_at < cutoff)
                .delete(synchronize_session=False)
            )
            return int(deleted or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting read notifications: {str(e)}")
            raise RepositoryException(f"Failed to delete read notifications: {str(e)}")
