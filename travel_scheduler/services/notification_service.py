# travel_scheduler/services/notification_service.py
"""
Notification feed service.

Creates delivered ``Notification`` rows inside the caller's transaction and,
once the caller has committed, hands them to the push provider. Push
failures are logged and never propagate.
"""

import logging
from typing import Any, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import NotificationType
from ..core.timezone_service import NowProvider, utc_now
from ..models.notification import Notification
from ..repositories import RepositoryFactory
from .base import BaseService
from .notification_provider import NotificationProvider

logger = logging.getLogger(__name__)

DEFAULT_ICON = "notifications-outline"
DEFAULT_ICON_COLOR = "#6B7280"

DEFAULT_ICONS = {
    NotificationType.REMINDER: "time-outline",
    NotificationType.ACTIVITY: "location-outline",
    NotificationType.UPDATE: "sync-outline",
    NotificationType.ALERT: "alert-circle-outline",
    NotificationType.ITINERARY: "map-outline",
}

DEFAULT_ICON_COLORS = {
    NotificationType.REMINDER: "#3B82F6",
    NotificationType.ACTIVITY: "#10B981",
    NotificationType.UPDATE: "#F59E0B",
    NotificationType.ALERT: "#EF4444",
    NotificationType.ITINERARY: "#6366F1",
}


def default_icon(type_: str) -> str:
    try:
        return DEFAULT_ICONS.get(NotificationType(type_), DEFAULT_ICON)
    except ValueError:
        return DEFAULT_ICON


def default_icon_color(type_: str) -> str:
    try:
        return DEFAULT_ICON_COLORS.get(NotificationType(type_), DEFAULT_ICON_COLOR)
    except ValueError:
        return DEFAULT_ICON_COLOR


class NotificationService(BaseService):
    """Writes the notification feed and forwards new entries to push."""

    def __init__(
        self,
        db: Session,
        now_provider: NowProvider = utc_now,
        provider: Optional[NotificationProvider] = None,
        push_enabled: Optional[bool] = None,
    ):
        super().__init__(db, now_provider)
        self.repository = RepositoryFactory.create_notification_repository(db)
        self.provider = provider or NotificationProvider()
        self.push_enabled = (
            settings.push_notifications_enabled if push_enabled is None else push_enabled
        )

    def create_notification(
        self,
        user_id: str,
        type: str,
        title: str,
        description: Optional[str] = None,
        icon: Optional[str] = None,
        icon_color: Optional[str] = None,
        **references: Any,
    ) -> Notification:
        """Add a feed entry to the current transaction (no commit)."""
        type_value = type.value if isinstance(type, NotificationType) else type
        return self.repository.create_notification(
            user_id=user_id,
            type=type_value,
            title=title,
            description=description,
            icon=icon or default_icon(type_value),
            icon_color=icon_color or default_icon_color(type_value),
            created_at=self.now(),
            **references,
        )

    def push(self, notifications: Iterable[Notification]) -> int:
        """Fire-and-forget hand-off to the push provider. Returns how many were accepted."""
        if not self.push_enabled:
            return 0

        delivered = 0
        for notification in notifications:
            try:
                self.provider.send(notification)
                delivered += 1
            except Exception as exc:
                self.logger.warning(
                    f"[NOTIFY] Push delivery failed for notification {notification.id}: {exc}",
                    exc_info=True,
                )
        return delivered

    def get_user_notifications(
        self, user_id: str, limit: int = 20, unread_only: bool = False, type: Optional[str] = None
    ) -> List[Notification]:
        return self.repository.get_user_notifications(
            user_id, limit=limit, unread_only=unread_only, type=type
        )
