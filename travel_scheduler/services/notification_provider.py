"""
Push provider shim for delivered notifications.

The real transport lives outside this service. ``send`` logs the payload it
would hand over; callers treat every failure here as non-fatal.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
import json
import logging
from typing import Any, Dict, Optional

from ..models.notification import Notification

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PushPayload:
    notification_id: str
    user_id: str
    type: str
    title: str
    body: Optional[str]
    icon: Optional[str]
    icon_color: Optional[str]

    @classmethod
    def from_notification(cls, notification: Notification) -> "PushPayload":
        return cls(
            notification_id=notification.id,
            user_id=notification.user_id,
            type=notification.type,
            title=notification.title,
            body=notification.description,
            icon=notification.icon,
            icon_color=notification.icon_color,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class NotificationProvider:
    """
    Lightweight provider shim.

    Usage:
        provider = NotificationProvider()
        provider.send(notification)
    """

    def send(self, notification: Notification) -> PushPayload:
        payload = PushPayload.from_notification(notification)
        logger.info(
            "Dispatching push notification %s user=%s payload=%s",
            payload.notification_id,
            payload.user_id,
            json.dumps(payload.to_dict(), sort_keys=True)[:500],
        )
        return payload
