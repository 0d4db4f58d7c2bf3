from unittest.mock import MagicMock

import pytest

from travel_scheduler.core.enums import NotificationType
from travel_scheduler.core.exceptions import RepositoryException
from travel_scheduler.services.notification_provider import NotificationProvider, PushPayload
from travel_scheduler.services.notification_service import (
    NotificationService,
    default_icon,
    default_icon_color,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "type_,icon,color",
    [
        ("reminder", "time-outline", "#3B82F6"),
        ("activity", "location-outline", "#10B981"),
        ("update", "sync-outline", "#F59E0B"),
        ("alert", "alert-circle-outline", "#EF4444"),
        ("itinerary", "map-outline", "#6366F1"),
        ("attendance_confirmation", "notifications-outline", "#6B7280"),
        ("something-new", "notifications-outline", "#6B7280"),
    ],
)
def test_default_icons(type_, icon, color):
    assert default_icon(type_) == icon
    assert default_icon_color(type_) == color


@pytest.mark.unit
class TestNotificationService:
    def test_create_does_not_commit(self, db, clock, make_user):
        user = make_user()
        service = NotificationService(db, clock)

        notification = service.create_notification(
            user_id=user.id, type=NotificationType.UPDATE, title="Heads up"
        )
        assert notification.icon == "sync-outline"
        db.rollback()

        assert service.get_user_notifications(user.id) == []

    def test_unknown_reference_rejected(self, db, clock, make_user):
        service = NotificationService(db, clock)

        with pytest.raises(RepositoryException):
            service.create_notification(
                user_id=make_user().id, type="update", title="x", hotel_id="123"
            )

    def test_feed_filters(self, db, clock, make_user):
        user = make_user()
        service = NotificationService(db, clock)
        service.create_notification(user_id=user.id, type="update", title="one")
        read = service.create_notification(user_id=user.id, type="alert", title="two")
        read.is_read = True
        db.commit()

        assert len(service.get_user_notifications(user.id)) == 2
        assert [n.title for n in service.get_user_notifications(user.id, unread_only=True)] == ["one"]
        assert [n.title for n in service.get_user_notifications(user.id, type="alert")] == ["two"]
        assert service.repository.get_unread_count(user.id) == 1

    def test_push_disabled_is_a_no_op(self, db, clock):
        provider = MagicMock()
        service = NotificationService(db, clock, provider=provider, push_enabled=False)

        assert service.push([MagicMock()]) == 0
        provider.send.assert_not_called()

    def test_push_failures_are_swallowed(self, db, clock):
        provider = MagicMock()
        provider.send.side_effect = [RuntimeError("gateway"), None]
        service = NotificationService(db, clock, provider=provider, push_enabled=True)

        assert service.push([MagicMock(id="a"), MagicMock(id="b")]) == 1


@pytest.mark.unit
def test_provider_builds_payload(db, clock, make_user):
    user = make_user()
    notification = NotificationService(db, clock).create_notification(
        user_id=user.id, type="reminder", title="Boarding soon", description="Gate 12"
    )

    payload = NotificationProvider().send(notification)

    assert isinstance(payload, PushPayload)
    assert payload.to_dict()["body"] == "Gate 12"
    assert payload.user_id == user.id
