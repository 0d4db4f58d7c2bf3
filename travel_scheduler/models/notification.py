"""
Notification models.

``ScheduledNotification`` rows wait for a wall-clock instant in their owner's
timezone; dispatch turns each one into exactly one ``Notification`` inbox row.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.timezone_service import UserTimezone
from ..database import Base

REFERENCE_COLUMNS = ("itinerary_id", "itinerary_item_id", "booking_id", "experience_id")


class Notification(Base):
    """Delivered in-app notification (the user's feed)."""

    __tablename__ = "notifications"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(64), nullable=True)
    icon_color = Column(String(16), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    itinerary_id = Column(String(26), ForeignKey("itineraries.id", ondelete="SET NULL"), nullable=True)
    itinerary_item_id = Column(
        String(26), ForeignKey("itinerary_items.id", ondelete="SET NULL"), nullable=True
    )
    booking_id = Column(String(26), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    experience_id = Column(String(26), nullable=True)

    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        Index("ix_notifications_user_is_read", "user_id", "is_read"),
        Index("ix_notifications_user_created_at", "user_id", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Notification {self.id}: {self.type} -> {self.user_id} '{self.title}'>"


class ScheduledNotification(Base):
    """
    Pending notification for a future local wall-clock instant.

    ``scheduled_for`` is the wall clock in ``user_timezone``; it is the source
    of truth for due-ness. ``scheduled_for_utc`` is derived and only orders
    the poll batch. Once ``is_sent`` or ``is_cancelled`` is set the row is
    terminal and never changes again.
    """

    __tablename__ = "scheduled_notifications"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(64), nullable=True)
    icon_color = Column(String(16), nullable=True)

    scheduled_for = Column(String(19), nullable=False)
    scheduled_for_utc = Column(DateTime, nullable=False)
    user_timezone = Column(String(64), nullable=False, default="UTC")

    # Failed dispatches back off; null means "as soon as due"
    dispatch_attempts = Column(Integer, nullable=False, default=0)
    next_attempt_at = Column(DateTime, nullable=True)

    is_sent = Column(Boolean, nullable=False, default=False)
    is_cancelled = Column(Boolean, nullable=False, default=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    itinerary_id = Column(String(26), ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=True)
    itinerary_item_id = Column(
        String(26), ForeignKey("itinerary_items.id", ondelete="CASCADE"), nullable=True
    )
    booking_id = Column(String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=True)
    experience_id = Column(String(26), nullable=True)

    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        CheckConstraint("NOT (is_sent AND is_cancelled)", name="ck_scheduled_notifications_terminal"),
        Index(
            "ix_scheduled_notifications_pending",
            "is_sent",
            "is_cancelled",
            "scheduled_for_utc",
        ),
        Index("ix_scheduled_notifications_itinerary", "itinerary_id"),
        Index("ix_scheduled_notifications_booking", "booking_id"),
    )

    @property
    def owner_timezone(self) -> UserTimezone:
        return UserTimezone.from_raw(self.user_timezone)

    @property
    def is_pending(self) -> bool:
        return not self.is_sent and not self.is_cancelled

    def references(self) -> dict[str, Optional[str]]:
        return {column: getattr(self, column) for column in REFERENCE_COLUMNS}

    def __repr__(self) -> str:
        return (
            f"<ScheduledNotification {self.id}: {self.type} for {self.user_id} at "
            f"{self.scheduled_for} {self.user_timezone} sent={self.is_sent} "
            f"cancelled={self.is_cancelled}>"
        )


__all__ = ["Notification", "ScheduledNotification", "REFERENCE_COLUMNS"]
