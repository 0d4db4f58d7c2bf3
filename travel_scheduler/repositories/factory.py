# travel_scheduler/repositories/factory.py
"""
Repository Factory

Centralized creation of repository instances so services never construct
repositories directly (and tests can patch one place).
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .conflict_checker_repository import ConflictCheckerRepository
    from .itinerary_repository import ItineraryRepository
    from .notification_repository import NotificationRepository
    from .scheduled_notification_repository import ScheduledNotificationRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_conflict_checker_repository(db: Session) -> "ConflictCheckerRepository":
        """Create repository for conflict checking queries."""
        from .conflict_checker_repository import ConflictCheckerRepository

        return ConflictCheckerRepository(db)

    @staticmethod
    def create_notification_repository(db: Session) -> "NotificationRepository":
        from .notification_repository import NotificationRepository

        return NotificationRepository(db)

    @staticmethod
    def create_scheduled_notification_repository(db: Session) -> "ScheduledNotificationRepository":
        from .scheduled_notification_repository import ScheduledNotificationRepository

        return ScheduledNotificationRepository(db)

    @staticmethod
    def create_itinerary_repository(db: Session) -> "ItineraryRepository":
        from .itinerary_repository import ItineraryRepository

        return ItineraryRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        from .user_repository import UserRepository

        return UserRepository(db)
