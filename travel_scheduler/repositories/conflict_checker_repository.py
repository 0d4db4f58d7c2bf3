# travel_scheduler/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository

Loads the bookings that occupy a creator's calendar on a given date. All
conflict checks run on the booking's own date and time fields.
"""

from datetime import date
import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus
from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_bookings_for_conflict_check(
        self, creator_id: str, check_date: date, exclude_booking_id: Optional[str] = None
    ) -> List[Booking]:
        """
        Bookings that block time on ``check_date`` for ``creator_id``.

        Args:
            creator_id: The creator whose calendar is checked
            check_date: The date to check for conflicts
            exclude_booking_id: Optional booking ID to exclude (rescheduling)

        Returns:
            Pending, Confirmed and Ongoing bookings ordered by start time
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.creator_id == creator_id,
                Booking.booking_date == check_date,
                Booking.status.in_([status.value for status in BookingStatus.blocking()]),
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return cast(List[Booking], query.order_by(Booking.start_time.asc()).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get bookings for conflict check: {str(e)}")
