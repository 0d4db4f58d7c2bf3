# travel_scheduler/repositories/booking_repository.py
"""
Booking Repository

Data access for the lifecycle job: the bookings it may advance, loaded with
both parties so creator timezone and notification recipients are at hand.
"""

import logging
from typing import List, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.enums import AttendanceStatus, BookingStatus
from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Booking.creator), joinedload(Booking.traveler))

    def get_lifecycle_candidates(self) -> List[Booking]:
        """Confirmed and Ongoing bookings, oldest window first."""
        try:
            query = (
                self._apply_eager_loading(self.db.query(Booking))
                .filter(
                    Booking.status.in_([status.value for status in BookingStatus.lifecycle_managed()])
                )
                .order_by(Booking.booking_date.asc(), Booking.start_time.asc(), Booking.id.asc())
            )
            return cast(List[Booking], query.all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading lifecycle bookings: {str(e)}")
            raise RepositoryException(f"Failed to load lifecycle bookings: {str(e)}")

    def get_awaiting_attendance(self) -> List[Booking]:
        """Ongoing bookings whose traveler attendance is still unresolved."""
        try:
            query = self._apply_eager_loading(self.db.query(Booking)).filter(
                Booking.status == BookingStatus.ONGOING.value,
                Booking.traveler_attendance == AttendanceStatus.WAITING.value,
            )
            return cast(List[Booking], query.all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading bookings awaiting attendance: {str(e)}")
            raise RepositoryException(f"Failed to load bookings awaiting attendance: {str(e)}")
