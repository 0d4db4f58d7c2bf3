"""Repository for itineraries and their items (status sweep and activity reminders)."""

import logging
from typing import List, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.enums import ItineraryStatus
from ..core.exceptions import RepositoryException
from ..models.itinerary import Itinerary, ItineraryItem
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ItineraryRepository(BaseRepository[Itinerary]):
    def __init__(self, db: Session):
        super().__init__(db, Itinerary)

    def get_open_itineraries(self) -> List[Itinerary]:
        """Upcoming and ongoing itineraries with their traveler."""
        try:
            query = (
                self.db.query(Itinerary)
                .options(joinedload(Itinerary.traveler))
                .filter(Itinerary.status != ItineraryStatus.COMPLETED.value)
                .order_by(Itinerary.start_date.asc(), Itinerary.id.asc())
            )
            return cast(List[Itinerary], query.all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading open itineraries: {str(e)}")
            raise RepositoryException(f"Failed to load open itineraries: {str(e)}")

    def get_items_awaiting_reminder(self) -> List[ItineraryItem]:
        """Items of ongoing itineraries that have not had their reminder yet."""
        try:
            query = (
                self.db.query(ItineraryItem)
                .join(Itinerary, ItineraryItem.itinerary_id == Itinerary.id)
                .options(joinedload(ItineraryItem.itinerary).joinedload(Itinerary.traveler))
                .filter(
                    Itinerary.status == ItineraryStatus.ONGOING.value,
                    ItineraryItem.reminder_sent_at.is_(None),
                )
                .order_by(ItineraryItem.day_number.asc(), ItineraryItem.start_time.asc())
            )
            return cast(List[ItineraryItem], query.all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading itinerary items: {str(e)}")
            raise RepositoryException(f"Failed to load itinerary items: {str(e)}")

    def mark_reminder_sent(self, item_id: str, now) -> bool:
        """Stamp the item unless another run already did."""
        try:
            updated = (
                self.db.query(ItineraryItem)
                .filter(ItineraryItem.id == item_id, ItineraryItem.reminder_sent_at.is_(None))
                .update({"reminder_sent_at": now}, synchronize_session="fetch")
            )
            return bool(updated)
        except SQLAlchemyError as e:
            self.logger.error(f"Error stamping reminder for item {item_id}: {str(e)}")
            raise RepositoryException(f"Failed to stamp itinerary reminder: {str(e)}")
