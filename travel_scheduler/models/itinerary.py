# travel_scheduler/models/itinerary.py
"""
Itinerary and itinerary item models.

Dates and times are wall-clock values in the traveler's timezone. An item's
calendar day is ``start_date + (day_number - 1)``.
"""

from datetime import date, time, timedelta
from typing import Optional, cast

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String, Text, Time
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import ItineraryStatus
from ..core.timezone_service import combine_wall_clock
from ..database import Base


class Itinerary(Base):
    __tablename__ = "itineraries"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    traveler_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False, default="")
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=ItineraryStatus.UPCOMING.value, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    traveler = relationship("User", foreign_keys=[traveler_id])
    items = relationship(
        "ItineraryItem",
        back_populates="itinerary",
        cascade="all, delete-orphan",
        order_by="[ItineraryItem.day_number, ItineraryItem.start_time]",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('upcoming', 'ongoing', 'completed')", name="ck_itineraries_status"
        ),
        CheckConstraint("start_date <= end_date", name="ck_itineraries_date_order"),
    )

    @property
    def itinerary_status(self) -> ItineraryStatus:
        return ItineraryStatus(self.status)

    def status_on(self, today: date) -> ItineraryStatus:
        """Status implied by the traveler's local calendar day."""
        if today > cast(date, self.end_date):
            return ItineraryStatus.COMPLETED
        if cast(date, self.start_date) <= today:
            return ItineraryStatus.ONGOING
        return ItineraryStatus.UPCOMING

    def __repr__(self) -> str:
        return (
            f"<Itinerary {self.id}: traveler={self.traveler_id} "
            f"{self.start_date}..{self.end_date} status={self.status}>"
        )


class ItineraryItem(Base):
    __tablename__ = "itinerary_items"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    itinerary_id = Column(
        String(26), ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    experience_id = Column(String(26), nullable=True)
    title = Column(String(255), nullable=False, default="")
    day_number = Column(Integer, nullable=False, default=1)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    custom_note = Column(Text, nullable=True)
    reminder_sent_at = Column(DateTime(timezone=True), nullable=True)

    itinerary = relationship("Itinerary", back_populates="items")

    __table_args__ = (CheckConstraint("day_number >= 1", name="ck_itinerary_items_day_number"),)

    @property
    def calendar_day(self) -> date:
        return cast(date, self.itinerary.start_date) + timedelta(days=self.day_number - 1)

    @property
    def start_wall_clock(self) -> str:
        return combine_wall_clock(self.calendar_day, self.start_time)

    @property
    def end_wall_clock(self) -> str:
        """End of the activity; an end at or before the start is the next day."""
        end_day = self.calendar_day
        if cast(time, self.end_time) <= cast(time, self.start_time):
            end_day += timedelta(days=1)
        return combine_wall_clock(end_day, cast(time, self.end_time))

    @property
    def display_title(self) -> Optional[str]:
        return self.title or self.custom_note
