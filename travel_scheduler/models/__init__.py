# travel_scheduler/models/__init__.py
"""
SQLAlchemy models.

Importing this package registers every mapper on ``Base.metadata``.
"""

from .booking import Booking
from .itinerary import Itinerary, ItineraryItem
from .notification import Notification, ScheduledNotification
from .user import User

__all__ = [
    "Booking",
    "Itinerary",
    "ItineraryItem",
    "Notification",
    "ScheduledNotification",
    "User",
]
