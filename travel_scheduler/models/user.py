# travel_scheduler/models/user.py
"""
User model.

Only the fields the scheduler reads: identity for notification copy, the
role, and the IANA timezone every due-ness check is evaluated in.
"""

import logging

from sqlalchemy import CheckConstraint, Column, DateTime, String
from sqlalchemy.sql import func
import ulid

from ..core.enums import UserRole
from ..core.timezone_service import UserTimezone
from ..database import Base

logger = logging.getLogger(__name__)


class User(Base):
    """
    Traveler or creator account.

    Attributes:
        timezone: Raw IANA id as stored; read it through ``user_timezone``
            so unknown values fall back to UTC exactly once.
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    role = Column(String(20), nullable=False, default=UserRole.TRAVELER.value)
    timezone = Column(String(64), nullable=False, default="UTC")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("role IN ('Traveler', 'Creator')", name="ck_users_role"),
    )

    @property
    def user_timezone(self) -> UserTimezone:
        return UserTimezone.from_raw(self.timezone)

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email} ({self.role}, {self.timezone})>"
