"""User lookups needed by the scheduler."""

from typing import Optional

from sqlalchemy.orm import Session

from ..core.timezone_service import UserTimezone
from ..models.user import User
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_timezone(self, user_id: str) -> Optional[UserTimezone]:
        """The user's validated timezone, or None when the user does not exist."""
        user = self.get_by_id(user_id, load_relationships=False)
        if user is None:
            return None
        return user.user_timezone
