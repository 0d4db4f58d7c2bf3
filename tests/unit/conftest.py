from datetime import date, time
from typing import Callable, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from tests.unit._clock import FixedClock, utc

from travel_scheduler.core.enums import BookingStatus, UserRole
from travel_scheduler.database import Base

# Import models so Base.metadata is populated for create_all.
import travel_scheduler.models  # noqa: F401
from travel_scheduler.models.booking import Booking
from travel_scheduler.models.itinerary import Itinerary, ItineraryItem
from travel_scheduler.models.user import User


@pytest.fixture
def unit_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(unit_engine) -> sessionmaker:
    return sessionmaker(bind=unit_engine, expire_on_commit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(utc(2025, 1, 1, 0, 0))


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(timezone_name: str = "UTC", role: UserRole = UserRole.TRAVELER) -> User:
        counter["n"] += 1
        user = User(
            email=f"user{counter['n']}@example.com",
            first_name="Test",
            last_name=f"User{counter['n']}",
            role=role.value,
            timezone=timezone_name,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_booking(db: Session, make_user) -> Callable[..., Booking]:
    def _make(
        creator: Optional[User] = None,
        traveler: Optional[User] = None,
        booking_date: date = date(2025, 6, 1),
        start: time = time(10, 0),
        end: time = time(11, 0),
        status: BookingStatus = BookingStatus.CONFIRMED,
        title: str = "Sunset Kayak Tour",
    ) -> Booking:
        booking = Booking(
            creator_id=(creator or make_user(role=UserRole.CREATOR)).id,
            traveler_id=(traveler or make_user()).id,
            experience_title=title,
            booking_date=booking_date,
            start_time=start,
            end_time=end,
            status=status.value,
        )
        db.add(booking)
        db.commit()
        return booking

    return _make


@pytest.fixture
def make_itinerary(db: Session, make_user) -> Callable[..., Itinerary]:
    def _make(
        traveler: Optional[User] = None,
        start_date: date = date(2025, 6, 1),
        end_date: date = date(2025, 6, 3),
        status: str = "upcoming",
        title: str = "Island Hopping",
        items: Optional[list] = None,
    ) -> Itinerary:
        itinerary = Itinerary(
            traveler_id=(traveler or make_user()).id,
            title=title,
            start_date=start_date,
            end_date=end_date,
            status=status,
        )
        for day_number, start, end, item_title in items or []:
            itinerary.items.append(
                ItineraryItem(
                    day_number=day_number, start_time=start, end_time=end, title=item_title
                )
            )
        db.add(itinerary)
        db.commit()
        return itinerary

    return _make
