"""
Centralized timezone handling for the scheduler.

Rules:
- All storage: UTC (wall-clock strings keep the owner's IANA id beside them)
- All due-ness checks: the record owner's own timezone, via TimeEvaluator
- Unknown timezone ids: warn once at the boundary and fall back to the default
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
import logging
from typing import Callable, Optional, Union

import pytz

from .config import settings
from .exceptions import ValidationException

logger = logging.getLogger(__name__)

NowProvider = Callable[[], datetime]
WallClock = Union[str, datetime]

WALL_CLOCK_FORMAT = "%Y-%m-%d %H:%M:%S"
_ACCEPTED_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
)
FALLBACK_TIMEZONE = "UTC"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite round-trips) as UTC and normalise aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_wall_clock(value: WallClock) -> datetime:
    """Parse a wall-clock string into a naive datetime."""
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    text = (value or "").strip()
    for fmt in _ACCEPTED_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ValidationException(
        f"Invalid wall-clock value '{value}', expected YYYY-MM-DD HH:MM[:SS]",
        code="INVALID_WALL_CLOCK",
        details={"value": value},
    )


def format_wall_clock(value: datetime) -> str:
    return value.strftime(WALL_CLOCK_FORMAT)


def combine_wall_clock(day: date, at: time) -> str:
    return format_wall_clock(
        datetime.combine(day, at)
    )  # utc-naive-ok: wall clock, resolved later against a timezone


@lru_cache(maxsize=512)
def _lookup(name: str) -> Optional[pytz.BaseTzInfo]:
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        return None


@dataclass(frozen=True)
class UserTimezone:
    """
    A validated IANA timezone.

    Build it once where a user record is read (``from_raw``); everything
    downstream trusts ``name`` without re-validating.
    """

    name: str

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> "UserTimezone":
        candidate = (raw or "").strip()
        if candidate and _lookup(candidate) is not None:
            return cls(candidate)

        fallback = settings.default_timezone
        if _lookup(fallback) is None:
            fallback = FALLBACK_TIMEZONE
        if candidate:
            logger.warning(f"Unknown timezone '{candidate}', falling back to {fallback}")
        return cls(fallback)

    @classmethod
    def utc(cls) -> "UserTimezone":
        return cls(FALLBACK_TIMEZONE)

    @property
    def tzinfo(self) -> pytz.BaseTzInfo:
        tz = _lookup(self.name)
        return tz if tz is not None else pytz.utc

    def localize(self, naive: datetime) -> datetime:
        """
        Attach this timezone to a naive wall-clock datetime.

        Ambiguous fall-back times resolve to their first occurrence; times
        inside a spring-forward gap move forward by the size of the gap.
        """
        tz = self.tzinfo
        try:
            return tz.localize(naive, is_dst=None)
        except pytz.exceptions.AmbiguousTimeError:
            return tz.localize(naive, is_dst=True)
        except pytz.exceptions.NonExistentTimeError:
            shifted = tz.normalize(tz.localize(naive, is_dst=False))
            logger.debug(f"{naive} does not exist in {self.name}; using {shifted}")
            return shifted

    def now(self, now_provider: NowProvider = utc_now) -> datetime:
        return ensure_utc(now_provider()).astimezone(self.tzinfo)

    def today(self, now_provider: NowProvider = utc_now) -> date:
        return self.now(now_provider).date()

    def __str__(self) -> str:
        return self.name


class TimeEvaluator:
    """
    Timezone-safe "is this due now" checks.

    Every comparison between a stored wall-clock value and the clock goes
    through here, so each record is judged against its owner's local time.
    """

    def __init__(self, now_provider: NowProvider = utc_now):
        self.now_provider = now_provider

    def now(self) -> datetime:
        return ensure_utc(self.now_provider())

    def to_instant(self, scheduled_local: WallClock, tz: UserTimezone) -> datetime:
        """Resolve a wall-clock value inside ``tz`` to an aware UTC instant."""
        naive = parse_wall_clock(scheduled_local)
        return tz.localize(naive).astimezone(timezone.utc)

    def due(
        self,
        scheduled_local: WallClock,
        tz: UserTimezone,
        now_provider: Optional[NowProvider] = None,
    ) -> bool:
        """True from second 0 of the scheduled minute onwards."""
        scheduled = self.to_instant(scheduled_local, tz).replace(second=0, microsecond=0)
        now = ensure_utc((now_provider or self.now_provider)())
        return now >= scheduled

    def has_passed(
        self,
        scheduled_local: WallClock,
        tz: UserTimezone,
        now_provider: Optional[NowProvider] = None,
    ) -> bool:
        """Strictly after the instant; used for end-of-window checks."""
        now = ensure_utc((now_provider or self.now_provider)())
        return now > self.to_instant(scheduled_local, tz)

    def elapsed_since(self, instant: Optional[datetime]) -> Optional[timedelta]:
        if instant is None:
            return None
        return self.now() - ensure_utc(instant)


__all__ = [
    "NowProvider",
    "TimeEvaluator",
    "UserTimezone",
    "WALL_CLOCK_FORMAT",
    "combine_wall_clock",
    "ensure_utc",
    "format_wall_clock",
    "parse_wall_clock",
    "utc_now",
]
