"""Calendar-day keying for completion tracking and challenges."""

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo


def day_key(moment: datetime, tz: tzinfo) -> date:
    """Return the local calendar day for a timestamp.

    Naive timestamps are assumed to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(tz).date()


def days_between(start: date, end: date) -> int:
    """Return the whole calendar days from start to end (may be negative)."""
    return (end - start).days


def parse_day_key(raw: str) -> date:
    """Parse an ISO ``YYYY-MM-DD`` day key."""
    return date.fromisoformat(raw)


def format_day_key(day: date) -> str:
    """Format a day key as ISO ``YYYY-MM-DD``."""
    return day.isoformat()


def next_midnight(moment: datetime, tz: tzinfo) -> datetime:
    """Return the start of the local day following ``moment``."""
    tomorrow = day_key(moment, tz) + timedelta(days=1)
    return datetime(tomorrow.year, tomorrow.month, tomorrow.day, tzinfo=tz)


@dataclass(frozen=True)
class DayRange:
    """Inclusive range of calendar days."""

    start: date
    end: date

    @classmethod
    def for_goal(cls, start: date, target_days: int) -> "DayRange":
        """Return the range covered by a goal of ``target_days`` days."""
        return cls(start=start, end=start + timedelta(days=target_days - 1))

    def contains(self, day: date) -> bool:
        """Return True when the day falls inside the range."""
        return self.start <= day <= self.end

    def days(self) -> list[date]:
        """Return every day in the range, oldest first."""
        return [self.start + timedelta(days=offset) for offset in range(len(self))]

    def __len__(self) -> int:
        return max(days_between(self.start, self.end) + 1, 0)


class Clock(Protocol):
    """Source of the current time and the user's day boundaries."""

    def now(self) -> datetime:
        """Return the current timezone-aware timestamp."""

    def today(self) -> date:
        """Return the current local day key."""


@dataclass
class SystemClock(Clock):
    """Wall clock bound to a time zone."""

    tz: tzinfo

    @classmethod
    def for_timezone(cls, timezone_name: str) -> "SystemClock":
        """Create a clock for an IANA time zone name."""
        return cls(tz=ZoneInfo(timezone_name))

    def now(self) -> datetime:
        """Return the current time in the configured zone."""
        return datetime.now(tz=self.tz)

    def today(self) -> date:
        """Return today's day key in the configured zone."""
        return day_key(self.now(), self.tz)
