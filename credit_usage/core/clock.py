"""
Clock and calendar-day helpers.

Day-keys are ``YYYY-MM-DD`` strings in the account holder's timezone. They
are derived from timezone-aware datetimes, never from UTC offsets applied by
hand, so days roll over at local midnight.
"""

import re
from datetime import date, datetime, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo

from credit_usage.storage.models import UsageMap

DAY_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class SystemClock:
    """Wall clock in a fixed IANA timezone, or the system local zone."""

    def __init__(self, timezone: Optional[str] = None):
        """Initialize the clock.

        Args:
            timezone: IANA zone name (e.g. "Asia/Dubai"); None uses the
                zone the process runs in

        Raises:
            zoneinfo.ZoneInfoNotFoundError: If the zone name is unknown
        """
        self.timezone = timezone
        self._zone = ZoneInfo(timezone) if timezone else None

    def now(self) -> datetime:
        if self._zone is None:
            return datetime.now().astimezone()
        return datetime.now(self._zone)

    def today(self) -> str:
        """Current day-key in this clock's timezone."""
        return to_day(self.now())


class FixedClock:
    """Clock pinned to a settable moment, for tests and replays."""

    def __init__(self, moment: Union[datetime, date, str]):
        self.set(moment)

    def set(self, moment: Union[datetime, date, str]) -> None:
        if isinstance(moment, str):
            moment = parse_day(moment)
        if not isinstance(moment, datetime):
            moment = datetime(moment.year, moment.month, moment.day, 12, 0, 0)
        self._moment = moment

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self._moment = self._moment + timedelta(days=days, hours=hours)

    def now(self) -> datetime:
        return self._moment

    def today(self) -> str:
        return to_day(self._moment)


def to_day(value: Union[datetime, date]) -> str:
    """Format a date or datetime as a day-key.

    Aware datetimes are formatted in their own timezone.
    """
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def parse_day(day: str) -> date:
    """Parse the leading ``YYYY-MM-DD`` of a string into a date.

    Raises:
        ValueError: If the string does not start with a valid date
    """
    return date.fromisoformat(str(day)[:10])


def is_day_key(value: object) -> bool:
    """True if value is a well-formed, real calendar day-key."""
    if not isinstance(value, str) or not DAY_KEY_PATTERN.match(value):
        return False
    try:
        parse_day(value)
    except ValueError:
        return False
    return True


def add_days(day: str, days: int) -> str:
    """Shift a day-key by a number of calendar days."""
    return to_day(parse_day(day) + timedelta(days=days))


def days_between(start: str, end: str) -> int:
    """Number of calendar days from start to end (negative if end is earlier)."""
    return (parse_day(end) - parse_day(start)).days


def prune_to_window(usage: UsageMap, today: str, days: int = 30) -> UsageMap:
    """Drop day-keys older than ``today - (days - 1)``.

    Returns a new map ordered by day-key. Future keys are kept.
    """
    keep_from = add_days(today, -(days - 1))
    return {day: usage[day] for day in sorted(usage) if day >= keep_from}
