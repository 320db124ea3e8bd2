"""
Unit tests for clock and day-key helpers.
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytest

from credit_usage.core.clock import (
    FixedClock,
    SystemClock,
    add_days,
    days_between,
    is_day_key,
    parse_day,
    prune_to_window,
    to_day,
)


class TestDayKeys:
    """Test day-key formatting and arithmetic."""

    def test_to_day_from_date(self):
        assert to_day(date(2024, 1, 5)) == "2024-01-05"

    def test_to_day_uses_own_timezone(self):
        """Late evening in New York is already the next day in UTC."""
        evening = datetime(2024, 1, 1, 23, 30, tzinfo=ZoneInfo("America/New_York"))
        assert to_day(evening) == "2024-01-01"
        assert to_day(evening.astimezone(timezone.utc)) == "2024-01-02"

    def test_parse_day_ignores_time_suffix(self):
        assert parse_day("2024-02-29T10:00:00") == date(2024, 2, 29)

    def test_add_days_across_months(self):
        assert add_days("2024-01-31", 1) == "2024-02-01"
        assert add_days("2024-03-01", -1) == "2024-02-29"
        assert add_days("2024-03-01", -29) == "2024-02-01"
        assert add_days("2023-03-01", -29) == "2023-01-31"

    def test_days_between(self):
        assert days_between("2024-01-01", "2024-01-21") == 20
        assert days_between("2024-01-21", "2024-01-01") == -20

    @pytest.mark.parametrize("value,expected", [
        ("2024-01-01", True),
        ("2024-02-30", False),
        ("2024-1-1", False),
        ("2024-01-01T00:00", False),
        (20240101, False),
        (None, False),
    ])
    def test_is_day_key(self, value, expected):
        assert is_day_key(value) is expected


class TestPruneToWindow:
    """Test rolling window pruning."""

    def test_keeps_thirty_days_in_leap_year(self):
        usage = {"2024-01-31": 1, "2024-02-01": 2, "2024-03-01": 3}
        assert prune_to_window(usage, "2024-03-01") == {"2024-02-01": 2, "2024-03-01": 3}

    def test_keeps_thirty_days_in_common_year(self):
        usage = {"2023-01-30": 1, "2023-01-31": 2, "2023-03-01": 3}
        assert prune_to_window(usage, "2023-03-01") == {"2023-01-31": 2, "2023-03-01": 3}

    def test_result_is_sorted(self):
        usage = {"2024-03-01": 3, "2024-02-01": 1}
        assert list(prune_to_window(usage, "2024-03-01")) == ["2024-02-01", "2024-03-01"]

    def test_does_not_modify_input(self):
        usage = {"2023-01-01": 1}
        prune_to_window(usage, "2024-03-01")
        assert usage == {"2023-01-01": 1}


class TestClocks:
    """Test clock implementations."""

    def test_fixed_clock_from_string(self):
        clock = FixedClock("2024-01-01")
        assert clock.today() == "2024-01-01"

    def test_fixed_clock_advance(self):
        clock = FixedClock(datetime(2024, 1, 1, 23, 0))
        clock.advance(hours=2)
        assert clock.today() == "2024-01-02"

    def test_fixed_clock_aware_moment(self):
        clock = FixedClock(datetime(2024, 6, 30, 22, 0, tzinfo=timezone.utc))
        clock.set(clock.now().astimezone(ZoneInfo("Asia/Tokyo")))
        assert clock.today() == "2024-07-01"

    def test_system_clock_timezone(self):
        clock = SystemClock("UTC")
        assert clock.now().utcoffset().total_seconds() == 0
        assert is_day_key(clock.today())

    def test_system_clock_local_zone(self):
        clock = SystemClock()
        assert clock.now().tzinfo is not None
        assert is_day_key(clock.today())

    def test_unknown_timezone_raises_error(self):
        with pytest.raises(ZoneInfoNotFoundError):
            SystemClock("Mars/Olympus_Mons")
