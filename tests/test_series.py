"""
Unit tests for the usage chart series.
"""

import pytest

from credit_usage.core.series import (
    build_nice_ticks,
    build_series,
    clamp_range,
    compact,
    default_window,
    series_for_today,
)


class TestNiceTicks:
    """Test Y-axis scale selection."""

    def test_small_value(self):
        """430 fits in five ticks of 100."""
        scale = build_nice_ticks(430)
        assert scale.step == 100
        assert scale.axis_max == 500
        assert scale.ticks == [100, 200, 300, 400, 500]

    def test_zero_value(self):
        scale = build_nice_ticks(0)
        assert scale.step == 100
        assert scale.axis_max == 100
        assert scale.ticks == [100]

    def test_exact_multiple(self):
        scale = build_nice_ticks(800)
        assert scale.step == 100
        assert scale.axis_max == 800

    def test_next_step_when_too_many_ticks(self):
        scale = build_nice_ticks(801)
        assert scale.step == 200
        assert scale.axis_max == 1000

    def test_value_beyond_ladder_uses_largest_step(self):
        scale = build_nice_ticks(1_000_000)
        assert scale.step == 50000
        assert scale.axis_max == 1_000_000
        assert len(scale.ticks) == 20

    def test_custom_ladder(self):
        scale = build_nice_ticks(35, ladder=(5, 10), max_ticks=4)
        assert scale.step == 10
        assert scale.axis_max == 40

    def test_empty_ladder_raises_error(self):
        with pytest.raises(ValueError, match="ladder cannot be empty"):
            build_nice_ticks(10, ladder=())


class TestClampRange:
    """Test range normalization."""

    def test_swaps_reversed_range(self):
        assert clamp_range("2024-01-10", "2024-01-01") == ("2024-01-01", "2024-01-10")

    def test_long_range_keeps_end(self):
        """Spans over 21 days move the start to end - 20 days."""
        assert clamp_range("2024-01-01", "2024-02-10") == ("2024-01-21", "2024-02-10")

    def test_clamps_to_bounds(self):
        result = clamp_range(
            "2023-12-01", "2024-05-01",
            min_day="2024-01-01", max_day="2024-01-15"
        )
        assert result == ("2024-01-01", "2024-01-15")

    def test_malformed_day_raises_error(self):
        with pytest.raises(ValueError):
            clamp_range("yesterday", "2024-01-01")

    def test_invalid_span_raises_error(self):
        with pytest.raises(ValueError, match="max_span_days must be > 0"):
            clamp_range("2024-01-01", "2024-01-02", max_span_days=0)


class TestBuildSeries:
    """Test dense series construction."""

    def test_dense_zero_fill(self):
        series = build_series({}, "2024-01-01", "2024-01-03")

        assert [p.day for p in series.points] == ["2024-01-01", "2024-01-02", "2024-01-03"]
        assert [p.value for p in series.points] == [0, 0, 0]
        assert series.total == 0

    def test_no_bounds_without_min_and_max(self):
        """Without bounds any past range is kept as requested."""
        series = build_series({"2019-05-02": 4}, "2019-05-01", "2019-05-03")

        assert (series.from_day, series.to_day) == ("2019-05-01", "2019-05-03")
        assert series.total == 4

    def test_reversed_and_too_long_range(self):
        """from > to is swapped, then limited to 21 days ending at to."""
        series = build_series({}, "2024-02-10", "2024-01-01")

        assert len(series.points) == 21
        assert series.points[0].day == "2024-01-21"
        assert series.points[-1].day == "2024-02-10"
        days = [p.day for p in series.points]
        assert days == sorted(days)

    def test_values_labels_and_total(self):
        usage = {"2024-01-30": 120, "2024-02-01": 310, "2024-03-01": 999}
        series = build_series(usage, "2024-01-30", "2024-02-01")

        assert [(p.label, p.value) for p in series.points] == [
            ("01/30", 120), ("01/31", 0), ("02/01", 310)
        ]
        assert series.total == 430
        assert series.max_value == 310
        assert series.scale.axis_max == 400

    def test_crosses_leap_day(self):
        series = build_series({"2024-02-29": 1}, "2024-02-28", "2024-03-01")

        assert [p.day for p in series.points] == ["2024-02-28", "2024-02-29", "2024-03-01"]
        assert series.total == 1


class TestDefaultWindow:
    """Test the default window ending today."""

    def test_window_is_today_plus_twenty_days(self):
        assert default_window("2024-03-01") == ("2024-02-10", "2024-03-01")

    def test_series_for_today_defaults(self):
        series = series_for_today({"2024-03-01": 5}, "2024-03-01")

        assert series.from_day == "2024-02-10"
        assert series.to_day == "2024-03-01"
        assert len(series.points) == 21
        assert series.total == 5

    def test_series_for_today_clamps_selection(self):
        series = series_for_today({}, "2024-03-01", from_day="2023-01-01", to_day="2030-01-01")

        assert (series.from_day, series.to_day) == ("2024-02-10", "2024-03-01")


class TestCompact:
    """Test tick label formatting."""

    @pytest.mark.parametrize("value,expected", [
        (0, "0"),
        (999, "999"),
        (1000, "1k"),
        (1500, "1.5k"),
        (2_000_000, "2M"),
        (2_500_000, "2.5M"),
    ])
    def test_compact(self, value, expected):
        assert compact(value) == expected
