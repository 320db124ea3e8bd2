"""
Usage series for charting.

Builds a dense day-by-day series over a selected date range, with the
range total and a readable Y-axis scale. Everything here is pure and safe
to re-run on every range change.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from credit_usage.storage.models import UsageMap

from .clock import add_days, days_between

DEFAULT_WINDOW_DAYS = 21
DEFAULT_MAX_TICKS = 8
DEFAULT_TICK_LADDER: Tuple[int, ...] = (
    100, 200, 250, 500, 1000, 1500, 2000, 2500, 5000, 10000, 20000, 50000
)


@dataclass(frozen=True)
class UsagePoint:
    """Usage of a single day."""
    day: str
    label: str  # "MM/DD"
    value: int


@dataclass(frozen=True)
class TickScale:
    """Y-axis scale: tick step, axis maximum and tick positions."""
    step: int
    axis_max: int
    ticks: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class UsageSeries:
    """Dense usage series over an inclusive date range."""
    from_day: str
    to_day: str
    points: List[UsagePoint]
    total: int
    scale: TickScale

    @property
    def max_value(self) -> int:
        return max((p.value for p in self.points), default=0)


def default_window(today: str, window_days: int = DEFAULT_WINDOW_DAYS) -> Tuple[str, str]:
    """Selectable range ending today: today plus the preceding days.

    Returns:
        (min_day, max_day), also used as the suggested default selection
    """
    return add_days(today, -(window_days - 1)), today


def clamp_range(
    from_day: str,
    to_day: str,
    min_day: Optional[str] = None,
    max_day: Optional[str] = None,
    max_span_days: int = DEFAULT_WINDOW_DAYS
) -> Tuple[str, str]:
    """Normalize a requested range.

    1. Clamp both ends into [min_day, max_day] (where bounds are given)
    2. Swap ends if from_day > to_day
    3. Shrink from the start so the range spans at most max_span_days;
       to_day is kept

    Raises:
        ValueError: If a day is malformed or max_span_days is not positive
    """
    if max_span_days <= 0:
        raise ValueError("max_span_days must be > 0")

    def _clamp(day: str) -> str:
        if min_day is not None and days_between(min_day, day) < 0:
            return min_day
        if max_day is not None and days_between(day, max_day) < 0:
            return max_day
        return day

    start, end = _clamp(from_day), _clamp(to_day)
    if days_between(start, end) < 0:
        start, end = end, start
    if days_between(start, end) + 1 > max_span_days:
        start = add_days(end, -(max_span_days - 1))
    return start, end


def build_nice_ticks(
    max_value: int,
    ladder: Sequence[int] = DEFAULT_TICK_LADDER,
    max_ticks: int = DEFAULT_MAX_TICKS
) -> TickScale:
    """Pick the smallest ladder step that covers max_value in max_ticks ticks.

    If no step is coarse enough, the largest step is used. The axis maximum
    is never below one step, so an all-zero series still gets an axis.

    Examples:
        430 -> step 100, axis_max 500
        0   -> step 100, axis_max 100
    """
    if not ladder:
        raise ValueError("ladder cannot be empty")
    max_value = max(0, int(max_value))

    step = ladder[-1]
    for candidate in ladder:
        if math.ceil(max_value / candidate) <= max_ticks:
            step = candidate
            break

    axis_max = max(step, step * math.ceil(max_value / step))
    ticks = list(range(step, axis_max + 1, step))
    return TickScale(step=step, axis_max=axis_max, ticks=ticks)


def build_series(
    usage: UsageMap,
    from_day: str,
    to_day: str,
    min_day: Optional[str] = None,
    max_day: Optional[str] = None,
    max_span_days: int = DEFAULT_WINDOW_DAYS,
    ladder: Sequence[int] = DEFAULT_TICK_LADDER,
    max_ticks: int = DEFAULT_MAX_TICKS
) -> UsageSeries:
    """Build a dense, zero-filled usage series for a date range.

    The range is clamped only to the bounds passed in. Use
    ``series_for_today`` for the default window ending today.

    Args:
        usage: Day map (days missing from it count as 0)
        from_day: Requested first day
        to_day: Requested last day
        min_day: Optional lower bound for the range
        max_day: Optional upper bound for the range
        max_span_days: Longest range allowed, in days
        ladder: Tick step candidates, ascending
        max_ticks: Most ticks allowed on the Y axis

    Returns:
        UsageSeries ordered by ascending day

    Raises:
        ValueError: If a day is malformed
    """
    start, end = clamp_range(from_day, to_day, min_day, max_day, max_span_days)

    points = []
    for offset in range(days_between(start, end) + 1):
        day = add_days(start, offset)
        points.append(UsagePoint(
            day=day,
            label=f"{day[5:7]}/{day[8:10]}",
            value=int(usage.get(day, 0) or 0)
        ))

    total = sum(p.value for p in points)
    peak = max((p.value for p in points), default=0)
    return UsageSeries(
        from_day=start,
        to_day=end,
        points=points,
        total=total,
        scale=build_nice_ticks(peak, ladder, max_ticks)
    )


def series_for_today(
    usage: UsageMap,
    today: str,
    from_day: Optional[str] = None,
    to_day: Optional[str] = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
    ladder: Sequence[int] = DEFAULT_TICK_LADDER,
    max_ticks: int = DEFAULT_MAX_TICKS
) -> UsageSeries:
    """Build a series within the default window ending today.

    Omitted ends default to the window's own ends.
    """
    min_day, max_day = default_window(today, window_days)
    return build_series(
        usage,
        from_day or min_day,
        to_day or max_day,
        min_day=min_day,
        max_day=max_day,
        max_span_days=window_days,
        ladder=ladder,
        max_ticks=max_ticks
    )


def compact(n: int) -> str:
    """Short tick label: 1500 -> "1.5k", 2000000 -> "2M"."""
    if n >= 1_000_000:
        return f"{n / 1_000_000:.{0 if n % 1_000_000 == 0 else 1}f}M"
    if n >= 1_000:
        return f"{n / 1_000:.{0 if n % 1_000 == 0 else 1}f}k"
    return str(n)
