"""
Data models for storage layer.

Defines persisted usage state and credit ledger records.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

# Day-key (YYYY-MM-DD) -> credits consumed that day
UsageMap = Dict[str, int]


def to_count(value: Any) -> Optional[int]:
    """Coerce a persisted or remote value to a non-negative integer count.

    Returns None for values that are not finite numbers (including booleans
    and numeric strings that fail to parse), so callers can treat them as
    absent.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return max(0, int(value))


@dataclass(frozen=True)
class Snapshot:
    """Cumulative total observed at the start of a calendar day.

    Stored as ``{"iso": day, "used": baseline}``.
    """
    day: str
    baseline: int

    def __post_init__(self):
        """Validate baseline is non-negative."""
        if self.baseline < 0:
            raise ValueError("baseline cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {"iso": self.day, "used": self.baseline}


@dataclass(frozen=True)
class LastObserved:
    """Most recent cumulative total seen, stored as ``{"used": value}``."""
    value: int

    def __post_init__(self):
        if self.value < 0:
            raise ValueError("last observed value cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {"used": self.value}


@dataclass(frozen=True)
class CreditStatus:
    """Credit balance of a single account."""
    account_id: str
    email: str
    total: int
    used: int
    active: bool = True

    @property
    def remaining(self) -> int:
        """Credits still available (never negative)."""
        return max(self.total - self.used, 0)


@dataclass(frozen=True)
class CreditUsageEvent:
    """Immutable record of credits consumed by an account.

    Append-only events back the per-day usage log. Once written, these
    records must never be modified.
    """
    occurred_at: datetime
    email: str
    amount: int
    account_id: Optional[str] = None
