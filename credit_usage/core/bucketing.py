"""
Daily usage bucketing.

Turns a cumulative "credits consumed so far" counter, sampled whenever the
caller refreshes it, into credits consumed per calendar day.

Bookkeeping per store:
1. Snapshot - cumulative total at the start of the snapshot's day
2. LastObserved - the total seen on the previous call
3. Usage map - finalized past days plus today's live value

When the day changes, the snapshot's day is finalized from LastObserved and
a new snapshot starts at the current total. Deltas never go negative: a
counter that decreases reads as zero usage.
"""

import logging
import threading
from typing import Optional, Protocol

from credit_usage.storage.kv_store import KeyValueStore
from credit_usage.storage.models import LastObserved, Snapshot, UsageMap, to_count

from .clock import SystemClock, is_day_key, prune_to_window
from .migration import migrate_legacy_if_needed
from .state import (
    DAILY_KEY_V3,
    LAST_KEY_V3,
    SNAP_KEY_V3,
    UsageState,
    load_last_observed,
    load_snapshot,
    load_usage_map,
    save_state,
)

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


class Clock(Protocol):
    def today(self) -> str:
        ...


class UsageLogSource(Protocol):
    """Authoritative per-day usage for recent days, if available."""

    def fetch(self) -> Optional[UsageMap]:
        """Return a day map, or None when no data is available."""
        ...


class DailyUsageTracker:
    """Tracks per-day usage in a key-value store.

    One tracker should own a store within a process; calls on the same
    tracker are serialized. Separate processes writing the same store are
    not coordinated and the last write wins.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Optional[Clock] = None,
        usage_log: Optional[UsageLogSource] = None,
        retention_days: int = DEFAULT_RETENTION_DAYS
    ):
        """Initialize the tracker.

        Args:
            store: Key-value store for the persisted state
            clock: Source of the current day-key (defaults to the local zone)
            usage_log: Optional source whose days override local inference
            retention_days: Rolling window kept in the usage map

        Raises:
            ValueError: If retention_days is not positive
        """
        if retention_days <= 0:
            raise ValueError("retention_days must be > 0")
        self.store = store
        self.clock = clock or SystemClock()
        self.usage_log = usage_log
        self.retention_days = retention_days
        self._lock = threading.Lock()
        self._migrated = False

    def update_usage(self, total_used_now: int) -> UsageMap:
        """Record a fresh cumulative total and return the per-day usage map.

        Repeated calls with the same or a larger total on the same day are
        idempotent: today's value is recomputed from the snapshot rather
        than accumulated.

        Args:
            total_used_now: Credits consumed so far (invalid values read as 0)

        Returns:
            Usage map pruned to the retention window
        """
        total = to_count(total_used_now) or 0

        with self._lock:
            today = self.clock.today()
            self._ensure_migrated(today)

            state = self._load(today, total)
            usage = dict(state.usage)
            snapshot = state.snapshot

            if snapshot.day != today:
                finalized = max(0, state.last.value - snapshot.baseline)
                # Never overwrite a day that was already finalized
                if not usage.get(snapshot.day):
                    usage[snapshot.day] = finalized
                logger.debug(
                    "Day rollover %s -> %s, finalized %d credits",
                    snapshot.day, today, usage[snapshot.day]
                )
                snapshot = Snapshot(day=today, baseline=total)

            usage[today] = max(0, total - snapshot.baseline)
            usage = prune_to_window(usage, today, self.retention_days)
            usage = self._reconcile(usage, today)

            save_state(self.store, UsageState(
                usage=usage,
                snapshot=snapshot,
                last=LastObserved(value=total)
            ))
            return usage

    def load_usage(self) -> UsageMap:
        """Return the persisted usage map without recording a new total."""
        with self._lock:
            today = self.clock.today()
            self._ensure_migrated(today)
            return prune_to_window(
                load_usage_map(self.store, DAILY_KEY_V3), today, self.retention_days
            )

    def _ensure_migrated(self, today: str) -> None:
        if not self._migrated:
            migrate_legacy_if_needed(self.store, today, self.retention_days)
            self._migrated = True

    def _load(self, today: str, total: int) -> UsageState:
        return UsageState(
            usage=load_usage_map(self.store, DAILY_KEY_V3),
            snapshot=load_snapshot(self.store, SNAP_KEY_V3, Snapshot(day=today, baseline=total)),
            last=load_last_observed(self.store, LAST_KEY_V3, LastObserved(value=total))
        )

    def _reconcile(self, usage: UsageMap, today: str) -> UsageMap:
        """Merge the remote usage log over local values, if one is available."""
        if self.usage_log is None:
            return usage
        try:
            remote = self.usage_log.fetch()
        except Exception as e:
            logger.warning("Usage log unavailable, keeping local usage: %s", e)
            return usage
        if not remote:
            return usage

        merged = dict(usage)
        applied = 0
        for day, value in remote.items():
            count = to_count(value)
            if count is not None and is_day_key(day):
                merged[day] = count
                applied += 1
        logger.debug("Merged %d of %d days from usage log", applied, len(remote))
        return prune_to_window(merged, today, self.retention_days)
