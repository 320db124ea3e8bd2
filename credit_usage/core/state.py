"""
Persisted usage state.

Storage keys for every schema version and lenient readers for the records
stored under them. Readers never raise: malformed records fall back to the
supplied defaults.
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from credit_usage.storage.kv_store import KeyValueStore, load_json, save_json
from credit_usage.storage.models import LastObserved, Snapshot, UsageMap, to_count

from .clock import is_day_key

# Current schema (V3)
DAILY_KEY_V3 = "AGX_DAILY_V3"
SNAP_KEY_V3 = "AGX_SNAP_V3"    # {"iso": day, "used": start-of-day cumulative total}
LAST_KEY_V3 = "AGX_LAST_V3"    # {"used": last seen cumulative total}

# Legacy schemas, read only by migrations
DAILY_KEY_V2 = "AGX_DAILY_V2"
SNAP_KEY_V2 = "AGX_SNAP_V2"
LAST_KEY_V2 = "AGX_LAST_V2"

DAILY_KEY_V1 = "agx_usage_daily_v1"
BASE_KEY_V1 = "agx_used_baseline_v1"  # {"iso": day, "value": baseline}

SCHEMA_VERSION_KEY = "AGX_SCHEMA_VERSION"
CURRENT_SCHEMA_VERSION = 3

SCHEMA_KEYS: Dict[int, Tuple[str, ...]] = {
    1: (DAILY_KEY_V1, BASE_KEY_V1),
    2: (DAILY_KEY_V2, SNAP_KEY_V2, LAST_KEY_V2),
    3: (DAILY_KEY_V3, SNAP_KEY_V3, LAST_KEY_V3),
}


@dataclass(frozen=True)
class UsageState:
    """Day map, start-of-day snapshot and last observed total."""
    usage: UsageMap
    snapshot: Snapshot
    last: LastObserved


def parse_usage_map(raw: Any) -> UsageMap:
    """Keep only well-formed day-keys with numeric values, clamped to >= 0."""
    if not isinstance(raw, dict):
        return {}
    usage: UsageMap = {}
    for day, value in raw.items():
        count = to_count(value)
        if is_day_key(day) and count is not None:
            usage[day] = count
    return usage


def parse_snapshot(raw: Any, default: Snapshot, field: str = "used") -> Snapshot:
    """Read a ``{"iso", <field>}`` record.

    A missing record yields default. A present record with an unusable day
    falls back to the default day; an unusable total reads as 0.
    """
    if not isinstance(raw, dict):
        return default
    day = raw.get("iso")
    if not is_day_key(day):
        day = default.day
    return Snapshot(day=day, baseline=to_count(raw.get(field)) or 0)


def parse_last_observed(raw: Any, default: LastObserved) -> LastObserved:
    if not isinstance(raw, dict):
        return default
    value = to_count(raw.get("used"))
    return default if value is None else LastObserved(value=value)


def load_usage_map(store: KeyValueStore, key: str) -> UsageMap:
    return parse_usage_map(load_json(store, key, {}))


def load_snapshot(store: KeyValueStore, key: str, default: Snapshot, field: str = "used") -> Snapshot:
    return parse_snapshot(load_json(store, key, None), default, field)


def load_last_observed(store: KeyValueStore, key: str, default: LastObserved) -> LastObserved:
    return parse_last_observed(load_json(store, key, None), default)


def save_state(store: KeyValueStore, state: UsageState, version: int = CURRENT_SCHEMA_VERSION) -> None:
    """Write a state under the keys of the given schema version (2 or 3)."""
    daily_key, snap_key, last_key = SCHEMA_KEYS[version]
    save_json(store, daily_key, state.usage)
    save_json(store, snap_key, state.snapshot.to_dict())
    save_json(store, last_key, state.last.to_dict())
