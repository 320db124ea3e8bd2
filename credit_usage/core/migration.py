"""
Schema migration for persisted usage state.

Migrations form a chain: each step upgrades exactly one schema version to
the next one and deletes the keys it read. The runner starts from the
highest legacy version found in the store, so state that was already
upgraded part of the way is never read twice.

Adding a schema version means adding its keys to ``state.SCHEMA_KEYS``,
bumping ``CURRENT_SCHEMA_VERSION`` and registering one step here.
"""

import logging
from typing import Callable, Dict, Optional

from credit_usage.storage.kv_store import (
    KeyValueStore,
    has_key,
    key_exists,
    load_json,
    remove_key,
    save_json,
)
from credit_usage.storage.models import LastObserved, Snapshot

from .clock import prune_to_window
from .state import (
    BASE_KEY_V1,
    CURRENT_SCHEMA_VERSION,
    DAILY_KEY_V1,
    DAILY_KEY_V2,
    DAILY_KEY_V3,
    LAST_KEY_V2,
    SCHEMA_KEYS,
    SCHEMA_VERSION_KEY,
    SNAP_KEY_V2,
    SNAP_KEY_V3,
    UsageState,
    load_last_observed,
    load_snapshot,
    load_usage_map,
    save_state,
)

logger = logging.getLogger(__name__)

# (store, today, retention_days) -> None
MigrationStep = Callable[[KeyValueStore, str, int], None]


def _upgrade_v1_to_v2(store: KeyValueStore, today: str, retention_days: int) -> None:
    """V1 kept a day map and a ``{"iso", "value"}`` baseline, no last total."""
    usage = prune_to_window(load_usage_map(store, DAILY_KEY_V1), today, retention_days)
    snapshot = load_snapshot(store, BASE_KEY_V1, Snapshot(day=today, baseline=0), field="value")

    # Best effort: the last total is the baseline plus what was counted that day
    last = LastObserved(value=max(0, snapshot.baseline + usage.get(snapshot.day, 0)))

    save_state(store, UsageState(usage=usage, snapshot=snapshot, last=last), version=2)
    for key in SCHEMA_KEYS[1]:
        remove_key(store, key)


def _upgrade_v2_to_v3(store: KeyValueStore, today: str, retention_days: int) -> None:
    usage = prune_to_window(load_usage_map(store, DAILY_KEY_V2), today, retention_days)
    snapshot = load_snapshot(store, SNAP_KEY_V2, Snapshot(day=today, baseline=0))
    last = load_last_observed(store, LAST_KEY_V2, LastObserved(value=snapshot.baseline))

    save_state(store, UsageState(usage=usage, snapshot=snapshot, last=last), version=3)
    for key in SCHEMA_KEYS[2]:
        remove_key(store, key)


MIGRATIONS: Dict[int, MigrationStep] = {
    1: _upgrade_v1_to_v2,
    2: _upgrade_v2_to_v3,
}


def detect_schema_version(store: KeyValueStore) -> Optional[int]:
    """Find which schema the store's usage state is in.

    The current schema counts only when both its day map and snapshot are
    present. A legacy schema counts when any of its keys is present.

    Returns:
        Schema version, or None for a store without usage state
    """
    if has_key(store, DAILY_KEY_V3) and has_key(store, SNAP_KEY_V3):
        return CURRENT_SCHEMA_VERSION
    for version in sorted(MIGRATIONS, reverse=True):
        if any(key_exists(store, key) for key in SCHEMA_KEYS[version]):
            return version
    return None


def migrate_legacy_if_needed(
    store: KeyValueStore,
    today: str,
    retention_days: int = 30
) -> Optional[int]:
    """Upgrade legacy usage state to the current schema.

    Idempotent and safe to call on every load. Storage failures degrade to
    defaults inside each step; nothing is raised to the caller.

    Args:
        store: Key-value store holding the usage state
        today: Current day-key, used for defaults and pruning
        retention_days: Rolling window kept in the day map

    Returns:
        The legacy version that was migrated, or None if nothing was done
    """
    stored_version = load_json(store, SCHEMA_VERSION_KEY, None)
    if isinstance(stored_version, int) and stored_version > CURRENT_SCHEMA_VERSION:
        logger.warning(
            "Usage state has schema version %s, newer than supported %s; leaving it untouched",
            stored_version, CURRENT_SCHEMA_VERSION
        )
        return None

    source = detect_schema_version(store)
    if source is None or source == CURRENT_SCHEMA_VERSION:
        return None

    for version in range(source, CURRENT_SCHEMA_VERSION):
        logger.info("Migrating usage state from schema v%d to v%d", version, version + 1)
        MIGRATIONS[version](store, today, retention_days)

    # Older leftovers are superseded by the state just migrated
    for version in range(1, source):
        for key in SCHEMA_KEYS[version]:
            remove_key(store, key)

    save_json(store, SCHEMA_VERSION_KEY, CURRENT_SCHEMA_VERSION)
    return source
