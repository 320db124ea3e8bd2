"""
Key-value stores for persisted usage state.

The usage tracker only needs string get/set/remove, so any backend that
provides those can hold its state. JSON helpers at the bottom of this module
never raise: a storage or parse failure reads as "key absent".
"""

import json
import logging
from typing import Any, Dict, Iterable, Optional, Protocol, runtime_checkable

from .db import DEFAULT_DB_PATH, get_connection

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for string key-value storage backends."""

    def get(self, key: str) -> Optional[str]:
        """Return the stored string, or None if the key is absent."""
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        """Delete the key. Removing an absent key is not an error."""
        ...

    def keys(self) -> Iterable[str]:
        ...


class InMemoryKeyValueStore:
    """Dict-backed store, scoped to the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterable[str]:
        return list(self._data)


class SQLiteKeyValueStore:
    """Store backed by the ``kv_store`` table of a SQLite database.

    Each operation opens its own connection, so the store is safe to share
    between short-lived callers. Writers in separate processes are not
    coordinated beyond SQLite's own per-statement locking.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the store and create its table if needed.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        initialize_kv_schema(db_path)

    def get(self, key: str) -> Optional[str]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def set(self, key: str, value: str) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO kv_store (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )
            conn.commit()
        finally:
            conn.close()

    def remove(self, key: str) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()

    def keys(self) -> Iterable[str]:
        conn = get_connection(self.db_path)
        try:
            return [row[0] for row in conn.execute("SELECT key FROM kv_store ORDER BY key")]
        finally:
            conn.close()


class NamespacedKeyValueStore:
    """View of another store with every key prefixed by ``<namespace>:``.

    Lets several accounts keep usage state in one database.
    """

    def __init__(self, store: KeyValueStore, namespace: str):
        if not namespace:
            raise ValueError("namespace cannot be empty")
        self.store = store
        self.prefix = f"{namespace}:"

    def get(self, key: str) -> Optional[str]:
        return self.store.get(self.prefix + key)

    def set(self, key: str, value: str) -> None:
        self.store.set(self.prefix + key, value)

    def remove(self, key: str) -> None:
        self.store.remove(self.prefix + key)

    def keys(self) -> Iterable[str]:
        return [
            key[len(self.prefix):]
            for key in self.store.keys()
            if key.startswith(self.prefix)
        ]


def initialize_kv_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the kv_store table if it doesn't exist."""
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        conn.commit()
    finally:
        conn.close()


def has_key(store: KeyValueStore, key: str) -> bool:
    """True if the key holds a non-empty value; read failures count as absent."""
    try:
        return bool(store.get(key))
    except Exception as e:
        logger.warning("Failed to read key %s: %s", key, e)
        return False


def key_exists(store: KeyValueStore, key: str) -> bool:
    """True if the key is present at all, even with an empty value."""
    try:
        return store.get(key) is not None
    except Exception as e:
        logger.warning("Failed to read key %s: %s", key, e)
        return False


def load_json(store: KeyValueStore, key: str, default: Any) -> Any:
    """Load and decode a JSON value, returning default when absent or unreadable."""
    try:
        raw = store.get(key)
    except Exception as e:
        logger.warning("Failed to read key %s: %s", key, e)
        return default
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError as e:
        logger.debug("Ignoring unparsable value under %s: %s", key, e)
        return default


def save_json(store: KeyValueStore, key: str, value: Any) -> bool:
    """Encode and store a JSON value. Returns False if the write failed."""
    try:
        store.set(key, json.dumps(value, sort_keys=True))
        return True
    except Exception as e:
        logger.warning("Failed to write key %s: %s", key, e)
        return False


def remove_key(store: KeyValueStore, key: str) -> None:
    try:
        store.remove(key)
    except Exception as e:
        logger.warning("Failed to remove key %s: %s", key, e)
