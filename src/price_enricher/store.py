"""
Key-value storage for price-enricher.

All persistence goes through a flat string-to-string store. Two reserved
keys hold global settings and the publisher classification map; every other
key is an item id holding a JSON-encoded EnrichedRecord.
"""

import sqlite3
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from pathlib import Path

from .migrations import run_migrations

SETTINGS_KEY = "SETTINGS"
PUBLISHERS_KEY = "PUBLISHERS"
RESERVED_KEYS = frozenset({SETTINGS_KEY, PUBLISHERS_KEY})


class KeyValueStore(ABC):
    """Flat store over string keys and string values."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None if absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Create or replace a value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""

    @abstractmethod
    def list_keys(self) -> list[str]:
        """List every stored key."""


class MemoryStore(KeyValueStore):
    """In-process store, used for tests and ephemeral runs."""

    def __init__(self, data: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(data or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def list_keys(self) -> list[str]:
        return list(self.data)


class SqliteStore(KeyValueStore):
    """SQLite-backed store using the kv_store table."""

    def __init__(self, db_path: Path, migrate: bool = True):
        self.db_path = db_path
        if migrate:
            run_migrations(db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def get(self, key: str) -> str | None:
        conn = self._connect()
        try:
            cursor = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row["value"] if row else None
        finally:
            conn.close()

    def set(self, key: str, value: str) -> None:
        now = datetime.now(UTC).isoformat()
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_ts) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_ts = excluded.updated_ts
                """,
                (key, value, now),
            )
            conn.commit()
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = self._connect()
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()

    def list_keys(self) -> list[str]:
        conn = self._connect()
        try:
            cursor = conn.execute("SELECT key FROM kv_store ORDER BY key ASC")
            return [row["key"] for row in cursor.fetchall()]
        finally:
            conn.close()
