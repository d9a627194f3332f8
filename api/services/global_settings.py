"""
Global Tag Store for the bridge.

A tiny key/value table for operator-controlled settings pushed from GHL.
The engine only uses one key (globalZoomTag). Values are opaque scalars and
are JSON-encoded on disk so strings, numbers and booleans round-trip.

There is no in-process cache: every reconciliation reads the current value,
so a tag changed in GHL applies to the very next registration.
"""
import json
import sqlite3
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from api.services.errors import PersistenceError
from api.utils.db_paths import get_bridge_db_path

logger = logging.getLogger(__name__)

GLOBAL_ZOOM_TAG_KEY = "globalZoomTag"


class GlobalSettingsStore:
    """SQLite-backed settings store. Single writer path, many readers."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or get_bridge_db_path()
        self._init_db()

    def _init_db(self):
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS global_settings (
                        key TEXT PRIMARY KEY,
                        value TEXT,
                        updated_at TEXT NOT NULL
                    )
                """)
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError("Failed to initialize settings store", str(e)) from e

    def read(self, key: str) -> Optional[Any]:
        """Get the current value for a key, or None if never set."""
        try:
            with sqlite3.connect(self.db_path, timeout=10.0) as conn:
                row = conn.execute(
                    "SELECT value FROM global_settings WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read setting {key}", str(e)) from e
        if row is None or row[0] is None:
            return None
        return json.loads(row[0])

    def write_if_changed(self, key: str, value: Any) -> bool:
        """
        Overwrite a key when the new value differs from the stored one.

        Returns:
            True if a write happened
        """
        encoded = json.dumps(value)
        now = datetime.now(timezone.utc).isoformat()
        try:
            with sqlite3.connect(self.db_path, timeout=10.0) as conn:
                row = conn.execute(
                    "SELECT value FROM global_settings WHERE key = ?", (key,)
                ).fetchone()
                if row is not None and row[0] == encoded:
                    return False
                conn.execute(
                    """
                    INSERT INTO global_settings (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, encoded, now),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write setting {key}", str(e)) from e

        previous = json.loads(row[0]) if row is not None and row[0] is not None else None
        logger.info(f'Global setting {key} changed: "{previous}" -> "{value}"')
        return True

    def get_updated_at(self, key: str) -> Optional[str]:
        try:
            with sqlite3.connect(self.db_path, timeout=10.0) as conn:
                row = conn.execute(
                    "SELECT updated_at FROM global_settings WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read setting {key}", str(e)) from e
        return row[0] if row else None

    def get_global_tag(self, default: str) -> str:
        """Current global Zoom tag, or the default when unset or blank."""
        value = self.read(GLOBAL_ZOOM_TAG_KEY)
        if value is None or (isinstance(value, str) and not value.strip()):
            return default
        return str(value)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings_store: Optional[GlobalSettingsStore] = None


def get_global_settings_store() -> GlobalSettingsStore:
    global _settings_store
    if _settings_store is None:
        _settings_store = GlobalSettingsStore()
    return _settings_store


def reset_global_settings_store() -> None:
    global _settings_store
    _settings_store = None
