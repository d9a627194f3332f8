"""
Event Ledger for the bridge.

Append-only record of every Zoom event identity that has been accepted for
processing. Used purely for existence checks: the PRIMARY KEY on event_id is
what makes de-duplication atomic, so a failed insert is the duplicate signal.
"""
import sqlite3
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from api.services.errors import PersistenceError
from api.utils.datetime_utils import make_aware
from api.utils.db_paths import get_bridge_db_path

logger = logging.getLogger(__name__)


class LedgerOutcome(str, Enum):
    """Result of recording an event identity."""
    CREATED = "created"
    DUPLICATE = "duplicate"


@dataclass
class LedgerEntry:
    """A processed event identity."""
    event_id: str
    event_type: str
    email: Optional[str] = None
    processed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "email": self.email,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
        }

    @classmethod
    def from_row(cls, row: tuple) -> "LedgerEntry":
        processed_at = make_aware(datetime.fromisoformat(row[3])) if row[3] else None
        return cls(
            event_id=row[0],
            event_type=row[1],
            email=row[2],
            processed_at=processed_at,
        )


class EventLedger:
    """
    SQLite-backed event ledger.

    Entries are created once and never updated or deleted.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize event ledger.

        Args:
            db_path: Path to SQLite database (default from settings)
        """
        self.db_path = db_path or get_bridge_db_path()
        self._init_db()

    def _init_db(self):
        """Create the ledger table if it doesn't exist."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS zoom_events (
                        event_id TEXT PRIMARY KEY,
                        event_type TEXT NOT NULL,
                        email TEXT,
                        processed_at TEXT NOT NULL
                    )
                """)
                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_zoom_events_processed
                    ON zoom_events(processed_at DESC)
                """)
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError("Failed to initialize event ledger", str(e)) from e
        logger.info(f"Initialized event ledger at {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=10.0)

    def record_if_new(
        self,
        event_id: str,
        event_type: str,
        email: Optional[str] = None,
    ) -> LedgerOutcome:
        """
        Record an event identity unless it is already present.

        Exactly one concurrent caller for a given event_id gets CREATED.

        Args:
            event_id: Derived event identity
            event_type: Zoom event name (e.g. webinar.registration_created)
            email: Registrant email, for auditing

        Returns:
            LedgerOutcome.CREATED or LedgerOutcome.DUPLICATE

        Raises:
            PersistenceError: Storage failed for any reason other than the duplicate key
        """
        now = datetime.now(timezone.utc).isoformat()
        try:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO zoom_events (event_id, event_type, email, processed_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (event_id, event_type, email, now),
                )
        except sqlite3.IntegrityError:
            logger.info(f"Duplicate event, skipping: {event_id}")
            return LedgerOutcome.DUPLICATE
        except sqlite3.Error as e:
            raise PersistenceError("Failed to record event", str(e)) from e

        return LedgerOutcome.CREATED

    def get(self, event_id: str) -> Optional[LedgerEntry]:
        """Get a ledger entry by identity."""
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT event_id, event_type, email, processed_at FROM zoom_events WHERE event_id = ?",
                    (event_id,),
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError("Failed to read event ledger", str(e)) from e
        return LedgerEntry.from_row(row) if row else None

    def exists(self, event_id: str) -> bool:
        return self.get(event_id) is not None

    def count(self, event_type: Optional[str] = None) -> int:
        """Count ledger entries, optionally for one event type."""
        query = "SELECT COUNT(*) FROM zoom_events"
        params: list = []
        if event_type:
            query += " WHERE event_type = ?"
            params.append(event_type)
        try:
            with self._get_connection() as conn:
                return conn.execute(query, params).fetchone()[0]
        except sqlite3.Error as e:
            raise PersistenceError("Failed to count event ledger", str(e)) from e

    def recent(self, limit: int = 50) -> list[LedgerEntry]:
        """Most recently processed entries, newest first."""
        try:
            with self._get_connection() as conn:
                rows = conn.execute(
                    """
                    SELECT event_id, event_type, email, processed_at
                    FROM zoom_events
                    ORDER BY processed_at DESC
                    LIMIT ?
                    """,
                    (limit,),
                ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError("Failed to read event ledger", str(e)) from e
        return [LedgerEntry.from_row(row) for row in rows]


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_event_ledger: Optional[EventLedger] = None


def get_event_ledger() -> EventLedger:
    global _event_ledger
    if _event_ledger is None:
        _event_ledger = EventLedger()
    return _event_ledger


def reset_event_ledger() -> None:
    global _event_ledger
    _event_ledger = None
