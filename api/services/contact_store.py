"""
Local Contact Cache for the bridge.

Maps a registrant email to the GHL contact id it was resolved to, so repeat
registrants skip the remote search. A row without a GHL id is "unlinked":
it exists because GHL told us about the person first (configuration intake
with an email only) and still has to be resolved.

Emails are stored trimmed and lower-cased. NULL emails are allowed and never
collide with each other, so contacts known only by GHL id can coexist.
"""
import sqlite3
import logging
from contextlib import contextmanager
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Iterator, Optional

from api.services.errors import PersistenceError
from api.utils.datetime_utils import make_aware
from api.utils.db_paths import get_bridge_db_path

logger = logging.getLogger(__name__)

# Columns callers may set besides email / ghl_contact_id
PROFILE_FIELDS = ("first_name", "last_name", "phone", "location_id")

_SELECT_COLUMNS = (
    "id, email, ghl_contact_id, first_name, last_name, phone, location_id, created_at, updated_at"
)


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Trim and lower-case an email; empty or non-string values become None."""
    if not isinstance(email, str):
        return None
    email = email.strip().lower()
    return email or None


@dataclass
class ContactRecord:
    """A locally cached contact."""
    id: int
    email: Optional[str] = None
    ghl_contact_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    location_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_linked(self) -> bool:
        return bool(self.ghl_contact_id)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        data["linked"] = self.is_linked
        return data

    @classmethod
    def from_row(cls, row: tuple) -> "ContactRecord":
        return cls(
            id=row[0],
            email=row[1],
            ghl_contact_id=row[2],
            first_name=row[3],
            last_name=row[4],
            phone=row[5],
            location_id=row[6],
            created_at=make_aware(datetime.fromisoformat(row[7])) if row[7] else None,
            updated_at=make_aware(datetime.fromisoformat(row[8])) if row[8] else None,
        )


class ContactStore:
    """
    SQLite-backed contact cache.

    Rows are created and updated, never deleted. Every write is keyed by a
    unique column so concurrent writers for the same person update one row.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize contact store.

        Args:
            db_path: Path to SQLite database (default from settings)
        """
        self.db_path = db_path or get_bridge_db_path()
        self._init_db()

    def _init_db(self):
        """Create the contacts table if it doesn't exist."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS contacts (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        email TEXT UNIQUE,
                        ghl_contact_id TEXT,
                        first_name TEXT,
                        last_name TEXT,
                        phone TEXT,
                        location_id TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)
                # Secondary lookup for configuration intake keyed by GHL id
                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_contacts_ghl_id
                    ON contacts(ghl_contact_id)
                """)
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError("Failed to initialize contact store", str(e)) from e
        logger.info(f"Initialized contact store at {self.db_path}")

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Write transaction that takes the database write lock up front."""
        conn = sqlite3.connect(self.db_path, timeout=10.0, isolation_level=None)
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            raise PersistenceError("Contact store write failed", str(e)) from e
        finally:
            conn.close()

    def _fetch_one(self, where: str, params: tuple) -> Optional[ContactRecord]:
        try:
            with sqlite3.connect(self.db_path, timeout=10.0) as conn:
                row = conn.execute(
                    f"SELECT {_SELECT_COLUMNS} FROM contacts WHERE {where}",
                    params,
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError("Contact store read failed", str(e)) from e
        return ContactRecord.from_row(row) if row else None

    @staticmethod
    def _select(conn: sqlite3.Connection, where: str, params: tuple) -> Optional[ContactRecord]:
        row = conn.execute(
            f"SELECT {_SELECT_COLUMNS} FROM contacts WHERE {where}",
            params,
        ).fetchone()
        return ContactRecord.from_row(row) if row else None

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    def get_by_email(self, email: str) -> Optional[ContactRecord]:
        """Look up a contact by (normalized) email."""
        email = normalize_email(email)
        if not email:
            return None
        return self._fetch_one("email = ?", (email,))

    def get_by_ghl_id(self, ghl_contact_id: str) -> Optional[ContactRecord]:
        """Look up a contact by GHL contact id."""
        if not ghl_contact_id:
            return None
        return self._fetch_one("ghl_contact_id = ? ORDER BY id LIMIT 1", (ghl_contact_id,))

    def count(self, linked_only: bool = False) -> int:
        query = "SELECT COUNT(*) FROM contacts"
        if linked_only:
            query += " WHERE ghl_contact_id IS NOT NULL AND ghl_contact_id != ''"
        try:
            with sqlite3.connect(self.db_path, timeout=10.0) as conn:
                return conn.execute(query).fetchone()[0]
        except sqlite3.Error as e:
            raise PersistenceError("Contact store read failed", str(e)) from e

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------

    def save_resolved(
        self,
        email: str,
        ghl_contact_id: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        location_id: Optional[str] = None,
    ) -> ContactRecord:
        """
        Store the GHL id a registrant email resolved to.

        Inserts a linked row when the email is new, otherwise links the
        existing row in place. Profile fields only fill gaps; values already
        stored (e.g. from GHL itself) are kept.

        Args:
            email: Registrant email (normalized here)
            ghl_contact_id: Resolved GHL contact id

        Returns:
            The stored ContactRecord
        """
        email = normalize_email(email)
        if not email:
            raise ValueError("save_resolved requires an email")
        if not ghl_contact_id:
            raise ValueError("save_resolved requires a GHL contact id")

        now = datetime.now(timezone.utc).isoformat()
        with self._transaction() as conn:
            existing = self._select(conn, "email = ?", (email,))
            conn.execute(
                """
                INSERT INTO contacts (
                    email, ghl_contact_id, first_name, last_name, phone, location_id,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(email) DO UPDATE SET
                    ghl_contact_id = excluded.ghl_contact_id,
                    first_name = COALESCE(contacts.first_name, excluded.first_name),
                    last_name = COALESCE(contacts.last_name, excluded.last_name),
                    phone = COALESCE(contacts.phone, excluded.phone),
                    location_id = COALESCE(contacts.location_id, excluded.location_id),
                    updated_at = excluded.updated_at
                """,
                (email, ghl_contact_id, first_name, last_name, phone, location_id, now, now),
            )
            record = self._select(conn, "email = ?", (email,))

        if existing is None:
            logger.info(f"Cached new contact {email} -> {ghl_contact_id}")
        elif not existing.is_linked:
            logger.info(f"Linked existing local contact {email} to GHL ID: {ghl_contact_id}")
        elif existing.ghl_contact_id != ghl_contact_id:
            logger.warning(
                f"Relinked {email} from {existing.ghl_contact_id} to {ghl_contact_id}"
            )
        return record

    def upsert(
        self,
        email: Optional[str] = None,
        ghl_contact_id: Optional[str] = None,
        **fields,
    ) -> tuple[ContactRecord, bool]:
        """
        Create or update a contact from data GHL sent us.

        Keyed by ghl_contact_id when given, else by email. When keyed by id
        and no row carries it yet, a row holding the same email is adopted
        rather than inserting a second row for that email. None values never
        overwrite stored values.

        Args:
            email: Contact email (normalized here, empty becomes absent)
            ghl_contact_id: GHL contact id
            **fields: Any of first_name, last_name, phone, location_id

        Returns:
            (record, created)
        """
        email = normalize_email(email)
        if not email and not ghl_contact_id:
            raise ValueError("upsert requires an email or a GHL contact id")

        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown contact fields: {sorted(unknown)}")

        now = datetime.now(timezone.utc).isoformat()
        updates = {k: v for k, v in fields.items() if v is not None}

        with self._transaction() as conn:
            row = None
            if ghl_contact_id:
                row = self._select(conn, "ghl_contact_id = ? ORDER BY id LIMIT 1", (ghl_contact_id,))
            if row is None and email:
                row = self._select(conn, "email = ?", (email,))

            if row is None:
                values = {"email": email, "ghl_contact_id": ghl_contact_id, **updates}
                columns = list(values) + ["created_at", "updated_at"]
                conn.execute(
                    f"INSERT INTO contacts ({', '.join(columns)}) "
                    f"VALUES ({', '.join('?' for _ in columns)})",
                    (*values.values(), now, now),
                )
                record = self._select(conn, "id = last_insert_rowid()", ())
                created = True
            else:
                if ghl_contact_id:
                    updates["ghl_contact_id"] = ghl_contact_id
                if email and email != row.email:
                    owner = self._select(conn, "email = ?", (email,))
                    if owner is None:
                        updates["email"] = email
                    else:
                        logger.warning(
                            f"Not moving email {email} to contact {row.id}: "
                            f"already held by contact {owner.id}"
                        )
                assignments = [f"{col} = ?" for col in updates] + ["updated_at = ?"]
                conn.execute(
                    f"UPDATE contacts SET {', '.join(assignments)} WHERE id = ?",
                    (*updates.values(), now, row.id),
                )
                record = self._select(conn, "id = ?", (row.id,))
                created = False

        return record, created


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_contact_store: Optional[ContactStore] = None


def get_contact_store() -> ContactStore:
    global _contact_store
    if _contact_store is None:
        _contact_store = ContactStore()
    return _contact_store


def reset_contact_store() -> None:
    global _contact_store
    _contact_store = None
