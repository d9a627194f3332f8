"""
Contact resolution: registrant email -> GHL contact id.

The fallback chain is:

    local cache (linked)  -> LINKED
    GHL search hit        -> FOUND_REMOTE
    GHL create            -> CREATED
    create 400 + existing -> RECOVERED_FROM_CONFLICT
    anything else         -> UNRESOLVED

Each step returns a Resolution instead of nesting conditionals, and every
outcome except LINKED/UNRESOLVED ends with the local row upserted and linked.

Search failures never stop resolution. A 404 is a clean negative; a 403 or
5xx makes the search inconclusive and we go on to create, since GHL rejects
a duplicate create with the existing id and we recover from that.
Two concurrent resolutions for one email may both create remotely; the
local upsert keeps one row either way.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from api.services.contact_store import ContactRecord, ContactStore, normalize_email
from api.services.errors import (
    PersistenceError,
    RemoteAPIError,
    RemoteConflict,
    RemotePermissionError,
)
from api.services.ghl_client import GHLClient
from api.services.service_health import (
    Severity,
    mark_service_failed,
    mark_service_healthy,
    record_degradation,
)
from api.services.zoom_intake import Registrant

logger = logging.getLogger(__name__)


class ResolutionOutcome(str, Enum):
    """How a GHL contact id was obtained."""
    LINKED = "linked"
    FOUND_REMOTE = "found_remote"
    CREATED = "created"
    RECOVERED_FROM_CONFLICT = "recovered_from_conflict"
    UNRESOLVED = "unresolved"


@dataclass
class Resolution:
    """Result of resolving one registrant."""
    outcome: ResolutionOutcome
    contact_id: Optional[str] = None
    email: Optional[str] = None
    record: Optional[ContactRecord] = None
    error: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.outcome != ResolutionOutcome.UNRESOLVED and bool(self.contact_id)


@dataclass
class _SearchResult:
    contact_id: Optional[str] = None
    inconclusive: bool = False


class ContactResolver:
    """Resolves registrants against the local cache and GHL."""

    def __init__(self, store: ContactStore, client: GHLClient, location_id: Optional[str] = None):
        self.store = store
        self.client = client
        self.location_id = location_id if location_id is not None else client.location_id

    async def resolve(self, registrant: Registrant) -> Resolution:
        """
        Resolve a registrant to a GHL contact id.

        Never raises for remote failures; those end in UNRESOLVED. Local
        storage failures propagate as PersistenceError.
        """
        email = normalize_email(registrant.email)
        if not email:
            return Resolution(ResolutionOutcome.UNRESOLVED, error="missing email")

        local = await asyncio.to_thread(self.store.get_by_email, email)
        if local and local.is_linked:
            logger.debug(f"Cache hit for {email}: {local.ghl_contact_id}")
            return Resolution(ResolutionOutcome.LINKED, local.ghl_contact_id, email, local)

        if local:
            logger.info(f"Local contact {email} is unlinked, searching GHL...")
        else:
            logger.info(f"Contact {email} not cached, searching GHL...")

        search = await self._search(email)
        if search.contact_id:
            logger.info(f"Found in GHL: {search.contact_id}")
            resolution = Resolution(ResolutionOutcome.FOUND_REMOTE, search.contact_id, email)
        else:
            resolution = await self._create(email, registrant)

        if not resolution.resolved:
            return resolution

        resolution.record = await self._persist(email, resolution.contact_id, registrant)
        return resolution

    async def _search(self, email: str) -> _SearchResult:
        """Search GHL; failures downgrade to an inconclusive result."""
        try:
            contact = await self.client.search_contact(email)
        except RemotePermissionError as e:
            logger.error(f"GHL search error: {e}")
            logger.error(
                "PERMISSION DENIED: check the GHL access token scopes "
                "(contacts.readonly) and GHL_LOCATION_ID. Falling back to create."
            )
            mark_service_failed("ghl_search", str(e), Severity.CRITICAL)
            record_degradation("ghl_search", "resolve_contact", "create_contact", str(e))
            return _SearchResult(inconclusive=True)
        except RemoteAPIError as e:
            logger.error(f"GHL search error, falling back to create: {e}")
            record_degradation("ghl_search", "resolve_contact", "create_contact", str(e))
            return _SearchResult(inconclusive=True)

        mark_service_healthy("ghl_search")
        if contact and contact.get("id"):
            return _SearchResult(contact_id=str(contact["id"]))
        return _SearchResult()

    async def _create(self, email: str, registrant: Registrant) -> Resolution:
        """Create the contact in GHL, recovering the id from a duplicate rejection."""
        logger.info(f"Creating new GHL contact for {email}...")
        try:
            contact = await self.client.create_contact(
                email=email,
                first_name=registrant.first_name,
                last_name=registrant.last_name,
                phone=registrant.phone,
            )
        except RemoteConflict as e:
            logger.warning(f"Contact actually exists (from 400 error), using ID: {e.existing_id}")
            mark_service_healthy("ghl_create")
            return Resolution(ResolutionOutcome.RECOVERED_FROM_CONFLICT, e.existing_id, email)
        except RemoteAPIError as e:
            logger.error(f"Failed to create GHL contact for {email}: {e} {e.body or ''}")
            logger.error("Could not resolve GHL contact ID. Skipping tagging.")
            mark_service_failed("ghl_create", str(e))
            return Resolution(ResolutionOutcome.UNRESOLVED, email=email, error=str(e))

        mark_service_healthy("ghl_create")
        contact_id = str(contact["id"])
        logger.info(f"Created in GHL: {contact_id}")
        return Resolution(ResolutionOutcome.CREATED, contact_id, email)

    async def _persist(self, email: str, contact_id: str, registrant: Registrant) -> ContactRecord:
        try:
            return await asyncio.to_thread(
                self.store.save_resolved,
                email,
                contact_id,
                first_name=registrant.first_name,
                last_name=registrant.last_name,
                phone=registrant.phone,
                location_id=self.location_id or None,
            )
        except PersistenceError as e:
            mark_service_failed("database", str(e))
            raise
