"""
GHL contact-context intake.

GHL workflows call back with a "Webhook" action whose body is either flat or
wrapped in customData:

    {"customData": {"contactId": "...", "email": "...", "zoom_tag": "..."}}

Each call upserts the local contact (keyed by contactId, else email) and,
when zoom_tag is present and different, replaces the global Zoom tag that
registration tagging reads.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from api.services.contact_store import ContactRecord, ContactStore, get_contact_store, normalize_email
from api.services.errors import ValidationError
from api.services.global_settings import (
    GLOBAL_ZOOM_TAG_KEY,
    GlobalSettingsStore,
    get_global_settings_store,
)
from config.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class ContactContext:
    """Contact fields sent by a GHL workflow webhook."""
    contact_id: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    location_id: Optional[str] = None
    zoom_tag: Optional[str] = None


@dataclass
class ContactSyncResult:
    record: ContactRecord
    created: bool
    tag_changed: bool = False


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_contact_context(body: Any) -> ContactContext:
    """
    Extract contact context from a flat or customData-wrapped body.

    Empty-string email becomes absent so it never lands in the unique
    email column.

    Raises:
        ValidationError: body is not an object, or has neither email nor contactId
    """
    if not isinstance(body, dict):
        raise ValidationError("Webhook body must be a JSON object")

    payload = body.get("customData")
    if not isinstance(payload, dict) or not payload:
        payload = body

    context = ContactContext(
        contact_id=_optional_str(payload.get("contactId")),
        email=normalize_email(payload.get("email")),
        phone=_optional_str(payload.get("phone")),
        first_name=_optional_str(payload.get("firstName")),
        last_name=_optional_str(payload.get("lastName")),
        location_id=_optional_str(payload.get("locationId")),
        zoom_tag=_optional_str(payload.get("zoom_tag")),
    )

    if not context.email and not context.contact_id:
        logger.warning("GHL webhook missing email or contactId")
        raise ValidationError("Missing email or contactId")
    return context


class ContactSync:
    """Applies GHL contact context to the local cache and global tag."""

    def __init__(
        self,
        store: ContactStore,
        settings_store: GlobalSettingsStore,
        default_location_id: Optional[str] = None,
    ):
        self.store = store
        self.settings_store = settings_store
        self.default_location_id = default_location_id or None

    def sync(self, context: ContactContext) -> ContactSyncResult:
        tag_changed = False
        if context.zoom_tag:
            tag_changed = self.settings_store.write_if_changed(GLOBAL_ZOOM_TAG_KEY, context.zoom_tag)

        record, created = self.store.upsert(
            email=context.email,
            ghl_contact_id=context.contact_id,
            first_name=context.first_name,
            last_name=context.last_name,
            phone=context.phone,
            location_id=context.location_id or self.default_location_id,
        )
        logger.info(
            f"Contact synced from GHL: {record.email or record.ghl_contact_id} "
            f"({'created' if created else 'updated'})"
        )
        return ContactSyncResult(record=record, created=created, tag_changed=tag_changed)

    async def handle_webhook(self, body: Any) -> ContactSyncResult:
        context = parse_contact_context(body)
        return await asyncio.to_thread(self.sync, context)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_contact_sync: Optional[ContactSync] = None


def get_contact_sync() -> ContactSync:
    global _contact_sync
    if _contact_sync is None:
        _contact_sync = ContactSync(
            get_contact_store(),
            get_global_settings_store(),
            default_location_id=settings.ghl_location_id,
        )
    return _contact_sync


def reset_contact_sync() -> None:
    global _contact_sync
    _contact_sync = None
