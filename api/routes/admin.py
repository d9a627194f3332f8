"""
Admin API endpoints for the bridge.

Read-only operator views:
- Recently processed Zoom events
- Cached contact lookup
- Global settings
"""
import asyncio
import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from api.services.contact_store import get_contact_store
from api.services.event_ledger import get_event_ledger
from api.services.global_settings import get_global_settings_store

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = logging.getLogger(__name__)


class LedgerEntryResponse(BaseModel):
    event_id: str
    event_type: str
    email: Optional[str] = None
    processed_at: Optional[str] = None


class LedgerListResponse(BaseModel):
    events: list[LedgerEntryResponse]
    total: int


class ContactResponse(BaseModel):
    id: int
    email: Optional[str] = None
    ghl_contact_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    location_id: Optional[str] = None
    linked: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class SettingResponse(BaseModel):
    key: str
    value: Any = None
    updated_at: Optional[str] = None


@router.get("/events", response_model=LedgerListResponse)
async def list_events(limit: int = Query(default=50, ge=1, le=500)):
    """List the most recently processed Zoom events."""
    ledger = get_event_ledger()
    entries = await asyncio.to_thread(ledger.recent, limit)
    total = await asyncio.to_thread(ledger.count)
    return LedgerListResponse(
        events=[LedgerEntryResponse(**e.to_dict()) for e in entries],
        total=total,
    )


@router.get("/contacts/{email}", response_model=ContactResponse)
async def get_contact(email: str):
    """Look up a cached contact by email."""
    record = await asyncio.to_thread(get_contact_store().get_by_email, email)
    if not record:
        raise HTTPException(status_code=404, detail="Contact not found")
    return ContactResponse(**record.to_dict())


@router.get("/settings/{key}", response_model=SettingResponse)
async def get_setting(key: str):
    """Get a global setting value."""
    store = get_global_settings_store()
    updated_at = await asyncio.to_thread(store.get_updated_at, key)
    if updated_at is None:
        raise HTTPException(status_code=404, detail="Setting not found")
    value = await asyncio.to_thread(store.read, key)
    return SettingResponse(key=key, value=value, updated_at=updated_at)
