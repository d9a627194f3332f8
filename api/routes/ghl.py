"""
GHL contact-context webhook route.

POST /ghl-webhook is called by a GHL workflow "Webhook" action. It keeps the
local contact cache in step with GHL and carries the operator's current
zoom_tag.
"""
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.services.contact_sync import get_contact_sync
from api.services.errors import BridgeError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ghl"])


@router.post("/ghl-webhook")
async def ghl_webhook(request: Request):
    """Upsert a contact and update the global Zoom tag from GHL context."""
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body is not valid JSON")

    try:
        await get_contact_sync().handle_webhook(body)
    except BridgeError:
        raise
    except Exception as e:
        logger.exception(f"Error processing GHL webhook: {e}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return {"message": "Contact synced"}
