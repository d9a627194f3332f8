"""
Zoom webhook route.

POST /zoom-webhook receives every event the Zoom app is subscribed to.
Responses Zoom sees: 200 processed/duplicate/ignored, 400 malformed,
401 bad signature, 500 anything else (Zoom retries 5xx).
"""
import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.services.errors import BridgeError, ValidationError
from api.services.reconciliation import get_reconciler

logger = logging.getLogger(__name__)

router = APIRouter(tags=["zoom"])


@router.post("/zoom-webhook")
async def zoom_webhook(request: Request):
    """Handle a Zoom webhook delivery (including URL validation)."""
    raw = await request.body()
    raw_body = raw.decode("utf-8", errors="replace")
    try:
        body = json.loads(raw_body) if raw_body else None
    except json.JSONDecodeError:
        raise ValidationError("Request body is not valid JSON")

    try:
        result = await get_reconciler().handle_webhook(body, raw_body, request.headers)
    except BridgeError:
        raise
    except Exception as e:
        logger.exception(f"Error processing Zoom webhook: {e}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return result.to_response()
