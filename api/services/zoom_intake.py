"""
Zoom webhook intake.

Everything that has to happen before a Zoom delivery causes side effects:
- URL validation handshake (endpoint.url_validation)
- x-zm-signature verification
- Registrant extraction and event identity derivation

Event identity: payload.object.uuid / payload.object.id identify the
meeting or webinar, which every registrant shares, so neither is a usable
de-duplication key on its own. Registrations are keyed by
"{meetingId}_{email}_{event}" so two people registering for one session are
distinct while a redelivery for the same person is a duplicate.
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any, Optional

from api.services.contact_store import normalize_email
from api.services.errors import AuthenticationError, ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

URL_VALIDATION_EVENT = "endpoint.url_validation"
REGISTRATION_EVENTS = frozenset({
    "webinar.registration_created",
    "meeting.registration_created",
})

SIGNATURE_HEADER = "x-zm-signature"
TIMESTAMP_HEADER = "x-zm-request-timestamp"
SIGNATURE_VERSION = "v0"


@dataclass
class Registrant:
    """Registrant fields pulled from a Zoom registration payload."""
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


@dataclass
class ZoomEvent:
    """A parsed Zoom delivery. Transient, never persisted as a whole."""
    event: str
    payload: dict
    meeting_id: Optional[str] = None
    meeting_uuid: Optional[str] = None
    registrant: Optional[Registrant] = None

    @property
    def is_registration(self) -> bool:
        return self.event in REGISTRATION_EVENTS


def _hmac_hex(secret: str, message: str) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


# ---------------------------------------------------------------------------
# Handshake & signature
# ---------------------------------------------------------------------------

def build_validation_response(payload: Optional[dict], secret: str) -> dict:
    """
    Answer Zoom's endpoint URL validation challenge.

    Returns:
        {"plainToken": ..., "encryptedToken": hex HMAC-SHA256(plainToken)}

    Raises:
        ConfigurationError: ZOOM_SECRET_TOKEN is not set
        ValidationError: payload has no plainToken
    """
    if not secret:
        raise ConfigurationError("ZOOM_SECRET_TOKEN is not configured")

    plain_token = (payload or {}).get("plainToken")
    if not plain_token or not isinstance(plain_token, str):
        raise ValidationError("Missing plainToken in validation payload")

    return {
        "plainToken": plain_token,
        "encryptedToken": _hmac_hex(secret, plain_token),
    }


def compute_signature(raw_body: str, timestamp: str, secret: str) -> str:
    """Signature Zoom would send for this body: v0=hex(HMAC(v0:ts:body))."""
    message = f"{SIGNATURE_VERSION}:{timestamp}:{raw_body}"
    return f"{SIGNATURE_VERSION}={_hmac_hex(secret, message)}"


def verify_signature(
    raw_body: str,
    timestamp: Optional[str],
    signature: Optional[str],
    secret: str,
) -> None:
    """
    Verify an x-zm-signature header against the raw request body.

    Raises:
        AuthenticationError: any input missing, or signature mismatch
    """
    if not signature or not timestamp:
        logger.warning("Zoom webhook rejected: missing signature or timestamp header")
        raise AuthenticationError("Missing signature headers")
    if not secret:
        logger.error("Zoom webhook rejected: ZOOM_SECRET_TOKEN not configured for signature check")
        raise AuthenticationError("Signature verification not configured")

    expected = compute_signature(raw_body, timestamp, secret)
    if not hmac.compare_digest(expected, signature):
        logger.error(f"Invalid Zoom signature (timestamp {timestamp})")
        raise AuthenticationError("Invalid signature")


# ---------------------------------------------------------------------------
# Parsing & identity
# ---------------------------------------------------------------------------

def extract_registrant(payload: Optional[dict]) -> Optional[Registrant]:
    """
    Registrant fields from payload.object.registrant (or payload.object).

    Email is trimmed and lower-cased; phone is trimmed.
    """
    obj = (payload or {}).get("object")
    if not isinstance(obj, dict):
        return None
    data = obj.get("registrant")
    if not isinstance(data, dict):
        data = obj

    return Registrant(
        email=normalize_email(data.get("email")),
        first_name=_clean(data.get("first_name")),
        last_name=_clean(data.get("last_name")),
        phone=_clean(data.get("phone")),
    )


def parse_event(body: Any) -> ZoomEvent:
    """
    Parse a Zoom webhook body.

    Raises:
        ValidationError: body is not an object or has no event name
    """
    if not isinstance(body, dict):
        raise ValidationError("Webhook body must be a JSON object")
    event = body.get("event")
    if not event or not isinstance(event, str):
        raise ValidationError("Missing event")

    payload = body.get("payload")
    if not isinstance(payload, dict):
        payload = {}
    obj = payload.get("object")
    obj = obj if isinstance(obj, dict) else {}

    return ZoomEvent(
        event=event,
        payload=payload,
        meeting_id=_clean(obj.get("id")),
        meeting_uuid=_clean(obj.get("uuid")),
        registrant=extract_registrant(payload),
    )


def derive_event_id(zoom_event: ZoomEvent, request_timestamp: Optional[str] = None) -> Optional[str]:
    """
    Canonical de-duplication identity for a delivery.

    Order of preference:
    1. "{meetingId}_{email}_{event}" when both are present
    2. payload.object.uuid (session-level)
    3. x-zm-request-timestamp header (weakest; distinct deliveries may collide)

    Returns:
        The identity, or None when nothing usable is present
    """
    email = zoom_event.registrant.email if zoom_event.registrant else None
    if zoom_event.meeting_id and email:
        return f"{zoom_event.meeting_id}_{email}_{zoom_event.event}"
    if zoom_event.meeting_uuid:
        return zoom_event.meeting_uuid
    return _clean(request_timestamp)
