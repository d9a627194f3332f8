"""
GoHighLevel (LeadConnector) API client.

Thin async wrapper over the four endpoints the bridge needs:
- GET  /contacts/?query=<email>                 search
- POST /contacts/                               create
- POST /contacts/{id}/tags                      add tags
- POST /contacts/{id}/workflow/{workflowId}     enroll in workflow

HTTP failures are translated into the errors in api.services.errors so the
resolver can branch on meaning (not found, permission, conflict, transient)
instead of status codes. Search and tagging are retried on transient errors;
creation and enrollment are not, since neither is idempotent on GHL's side.
"""
import logging
from datetime import datetime
from typing import Any, Optional

import httpx

from api.services.errors import (
    RemoteAPIError,
    RemoteConflict,
    RemoteNotFound,
    RemotePermissionError,
    RemoteTransientError,
)
from api.services.resilience import ghl_retry_config, is_retryable_status, retry_async
from api.utils.datetime_utils import format_offset_timestamp
from config.settings import settings

logger = logging.getLogger(__name__)


def _response_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text[:500]


def _conflict_contact_id(body: Any) -> Optional[str]:
    """Existing contact id GHL embeds in a duplicate-contact 400 (meta.contactId)."""
    if not isinstance(body, dict):
        return None
    meta = body.get("meta")
    if isinstance(meta, dict) and meta.get("contactId"):
        return str(meta["contactId"])
    return None


def raise_for_ghl_status(operation: str, resp: httpx.Response) -> None:
    """Raise the matching RemoteAPIError subclass for a non-2xx response."""
    if resp.is_success:
        return

    status = resp.status_code
    body = _response_body(resp)
    message = body.get("message", resp.reason_phrase) if isinstance(body, dict) else resp.reason_phrase

    if status == 404:
        raise RemoteNotFound(operation, str(message), status, body)
    if status == 403:
        raise RemotePermissionError(operation, str(message), status, body)
    if status == 400:
        existing_id = _conflict_contact_id(body)
        if existing_id:
            raise RemoteConflict(operation, existing_id, body)
    if is_retryable_status(status):
        raise RemoteTransientError(operation, str(message), status, body)
    raise RemoteAPIError(operation, str(message), status, body)


class GHLClient:
    """
    Async GHL API client.

    One httpx.AsyncClient is shared for connection pooling; call aclose()
    on shutdown. Pass `transport` to substitute an httpx transport (tests).
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        location_id: Optional[str] = None,
        base_url: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        contact_source: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.location_id = location_id if location_id is not None else settings.ghl_location_id
        self.contact_source = contact_source or settings.contact_source
        self.max_retries = settings.ghl_max_retries if max_retries is None else max_retries

        token = access_token if access_token is not None else settings.ghl_access_token
        if not token:
            logger.warning("GHL_ACCESS_TOKEN not configured, GHL calls will be rejected")

        self._client = httpx.AsyncClient(
            base_url=base_url or settings.ghl_base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Version": api_version or settings.ghl_api_version,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout or settings.ghl_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, operation: str, method: str, path: str, **kwargs) -> Any:
        """Send one request, mapping transport failures and error statuses."""
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteTransientError(operation, f"timed out: {e}") from e
        except httpx.TransportError as e:
            raise RemoteTransientError(operation, f"transport error: {e}") from e

        raise_for_ghl_status(operation, resp)
        if not resp.content:
            return {}
        return _response_body(resp)

    def _retrying(self, func):
        return retry_async(config=ghl_retry_config(self.max_retries))(func)

    # -----------------------------------------------------------------------
    # Contacts
    # -----------------------------------------------------------------------

    async def search_contact(self, email: str) -> Optional[dict]:
        """
        Find a contact by email.

        Returns:
            First matching contact dict, or None when GHL has no match
            (including a 404 response)

        Raises:
            RemotePermissionError: 403, token lacks contacts.readonly or wrong location
            RemoteTransientError: 5xx/timeouts after retries
            RemoteAPIError: any other failure
        """
        async def _search() -> Any:
            return await self._request(
                "search_contact", "GET", "/contacts/",
                params={"query": email, "locationId": self.location_id},
            )

        try:
            data = await self._retrying(_search)()
        except RemoteNotFound:
            return None

        contacts = data.get("contacts") if isinstance(data, dict) else None
        if not contacts:
            return None
        return contacts[0]

    async def create_contact(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> dict:
        """
        Create a contact.

        Returns:
            The created contact dict (has "id")

        Raises:
            RemoteConflict: GHL says the contact exists; existing_id carries its id
            RemoteAPIError: any other failure
        """
        payload = {
            "email": email,
            "firstName": first_name,
            "lastName": last_name,
            "phone": phone,
            "locationId": self.location_id,
            "source": self.contact_source,
        }
        payload = {k: v for k, v in payload.items() if v is not None}

        data = await self._request("create_contact", "POST", "/contacts/", json=payload)
        contact = data.get("contact") if isinstance(data, dict) else None
        if not contact or not contact.get("id"):
            raise RemoteAPIError("create_contact", "response did not include a contact id", body=data)
        return contact

    async def add_tags(self, contact_id: str, tags: list[str]) -> dict:
        """Add tags to a contact. GHL ignores tags the contact already has."""
        async def _add() -> Any:
            return await self._request(
                "add_tags", "POST", f"/contacts/{contact_id}/tags",
                json={"tags": tags},
            )

        return await self._retrying(_add)()

    async def add_to_workflow(
        self,
        contact_id: str,
        workflow_id: str,
        event_start_time: Optional[datetime] = None,
    ) -> dict:
        """
        Enroll a contact in a workflow.

        eventStartTime is sent as YYYY-MM-DDTHH:MM:SS+00:00; GHL answers 422
        to the "Z" form that isoformat()/JavaScript produce.
        """
        return await self._request(
            "add_to_workflow", "POST", f"/contacts/{contact_id}/workflow/{workflow_id}",
            json={"eventStartTime": format_offset_timestamp(event_start_time)},
        )


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_ghl_client: Optional[GHLClient] = None


def get_ghl_client() -> GHLClient:
    global _ghl_client
    if _ghl_client is None:
        _ghl_client = GHLClient()
    return _ghl_client


async def close_ghl_client() -> None:
    global _ghl_client
    if _ghl_client is not None:
        await _ghl_client.aclose()
        _ghl_client = None


def reset_ghl_client() -> None:
    global _ghl_client
    _ghl_client = None
