"""
Error taxonomy for the Zoom/GHL bridge.

Every failure the reconciliation path can raise derives from BridgeError and
carries the HTTP status the inbound caller should see. Remote API failures
are further split by what the resolver does with them:

- RemoteNotFound: a valid negative result (404)
- RemotePermissionError: scopes/location misconfigured (403), falls back to creation
- RemoteConflict: contact already exists (400 with meta.contactId), recovered
- RemoteTransientError: 5xx, 429, timeouts, transport errors; retryable
"""
from typing import Any, Optional

__all__ = [
    "BridgeError",
    "ValidationError",
    "AuthenticationError",
    "ConfigurationError",
    "DuplicateEvent",
    "PersistenceError",
    "RemoteAPIError",
    "RemotePermissionError",
    "RemoteNotFound",
    "RemoteConflict",
    "RemoteTransientError",
]


class BridgeError(Exception):
    """Base class for all bridge errors."""

    status_code: int = 500

    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context
        full_msg = message
        if context:
            full_msg += f" ({context})"
        super().__init__(full_msg)


class ValidationError(BridgeError):
    """Inbound request is missing required fields. Terminal, never retried."""

    status_code = 400


class AuthenticationError(BridgeError):
    """Webhook signature missing or invalid."""

    status_code = 401


class ConfigurationError(BridgeError):
    """A required secret or setting is not configured on this server."""

    status_code = 500


class DuplicateEvent(BridgeError):
    """Event identity already in the ledger. Not a failure for the caller."""

    status_code = 200

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__("Duplicate event", event_id)


class PersistenceError(BridgeError):
    """Local storage is unavailable or failed."""

    status_code = 500


class RemoteAPIError(BridgeError):
    """A GHL API call failed."""

    def __init__(
        self,
        operation: str,
        message: str,
        http_status: Optional[int] = None,
        body: Any = None,
    ):
        self.operation = operation
        self.http_status = http_status
        self.body = body
        status = f"HTTP {http_status}" if http_status else "no response"
        super().__init__(f"{operation} failed: {message}", status)


class RemotePermissionError(RemoteAPIError):
    """GHL returned 403, usually a token scope or location mismatch."""


class RemoteNotFound(RemoteAPIError):
    """GHL returned 404."""


class RemoteConflict(RemoteAPIError):
    """GHL refused to create a contact that already exists."""

    def __init__(self, operation: str, existing_id: str, body: Any = None):
        self.existing_id = existing_id
        super().__init__(operation, f"contact already exists as {existing_id}", 400, body)


class RemoteTransientError(RemoteAPIError):
    """5xx, rate limiting, timeout or transport failure."""
