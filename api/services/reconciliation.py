"""
Registration event reconciliation pipeline.

    Zoom delivery
      -> intake (handshake / signature / identity)
      -> event ledger (duplicates stop here)
      -> contact resolver (cache -> search -> create -> conflict recovery)
      -> tag propagator (global tag + fixed tags, optional workflow)

The ledger entry is written before any remote call, so processing is
at-most-once per event identity: a delivery that fails halfway is not
re-run when Zoom retries it.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from api.services.contact_resolver import ContactResolver, Resolution
from api.services.contact_store import get_contact_store
from api.services.errors import DuplicateEvent, PersistenceError
from api.services.event_ledger import EventLedger, LedgerOutcome, get_event_ledger
from api.services.ghl_client import get_ghl_client
from api.services.global_settings import get_global_settings_store
from api.services.service_health import mark_service_failed
from api.services.tag_propagator import PropagationResult, TagPropagator
from api.services.zoom_intake import (
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    URL_VALIDATION_EVENT,
    ZoomEvent,
    build_validation_response,
    derive_event_id,
    parse_event,
    verify_signature,
)
from config.settings import settings

logger = logging.getLogger(__name__)


class ReconcileStatus(str, Enum):
    """Terminal state of one webhook delivery."""
    VALIDATION = "validation"      # URL validation handshake answered
    DUPLICATE = "duplicate"        # identity already in the ledger
    PROCESSED = "processed"        # contact resolved, propagation attempted
    UNRESOLVED = "unresolved"      # contact could not be resolved, tagging skipped
    SKIPPED = "skipped"            # registration without an email
    IGNORED = "ignored"            # event type we don't act on


@dataclass
class ReconcileResult:
    status: ReconcileStatus
    event: Optional[str] = None
    event_id: Optional[str] = None
    resolution: Optional[Resolution] = None
    propagation: Optional[PropagationResult] = None
    validation_response: Optional[dict] = None

    def to_response(self) -> dict:
        """Body returned to Zoom."""
        if self.status == ReconcileStatus.VALIDATION:
            return self.validation_response or {}
        if self.status == ReconcileStatus.DUPLICATE:
            return {"message": "Duplicate event"}
        return {"message": "Webhook received"}


class RegistrationReconciler:
    """Runs a Zoom delivery through the reconciliation pipeline."""

    def __init__(
        self,
        ledger: EventLedger,
        resolver: ContactResolver,
        propagator: TagPropagator,
        secret_token: str = "",
        verify_signatures: bool = False,
    ):
        self.ledger = ledger
        self.resolver = resolver
        self.propagator = propagator
        self.secret_token = secret_token
        self.verify_signatures = verify_signatures

    async def handle_webhook(
        self,
        body: Any,
        raw_body: str = "",
        headers: Optional[Mapping[str, str]] = None,
    ) -> ReconcileResult:
        """
        Process one Zoom webhook delivery.

        Raises:
            ValidationError: malformed body or handshake without plainToken
            ConfigurationError: handshake received but no secret configured
            AuthenticationError: signature verification enabled and failed
            PersistenceError: ledger or contact cache unavailable
        """
        headers = headers or {}
        zoom_event = parse_event(body)

        if zoom_event.event == URL_VALIDATION_EVENT:
            response = build_validation_response(zoom_event.payload, self.secret_token)
            logger.info("Answered Zoom URL validation challenge")
            return ReconcileResult(
                ReconcileStatus.VALIDATION, zoom_event.event, validation_response=response
            )

        logger.info(f"Received Zoom event: {zoom_event.event}")

        if self.verify_signatures:
            verify_signature(
                raw_body,
                headers.get(TIMESTAMP_HEADER),
                headers.get(SIGNATURE_HEADER),
                self.secret_token,
            )

        event_id = derive_event_id(zoom_event, headers.get(TIMESTAMP_HEADER))
        try:
            await self._claim(zoom_event, event_id)
        except DuplicateEvent:
            return ReconcileResult(ReconcileStatus.DUPLICATE, zoom_event.event, event_id)

        if not zoom_event.is_registration:
            logger.info(f"Event type {zoom_event.event} received but not processed")
            return ReconcileResult(ReconcileStatus.IGNORED, zoom_event.event, event_id)

        result = await self.handle_registration(zoom_event)
        result.event_id = event_id
        return result

    async def _claim(self, zoom_event: ZoomEvent, event_id: Optional[str]) -> None:
        """Record the identity in the ledger; DuplicateEvent if already there."""
        if not event_id:
            logger.warning(
                f"No usable identity for {zoom_event.event}, processing without de-duplication"
            )
            return

        email = zoom_event.registrant.email if zoom_event.registrant else None
        try:
            outcome = await asyncio.to_thread(
                self.ledger.record_if_new, event_id, zoom_event.event, email
            )
        except PersistenceError as e:
            mark_service_failed("database", str(e))
            raise
        if outcome == LedgerOutcome.DUPLICATE:
            raise DuplicateEvent(event_id)

    async def handle_registration(self, zoom_event: ZoomEvent) -> ReconcileResult:
        """Resolve the registrant and propagate tags. Remote failures never raise."""
        registrant = zoom_event.registrant
        if registrant is None or not registrant.email:
            logger.warning("Skipping registration: missing email")
            return ReconcileResult(ReconcileStatus.SKIPPED, zoom_event.event)

        logger.info(
            f"Processing registration for: {registrant.email} (Phone: {registrant.phone or 'N/A'})"
        )

        resolution = await self.resolver.resolve(registrant)
        if not resolution.resolved:
            logger.warning(
                f"Registration for {registrant.email} left unresolved: {resolution.error}"
            )
            return ReconcileResult(
                ReconcileStatus.UNRESOLVED, zoom_event.event, resolution=resolution
            )

        propagation = await self.propagator.propagate(resolution.contact_id)
        logger.info(
            f"Processing complete for {registrant.email} "
            f"({resolution.outcome.value}, tagged={propagation.tagged}, "
            f"workflow={propagation.workflow_enrolled})"
        )
        return ReconcileResult(
            ReconcileStatus.PROCESSED,
            zoom_event.event,
            resolution=resolution,
            propagation=propagation,
        )


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_reconciler: Optional[RegistrationReconciler] = None


def build_reconciler() -> RegistrationReconciler:
    """Wire the pipeline from settings and the store/client singletons."""
    client = get_ghl_client()
    return RegistrationReconciler(
        ledger=get_event_ledger(),
        resolver=ContactResolver(get_contact_store(), client),
        propagator=TagPropagator(
            client,
            get_global_settings_store(),
            default_tag=settings.default_global_tag,
            fixed_tags=settings.registration_tags,
            workflow_id=settings.ghl_workflow_id.strip() or None,
        ),
        secret_token=settings.zoom_secret_token,
        verify_signatures=settings.verify_zoom_signature,
    )


def get_reconciler() -> RegistrationReconciler:
    global _reconciler
    if _reconciler is None:
        _reconciler = build_reconciler()
    return _reconciler


def reset_reconciler() -> None:
    global _reconciler
    _reconciler = None
