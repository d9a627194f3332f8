"""
Bridge Services Package.

This package contains all business logic and data access services.
Use this module to import commonly-used services.

Example:
    from api.services import (
        get_event_ledger,
        get_contact_store,
        get_reconciler,
    )

Key service modules:
- event_ledger: processed Zoom event identities
- contact_store: email -> GHL contact id cache
- global_settings: operator settings pushed from GHL (globalZoomTag)
- ghl_client: GoHighLevel API client
- contact_resolver: cache -> search -> create -> conflict recovery
- tag_propagator: tags and workflow enrollment
- reconciliation: the Zoom webhook pipeline
- contact_sync: GHL contact-context intake
"""

# ============================================================================
# Storage
# ============================================================================

from api.services.event_ledger import (
    EventLedger,
    LedgerOutcome,
    get_event_ledger,
)

from api.services.contact_store import (
    ContactRecord,
    ContactStore,
    get_contact_store,
    normalize_email,
)

from api.services.global_settings import (
    GLOBAL_ZOOM_TAG_KEY,
    GlobalSettingsStore,
    get_global_settings_store,
)

# ============================================================================
# Reconciliation
# ============================================================================

from api.services.ghl_client import GHLClient, get_ghl_client

from api.services.contact_resolver import (
    ContactResolver,
    Resolution,
    ResolutionOutcome,
)

from api.services.tag_propagator import TagPropagator, PropagationResult

from api.services.reconciliation import (
    RegistrationReconciler,
    ReconcileResult,
    ReconcileStatus,
    get_reconciler,
)

from api.services.contact_sync import ContactSync, get_contact_sync


__all__ = [
    # Storage
    "EventLedger",
    "LedgerOutcome",
    "get_event_ledger",
    "ContactRecord",
    "ContactStore",
    "get_contact_store",
    "normalize_email",
    "GLOBAL_ZOOM_TAG_KEY",
    "GlobalSettingsStore",
    "get_global_settings_store",
    # Reconciliation
    "GHLClient",
    "get_ghl_client",
    "ContactResolver",
    "Resolution",
    "ResolutionOutcome",
    "TagPropagator",
    "PropagationResult",
    "RegistrationReconciler",
    "ReconcileResult",
    "ReconcileStatus",
    "get_reconciler",
    "ContactSync",
    "get_contact_sync",
]
