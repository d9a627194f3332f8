"""
Centralized singleton reset utilities for testing.

These functions reset global singleton instances to prevent test pollution.
Singletons that persist across tests can cause:
- Stores pointing at another test's temporary database
- Mock objects leaking between tests
- Settings changes not taking effect

Usage in conftest.py:
    @pytest.fixture(autouse=True)
    def reset_singletons_after_test():
        yield
        reset_all_singletons()
"""


def reset_all_singletons() -> None:
    """
    Reset every module-level singleton. Cheap, safe after every test.

    Resets:
    - ServiceHealthRegistry
    - EventLedger, ContactStore, GlobalSettingsStore
    - GHLClient (dropped, not closed)
    - RegistrationReconciler, ContactSync
    """
    from api.services.service_health import reset_service_health
    from api.services.event_ledger import reset_event_ledger
    from api.services.contact_store import reset_contact_store
    from api.services.global_settings import reset_global_settings_store
    from api.services.ghl_client import reset_ghl_client
    from api.services.reconciliation import reset_reconciler
    from api.services.contact_sync import reset_contact_sync

    reset_service_health()
    reset_event_ledger()
    reset_contact_store()
    reset_global_settings_store()
    reset_ghl_client()
    reset_reconciler()
    reset_contact_sync()
