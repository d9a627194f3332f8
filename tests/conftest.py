"""
Pytest configuration and shared fixtures for bridge tests.

Test Categories:
- unit: Fast tests with no external dependencies (< 100ms each)
- slow: Tests that build the FastAPI app or exercise concurrency

Run categories:
- pytest -m unit              # Fast unit tests only
- pytest -m "not slow"        # Skip slow tests
- pytest                      # All tests

No test talks to the real GHL or Zoom. Remote behavior comes from
tests.fixtures.ghl_fakes.FakeGHLClient or from httpx.MockTransport.
"""
import pytest

from tests.fixtures.ghl_fakes import FakeGHLClient


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "slow: Slow tests (app startup, concurrency)")


@pytest.fixture(autouse=True)
def reset_singletons_after_test():
    yield
    from tests.reset_singletons import reset_all_singletons
    reset_all_singletons()


@pytest.fixture
def db_path(tmp_path):
    """Fresh SQLite file per test."""
    return str(tmp_path / "bridge.db")


@pytest.fixture
def ledger(db_path):
    from api.services.event_ledger import EventLedger
    return EventLedger(db_path)


@pytest.fixture
def contact_store(db_path):
    from api.services.contact_store import ContactStore
    return ContactStore(db_path)


@pytest.fixture
def settings_store(db_path):
    from api.services.global_settings import GlobalSettingsStore
    return GlobalSettingsStore(db_path)


@pytest.fixture
def fake_ghl():
    return FakeGHLClient()


@pytest.fixture
def resolver(contact_store, fake_ghl):
    from api.services.contact_resolver import ContactResolver
    return ContactResolver(contact_store, fake_ghl)


@pytest.fixture
def propagator(fake_ghl, settings_store):
    from api.services.tag_propagator import TagPropagator
    return TagPropagator(
        fake_ghl,
        settings_store,
        default_tag="Zoom Registration",
        fixed_tags=["zoom registered"],
        workflow_id=None,
    )


@pytest.fixture
def reconciler(ledger, resolver, propagator):
    from api.services.reconciliation import RegistrationReconciler
    return RegistrationReconciler(
        ledger=ledger,
        resolver=resolver,
        propagator=propagator,
        secret_token="zoom-secret",
        verify_signatures=False,
    )


@pytest.fixture
def contact_sync(contact_store, settings_store):
    from api.services.contact_sync import ContactSync
    return ContactSync(contact_store, settings_store, default_location_id="loc-test")
