"""
Test doubles for the remote side of the bridge.

FakeGHLClient mimics the GHL behaviors the resolver depends on; the
payload builders produce Zoom and GHL webhook bodies shaped like the real
deliveries.
"""
import asyncio
import itertools

from api.services.errors import RemoteConflict


class FakeGHLClient:
    """
    In-memory stand-in for GHLClient.

    Creating an email that already exists fails with RemoteConflict carrying
    the existing id, like GHL's duplicate-contact 400. Set the *_error
    attributes to make a call raise.
    """

    def __init__(self, location_id: str = "loc-test"):
        self.location_id = location_id
        self.contacts: dict[str, str] = {}
        self.tags: dict[str, list[str]] = {}
        self.workflows: list[tuple[str, str]] = []
        self.calls: list[tuple] = []
        self.search_error = None
        self.create_error = None
        self.tag_error = None
        self.workflow_error = None
        self.hide_from_search = False
        self._ids = itertools.count(1)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def search_contact(self, email):
        self.calls.append(("search", email))
        await asyncio.sleep(0)
        if self.search_error:
            raise self.search_error
        contact_id = self.contacts.get(email)
        if contact_id and not self.hide_from_search:
            return {"id": contact_id, "email": email}
        return None

    async def create_contact(self, email, first_name=None, last_name=None, phone=None):
        self.calls.append(("create", email, first_name, last_name, phone))
        await asyncio.sleep(0)
        if self.create_error:
            raise self.create_error
        if email in self.contacts:
            raise RemoteConflict("create_contact", self.contacts[email])
        contact_id = f"ghl-{next(self._ids)}"
        self.contacts[email] = contact_id
        return {"id": contact_id, "email": email}

    async def add_tags(self, contact_id, tags):
        self.calls.append(("tags", contact_id, list(tags)))
        await asyncio.sleep(0)
        if self.tag_error:
            raise self.tag_error
        existing = self.tags.setdefault(contact_id, [])
        for tag in tags:
            if tag not in existing:
                existing.append(tag)
        return {"tags": existing}

    async def add_to_workflow(self, contact_id, workflow_id, event_start_time=None):
        self.calls.append(("workflow", contact_id, workflow_id))
        await asyncio.sleep(0)
        if self.workflow_error:
            raise self.workflow_error
        self.workflows.append((contact_id, workflow_id))
        return {"succeded": True}


def registration_body(
    email: str = "a@x.com",
    meeting_id="555",
    event: str = "webinar.registration_created",
    **registrant,
) -> dict:
    """A Zoom registration webhook body."""
    data = {"email": email, "first_name": "Ada", "last_name": "Lovelace", "phone": "+15550100"}
    data.update(registrant)
    return {
        "event": event,
        "payload": {
            "account_id": "acct-1",
            "object": {
                "id": meeting_id,
                "uuid": "sess-uuid-1==",
                "topic": "Quarterly webinar",
                "registrant": data,
            },
        },
    }
