"""
Tests for the GHL API client.

Requests go through httpx.MockTransport; no network access.
"""
import json
import re

import httpx
import pytest

from api.services.errors import (
    RemoteAPIError,
    RemoteConflict,
    RemoteNotFound,
    RemotePermissionError,
    RemoteTransientError,
)
from api.services.ghl_client import GHLClient, raise_for_ghl_status
from api.services.resilience import RetryConfig

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def no_retry_delay(monkeypatch):
    def fast_config(max_retries):
        return RetryConfig(
            max_retries=max_retries,
            base_delay=0,
            retryable_exceptions=(RemoteTransientError,),
        )
    monkeypatch.setattr("api.services.ghl_client.ghl_retry_config", fast_config)


def make_client(handler, max_retries=2):
    return GHLClient(
        access_token="tok-123",
        location_id="loc-1",
        base_url="https://ghl.test",
        api_version="2021-07-28",
        timeout=5.0,
        max_retries=max_retries,
        contact_source="Zoom Integration",
        transport=httpx.MockTransport(handler),
    )


class TestRaiseForStatus:

    def _response(self, status, body=None):
        return httpx.Response(status, json=body if body is not None else {})

    def test_success_does_not_raise(self):
        raise_for_ghl_status("op", self._response(200))

    def test_status_mapping(self):
        with pytest.raises(RemoteNotFound):
            raise_for_ghl_status("op", self._response(404))
        with pytest.raises(RemotePermissionError):
            raise_for_ghl_status("op", self._response(403, {"message": "Forbidden"}))
        with pytest.raises(RemoteTransientError):
            raise_for_ghl_status("op", self._response(503))
        with pytest.raises(RemoteTransientError):
            raise_for_ghl_status("op", self._response(429))

    def test_duplicate_400_is_conflict_with_existing_id(self):
        resp = self._response(400, {"message": "duplicated contacts", "meta": {"contactId": "existing-9"}})
        with pytest.raises(RemoteConflict) as exc_info:
            raise_for_ghl_status("create_contact", resp)
        assert exc_info.value.existing_id == "existing-9"
        assert exc_info.value.http_status == 400

    def test_plain_400_is_generic_error(self):
        with pytest.raises(RemoteAPIError) as exc_info:
            raise_for_ghl_status("create_contact", self._response(400, {"message": "bad phone"}))
        assert not isinstance(exc_info.value, RemoteConflict)
        assert "bad phone" in str(exc_info.value)

    def test_non_json_error_body(self):
        resp = httpx.Response(502, text="<html>Bad Gateway</html>")
        with pytest.raises(RemoteTransientError) as exc_info:
            raise_for_ghl_status("op", resp)
        assert exc_info.value.body.startswith("<html>")


class TestSearchContact:

    @pytest.mark.asyncio
    async def test_sends_query_location_and_headers(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"contacts": [{"id": "c1", "email": "a@x.com"}]})

        client = make_client(handler)
        contact = await client.search_contact("a@x.com")
        await client.aclose()

        assert contact == {"id": "c1", "email": "a@x.com"}
        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == "/contacts/"
        assert request.url.params["query"] == "a@x.com"
        assert request.url.params["locationId"] == "loc-1"
        assert request.headers["Authorization"] == "Bearer tok-123"
        assert request.headers["Version"] == "2021-07-28"

    @pytest.mark.asyncio
    async def test_empty_result_is_none(self):
        client = make_client(lambda request: httpx.Response(200, json={"contacts": []}))
        assert await client.search_contact("a@x.com") is None
        await client.aclose()

    @pytest.mark.asyncio
    async def test_404_is_none(self):
        client = make_client(lambda request: httpx.Response(404, json={"message": "Not found"}))
        assert await client.search_contact("a@x.com") is None
        await client.aclose()

    @pytest.mark.asyncio
    async def test_403_raises_permission_error_without_retry(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(403, json={"message": "The token is not authorized for this scope."})

        client = make_client(handler)
        with pytest.raises(RemotePermissionError):
            await client.search_contact("a@x.com")
        await client.aclose()
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503, json={"message": "unavailable"})
            return httpx.Response(200, json={"contacts": [{"id": "c1"}]})

        client = make_client(handler, max_retries=2)
        contact = await client.search_contact("a@x.com")
        await client.aclose()

        assert contact["id"] == "c1"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, json={"message": "boom"})

        client = make_client(handler, max_retries=1)
        with pytest.raises(RemoteTransientError):
            await client.search_contact("a@x.com")
        await client.aclose()
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_transport_failure_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler, max_retries=0)
        with pytest.raises(RemoteTransientError):
            await client.search_contact("a@x.com")
        await client.aclose()


class TestCreateContact:

    @pytest.mark.asyncio
    async def test_posts_payload_without_empty_fields(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(201, json={"contact": {"id": "new-1"}})

        client = make_client(handler)
        contact = await client.create_contact("a@x.com", first_name="Ada")
        await client.aclose()

        assert contact["id"] == "new-1"
        assert seen[0] == {
            "email": "a@x.com",
            "firstName": "Ada",
            "locationId": "loc-1",
            "source": "Zoom Integration",
        }

    @pytest.mark.asyncio
    async def test_duplicate_raises_conflict(self):
        def handler(request):
            return httpx.Response(
                400,
                json={"message": "This location does not allow duplicated contacts.", "meta": {"contactId": "old-1"}},
            )

        client = make_client(handler)
        with pytest.raises(RemoteConflict) as exc_info:
            await client.create_contact("a@x.com")
        await client.aclose()
        assert exc_info.value.existing_id == "old-1"

    @pytest.mark.asyncio
    async def test_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, json={"message": "unavailable"})

        client = make_client(handler, max_retries=3)
        with pytest.raises(RemoteTransientError):
            await client.create_contact("a@x.com")
        await client.aclose()
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_response_without_id_is_error(self):
        client = make_client(lambda request: httpx.Response(200, json={"contact": {}}))
        with pytest.raises(RemoteAPIError):
            await client.create_contact("a@x.com")
        await client.aclose()


class TestTagsAndWorkflow:

    @pytest.mark.asyncio
    async def test_add_tags(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"tags": ["Promo", "zoom registered"]})

        client = make_client(handler)
        await client.add_tags("c1", ["Promo", "zoom registered"])
        await client.aclose()

        assert seen[0].method == "POST"
        assert seen[0].url.path == "/contacts/c1/tags"
        assert json.loads(seen[0].content) == {"tags": ["Promo", "zoom registered"]}

    @pytest.mark.asyncio
    async def test_add_to_workflow_sends_offset_timestamp(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"succeded": True})

        client = make_client(handler)
        await client.add_to_workflow("c1", "wf-1")
        await client.aclose()

        assert seen[0].url.path == "/contacts/c1/workflow/wf-1"
        start = json.loads(seen[0].content)["eventStartTime"]
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\+00:00", start)

    @pytest.mark.asyncio
    async def test_empty_response_body(self):
        client = make_client(lambda request: httpx.Response(200))
        assert await client.add_tags("c1", ["x"]) == {}
        await client.aclose()
