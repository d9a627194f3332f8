"""
Tests for Zoom webhook intake: handshake, signatures, parsing and event
identity.
"""
import hashlib
import hmac

import pytest

from api.services.errors import AuthenticationError, ConfigurationError, ValidationError
from api.services.zoom_intake import (
    build_validation_response,
    compute_signature,
    derive_event_id,
    extract_registrant,
    parse_event,
    verify_signature,
)
from tests.fixtures.ghl_fakes import registration_body

pytestmark = pytest.mark.unit


class TestValidationHandshake:

    def test_encrypts_plain_token(self):
        response = build_validation_response({"plainToken": "abc123"}, "secret")

        expected = hmac.new(b"secret", b"abc123", hashlib.sha256).hexdigest()
        assert response == {"plainToken": "abc123", "encryptedToken": expected}

    def test_missing_secret_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            build_validation_response({"plainToken": "abc123"}, "")

    def test_missing_plain_token_is_validation_error(self):
        with pytest.raises(ValidationError):
            build_validation_response({}, "secret")
        with pytest.raises(ValidationError):
            build_validation_response(None, "secret")


class TestSignature:

    def test_signature_format(self):
        sig = compute_signature('{"event":"x"}', "1700000000", "secret")
        message = b'v0:1700000000:{"event":"x"}'
        assert sig == "v0=" + hmac.new(b"secret", message, hashlib.sha256).hexdigest()

    def test_valid_signature_passes(self):
        body = '{"event":"webinar.registration_created"}'
        sig = compute_signature(body, "1700000000", "secret")
        verify_signature(body, "1700000000", sig, "secret")

    def test_tampered_body_fails(self):
        sig = compute_signature('{"a":1}', "1700000000", "secret")
        with pytest.raises(AuthenticationError):
            verify_signature('{"a":2}', "1700000000", sig, "secret")

    def test_missing_headers_fail(self):
        with pytest.raises(AuthenticationError):
            verify_signature("{}", None, "v0=abc", "secret")
        with pytest.raises(AuthenticationError):
            verify_signature("{}", "1700000000", None, "secret")

    def test_missing_secret_fails(self):
        with pytest.raises(AuthenticationError):
            verify_signature("{}", "1700000000", "v0=abc", "")


class TestParseEvent:

    def test_parses_registration(self):
        event = parse_event(registration_body(email=" Ada@Example.com ", phone=" +1555 "))

        assert event.event == "webinar.registration_created"
        assert event.is_registration
        assert event.meeting_id == "555"
        assert event.meeting_uuid == "sess-uuid-1=="
        assert event.registrant.email == "ada@example.com"
        assert event.registrant.phone == "+1555"
        assert event.registrant.first_name == "Ada"

    def test_numeric_meeting_id_becomes_string(self):
        event = parse_event(registration_body(meeting_id=81234567890))
        assert event.meeting_id == "81234567890"

    def test_meeting_registration_is_registration(self):
        assert parse_event(registration_body(event="meeting.registration_created")).is_registration

    def test_other_events_are_not_registrations(self):
        event = parse_event({"event": "meeting.started", "payload": {"object": {"id": "1"}}})
        assert not event.is_registration

    def test_missing_event_rejected(self):
        with pytest.raises(ValidationError):
            parse_event({"payload": {}})

    def test_non_object_rejected(self):
        with pytest.raises(ValidationError):
            parse_event(["event"])

    def test_missing_payload_tolerated(self):
        event = parse_event({"event": "webinar.registration_created"})
        assert event.payload == {}
        assert event.registrant is None

    def test_registrant_falls_back_to_object(self):
        registrant = extract_registrant({"object": {"email": "b@x.com", "first_name": "Bo"}})
        assert registrant.email == "b@x.com"
        assert registrant.first_name == "Bo"

    def test_blank_email_is_none(self):
        event = parse_event(registration_body(email="   "))
        assert event.registrant.email is None


class TestDeriveEventId:

    def test_uses_meeting_email_and_event(self):
        event = parse_event(registration_body(email="A@x.com"))
        assert derive_event_id(event) == "555_a@x.com_webinar.registration_created"

    def test_distinct_registrants_get_distinct_ids(self):
        first = derive_event_id(parse_event(registration_body(email="a@x.com")))
        second = derive_event_id(parse_event(registration_body(email="b@x.com")))
        assert first != second

    def test_falls_back_to_uuid_without_email(self):
        event = parse_event(registration_body(email=None))
        assert derive_event_id(event) == "sess-uuid-1=="

    def test_falls_back_to_request_timestamp(self):
        event = parse_event({"event": "meeting.started", "payload": {"object": {}}})
        assert derive_event_id(event, "1700000000") == "1700000000"

    def test_none_without_any_identity(self):
        event = parse_event({"event": "meeting.started"})
        assert derive_event_id(event) is None
