"""Tests for ticket identifiers, signed tokens and QR rendering."""

import base64
from datetime import datetime, timezone

import pytest

from campus_events.domain import EventId, Money, Registration, RegistrationId, RegistrationState, TicketState
from campus_events.domain.errors import ErrorCode, MalformedToken
from campus_events.services.ticket_codec import TicketCodec, render_qr_data_uri

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def registration() -> Registration:
    return Registration(
        id=RegistrationId.new(),
        event_id=EventId.new(),
        participant_id=42,
        participant_email="s@campus.test",
        state=RegistrationState.PENDING,
        amount_due=Money.zero(),
        created_at=T0,
        updated_at=T0,
    )


class TestIssue:
    """Tests for TicketCodec.issue"""

    def test_issue_binds_ticket_to_registration(self, codec, registration):
        ticket = codec.issue(registration, T0)
        assert ticket.registration_id == registration.id
        assert ticket.event_id == registration.event_id
        assert ticket.state is TicketState.VALID
        assert ticket.issued_at == T0

    def test_ticket_ids_are_high_entropy(self, codec):
        ids = {codec.new_ticket_id() for _ in range(200)}
        assert len(ids) == 200
        assert all(ticket_id.startswith("TKT-") and len(ticket_id) == 24 for ticket_id in ids)


class TestDecode:
    """Tests for TicketCodec.decode"""

    def test_decode_returns_issued_identifiers(self, codec, registration):
        ticket = codec.issue(registration, T0)
        claims = codec.decode(ticket.token)
        assert claims.ticket_id == ticket.id
        assert claims.event_id == registration.event_id

    def test_any_single_bit_flip_is_rejected(self, codec, registration):
        """Corrupting any one bit of the token fails the integrity check."""
        token = codec.issue(registration, T0).token
        for position, char in enumerate(token):
            for bit in range(7):
                corrupted = token[:position] + chr(ord(char) ^ (1 << bit)) + token[position + 1 :]
                with pytest.raises(MalformedToken):
                    codec.decode(corrupted)

    def test_token_signed_with_other_salt_is_rejected(self, registration):
        token = TicketCodec(salt="another.purpose").encode("TKT-ABC", registration.event_id)
        with pytest.raises(MalformedToken) as excinfo:
            TicketCodec(salt="tests.ticket").decode(token)
        assert excinfo.value.code is ErrorCode.MALFORMED_TOKEN

    @pytest.mark.parametrize("token", ["", "garbage", None, 12345])
    def test_garbage_is_rejected(self, codec, token):
        with pytest.raises(MalformedToken):
            codec.decode(token)


class TestQrRendering:
    """Tests for render_qr_data_uri"""

    def test_renders_png_data_uri(self, codec, registration):
        uri = render_qr_data_uri(codec.issue(registration, T0).token)
        prefix = "data:image/png;base64,"
        assert uri.startswith(prefix)
        assert base64.b64decode(uri[len(prefix) :]).startswith(b"\x89PNG")
