"""Unit tests for venue ticket verification."""

import pytest

from campus_events.domain import RegistrationState, TicketState
from campus_events.domain.errors import (
    InvalidStateTransition,
    MalformedToken,
    TicketAlreadyUsed,
    TicketInvalid,
    Unauthorized,
)


@pytest.fixture
def ticketed(registrations, store, make_event, participant):
    event = make_event()
    registration = registrations.register(participant, str(event.id))
    return registration, store.get_ticket(registration.ticket_id)


class TestVerify:
    """Tests for VerificationService.verify"""

    def test_scan_checks_in(self, verification, ticketed, organizer, clock):
        registration, ticket = ticketed

        result = verification.verify(ticket.token, organizer)

        assert result.registration.state is RegistrationState.CHECKED_IN
        assert result.ticket.state is TicketState.USED
        assert result.ticket.checked_in_at == clock.now

    def test_second_scan_is_rejected(self, verification, ticketed, organizer):
        """A checked-in ticket can never be checked in again."""
        _, ticket = ticketed
        verification.verify(ticket.token, organizer)
        with pytest.raises(TicketAlreadyUsed):
            verification.verify(ticket.token, organizer)

    def test_tampered_token(self, verification, ticketed, organizer):
        _, ticket = ticketed
        with pytest.raises(MalformedToken):
            verification.verify(ticket.token[:-1] + ("A" if ticket.token[-1] != "A" else "B"), organizer)

    def test_unknown_ticket(self, verification, codec, ticketed, organizer):
        registration, _ = ticketed
        forged = codec.encode("TKT-00000000000000000000", registration.event_id)
        with pytest.raises(TicketInvalid):
            verification.verify(forged, organizer)

    def test_ticket_bound_to_other_event(self, verification, codec, make_event, ticketed, organizer):
        _, ticket = ticketed
        other_event = make_event()
        with pytest.raises(TicketInvalid):
            verification.verify(codec.encode(ticket.id, other_event.id), organizer)

    def test_scanner_must_own_event(self, verification, ticketed, other_organizer, participant, admin):
        _, ticket = ticketed
        for scanner in (other_organizer, participant, admin):
            with pytest.raises(Unauthorized):
                verification.verify(ticket.token, scanner)

    def test_cancelled_registration_ticket_is_invalid(
        self, verification, registrations, ticketed, participant, organizer
    ):
        registration, ticket = ticketed
        registrations.cancel(participant, str(registration.id))
        with pytest.raises(TicketInvalid):
            verification.verify(ticket.token, organizer)

    def test_check_in_continues_after_close(self, verification, events, ticketed, organizer):
        registration, ticket = ticketed
        events.close(organizer, str(registration.event_id))
        assert verification.verify(ticket.token, organizer).registration.state is RegistrationState.CHECKED_IN

    def test_no_check_in_after_completion(self, verification, events, ticketed, organizer):
        registration, ticket = ticketed
        events.close(organizer, str(registration.event_id))
        events.complete(organizer, str(registration.event_id))
        with pytest.raises(InvalidStateTransition):
            verification.verify(ticket.token, organizer)
