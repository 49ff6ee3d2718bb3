"""Unit tests for the payment verification gate."""

from decimal import Decimal

import pytest

from campus_events.domain import ProofState, RegistrationState
from campus_events.domain.errors import (
    InvalidStateTransition,
    ProofNotFound,
    Unauthorized,
)


@pytest.fixture
def paid_registration(registrations, make_event, participant):
    event = make_event(price=Decimal("200"))
    return registrations.register(participant, str(event.id))


class TestSubmitProof:
    """Tests for PaymentGate.submit_proof"""

    def test_submit_attaches_pending_proof(self, payments, store, paid_registration, participant):
        proof = payments.submit_proof(participant, str(paid_registration.id), "uploads/r1.png")

        assert proof.state is ProofState.PENDING
        assert store.get_registration(paid_registration.id).proof_id == proof.id

    def test_only_registrant_may_submit(self, payments, paid_registration, participant_factory):
        with pytest.raises(Unauthorized):
            payments.submit_proof(participant_factory(999), str(paid_registration.id), "x.png")

    def test_free_registration_needs_no_proof(self, payments, registrations, make_event, participant):
        registration = registrations.register(participant, str(make_event().id))
        with pytest.raises(InvalidStateTransition):
            payments.submit_proof(participant, str(registration.id), "x.png")

    def test_cannot_submit_while_proof_pending(self, payments, paid_registration, participant):
        payments.submit_proof(participant, str(paid_registration.id), "a.png")
        with pytest.raises(InvalidStateTransition):
            payments.submit_proof(participant, str(paid_registration.id), "b.png")


class TestReview:
    """Tests for PaymentGate.approve / reject"""

    def test_reject_resubmit_approve(
        self, payments, store, notifier, clock, paid_registration, participant, organizer
    ):
        """Submit, reject ("blurry image"), resubmit, approve: confirmed with one ticket."""
        registration_id = str(paid_registration.id)
        first = payments.submit_proof(participant, registration_id, "uploads/blurry.png")

        rejected = payments.reject(organizer, registration_id, "blurry image")
        assert rejected.state is ProofState.REJECTED
        assert rejected.rejection_reason == "blurry image"
        assert store.get_registration(paid_registration.id).state is RegistrationState.PENDING

        clock.advance(minutes=5)
        second = payments.submit_proof(participant, registration_id, "uploads/sharp.png")
        assert second.id != first.id

        confirmed = payments.approve(organizer, registration_id)

        assert confirmed.state is RegistrationState.CONFIRMED
        assert store.get_proof(second.id).state is ProofState.APPROVED
        assert store.get_proof(first.id).state is ProofState.REJECTED
        assert store.get_ticket(confirmed.ticket_id).registration_id == paid_registration.id
        assert [notice.ticket_id for notice in notifier.sent] == [confirmed.ticket_id]
        assert [p.id for p in payments.proof_history(participant, registration_id)] == [
            first.id,
            second.id,
        ]

    def test_approve_twice_is_illegal(self, payments, paid_registration, participant, organizer):
        payments.submit_proof(participant, str(paid_registration.id), "r.png")
        payments.approve(organizer, str(paid_registration.id))
        with pytest.raises(InvalidStateTransition):
            payments.approve(organizer, str(paid_registration.id))

    def test_approve_without_proof(self, payments, paid_registration, organizer):
        with pytest.raises(ProofNotFound):
            payments.approve(organizer, str(paid_registration.id))

    def test_review_is_owner_only(
        self, payments, paid_registration, participant, other_organizer, admin
    ):
        payments.submit_proof(participant, str(paid_registration.id), "r.png")
        with pytest.raises(Unauthorized):
            payments.approve(other_organizer, str(paid_registration.id))
        with pytest.raises(Unauthorized):
            payments.reject(admin, str(paid_registration.id), "nope")

    def test_cancelled_registration_cannot_be_approved(
        self, payments, events, paid_registration, participant, organizer
    ):
        """Event cancellation keeps the proof on record but review is closed."""
        proof = payments.submit_proof(participant, str(paid_registration.id), "r.png")
        events.cancel(organizer, str(paid_registration.event_id))

        with pytest.raises(InvalidStateTransition):
            payments.approve(organizer, str(paid_registration.id))
        assert payments.current_proof(participant, str(paid_registration.id)).id == proof.id
        assert payments.current_proof(participant, str(paid_registration.id)).state is ProofState.PENDING
