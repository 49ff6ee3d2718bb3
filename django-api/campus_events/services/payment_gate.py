"""Payment verification gate for registrations with an amount due.

A participant uploads proof of payment; the event's organizer approves or
rejects it. Approval confirms the registration. After a rejection the
participant may submit a new proof, which becomes the registration's current
proof; earlier proofs stay on record but are never consulted again.
"""

import structlog
from django.utils import timezone

from campus_events.domain import (
    Actor,
    PaymentProof,
    ProofId,
    ProofState,
    Registration,
    RegistrationId,
    RegistrationState,
)
from campus_events.domain.errors import (
    InvalidStateTransition,
    ProofNotFound,
    Unauthorized,
)
from campus_events.services.guards import (
    Clock,
    compare_and_swap,
    load_event,
    load_registration,
    require_event_owner,
)
from campus_events.services.registration_service import RegistrationService
from campus_events.stores.interfaces import EventStore

logger = structlog.get_logger(__name__)

# Review states that block a new submission.
_OPEN_PROOF_STATES = frozenset({ProofState.PENDING, ProofState.APPROVED})


class PaymentGate:
    """Service for payment proof submission and review."""

    def __init__(
        self,
        store: EventStore,
        registrations: RegistrationService,
        clock: Clock = timezone.now,
    ) -> None:
        self._store = store
        self._registrations = registrations
        self._clock = clock

    def submit_proof(
        self, actor: Actor, registration_id: str | RegistrationId, artifact_ref: str
    ) -> PaymentProof:
        """Attach a new pending proof to the participant's registration.

        Raises:
            Unauthorized: If the actor is not the registrant.
            InvalidStateTransition: If no payment is due, the registration is not
                pending, or the current proof is still pending or already approved.
        """
        registration = load_registration(self._store, registration_id)
        if registration.participant_id != actor.user_id:
            raise Unauthorized()
        if not registration.requires_payment:
            raise InvalidStateTransition("payment proof", "not_required", ProofState.PENDING)
        event = load_event(self._store, registration.event_id)
        event.ensure_registrations_mutable(RegistrationState.PENDING)

        now = self._clock()
        proof = PaymentProof(
            id=ProofId.new(),
            registration_id=registration.id,
            artifact_ref=artifact_ref,
            state=ProofState.PENDING,
            submitted_at=now,
        )

        def attach(current: Registration) -> Registration:
            latest = self._registrations.latest_proof(current)
            if latest is not None and latest.state in _OPEN_PROOF_STATES:
                raise InvalidStateTransition("payment proof", latest.state, ProofState.PENDING)
            return current.attach_proof(proof.id, now)

        with self._store.atomic():
            compare_and_swap(
                "registration",
                registration.id,
                load=lambda: load_registration(self._store, registration.id),
                change=attach,
                save=self._store.update_registration,
            )
            self._store.add_proof(proof)
        logger.info(
            "payment_proof_submitted",
            registration_id=str(registration.id),
            proof_id=str(proof.id),
        )
        return proof

    def approve(self, actor: Actor, registration_id: str | RegistrationId) -> Registration:
        """Approve the current proof and confirm the registration.

        Raises:
            Unauthorized: If the actor does not own the event.
            ProofNotFound: If no proof was submitted.
            InvalidStateTransition: If the proof was already reviewed or the
                registration is no longer pending.
        """
        registration, proof = self._reviewable(actor, registration_id)
        with self._store.atomic():
            reviewed = compare_and_swap(
                "payment proof",
                proof.id,
                load=lambda: self._load_proof(proof.id, registration.id),
                change=lambda fresh: fresh.approve(actor.user_id, self._clock()),
                save=self._store.update_proof,
            )
            confirmed = self._registrations.confirm(registration.id)
        logger.info(
            "payment_proof_approved",
            registration_id=str(registration.id),
            proof_id=str(reviewed.id),
            reviewer_id=actor.user_id,
        )
        return confirmed

    def reject(
        self, actor: Actor, registration_id: str | RegistrationId, reason: str
    ) -> PaymentProof:
        """Reject the current proof; the registration stays pending.

        Raises:
            Unauthorized: If the actor does not own the event.
            ProofNotFound: If no proof was submitted.
            InvalidStateTransition: If the proof was already reviewed.
        """
        registration, proof = self._reviewable(actor, registration_id)
        reviewed = compare_and_swap(
            "payment proof",
            proof.id,
            load=lambda: self._load_proof(proof.id, registration.id),
            change=lambda fresh: fresh.reject(actor.user_id, reason, self._clock()),
            save=self._store.update_proof,
        )
        logger.info(
            "payment_proof_rejected",
            registration_id=str(registration.id),
            proof_id=str(reviewed.id),
            reviewer_id=actor.user_id,
        )
        return reviewed

    def current_proof(self, actor: Actor, registration_id: str | RegistrationId) -> PaymentProof:
        registration = self._registrations.get_registration(actor, registration_id)
        proof = self._registrations.latest_proof(registration)
        if proof is None:
            raise ProofNotFound(registration.id)
        return proof

    def proof_history(
        self, actor: Actor, registration_id: str | RegistrationId
    ) -> list[PaymentProof]:
        registration = self._registrations.get_registration(actor, registration_id)
        return self._store.list_proofs(registration.id)

    def _reviewable(
        self, actor: Actor, registration_id: str | RegistrationId
    ) -> tuple[Registration, PaymentProof]:
        registration = load_registration(self._store, registration_id)
        event = load_event(self._store, registration.event_id)
        require_event_owner(actor, event, allow_admin=False)
        if registration.state is not RegistrationState.PENDING:
            raise InvalidStateTransition("registration", registration.state, RegistrationState.CONFIRMED)
        event.ensure_registrations_mutable(RegistrationState.CONFIRMED)
        proof = self._registrations.latest_proof(registration)
        if proof is None:
            raise ProofNotFound(registration.id)
        return registration, proof

    def _load_proof(self, proof_id: ProofId, registration_id: RegistrationId) -> PaymentProof:
        proof = self._store.get_proof(proof_id)
        if proof is None:
            raise ProofNotFound(registration_id)
        return proof

