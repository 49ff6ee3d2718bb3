"""Concurrency tests against the in-memory store using real threads."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from decimal import Decimal

import pytest

from campus_events.domain import ProofState, RegistrationState, TicketState
from campus_events.domain.errors import (
    CapacityExceeded,
    DomainError,
    InvalidStateTransition,
    TicketAlreadyUsed,
    WindowClosed,
)
from campus_events.services.event_service import EventService
from campus_events.services.payment_gate import PaymentGate
from campus_events.services.registration_service import RegistrationService
from campus_events.stores.memory_store import InMemoryEventStore


def run_together(*calls):
    """Start every call at the same instant; return results or raised domain errors."""
    barrier = threading.Barrier(len(calls))

    def attempt(call):
        barrier.wait()
        try:
            return call()
        except DomainError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        return list(pool.map(attempt, calls))


class TestCapacityRaces:
    """No overbooking under concurrent reservation attempts."""

    def test_last_slot_goes_to_exactly_one_registrant(
        self, registrations, events, make_event, participant_factory
    ):
        event = make_event(capacity=1)
        outcomes = run_together(
            lambda: registrations.register(participant_factory(1), str(event.id)),
            lambda: registrations.register(participant_factory(2), str(event.id)),
        )

        failures = [o for o in outcomes if isinstance(o, DomainError)]
        assert len(failures) == 1
        assert isinstance(failures[0], CapacityExceeded)
        assert events.get_event(str(event.id)).registered_count == 1

    @pytest.mark.parametrize("capacity", [1, 5, 12])
    def test_many_registrants(self, registrations, events, store, make_event, participant_factory, capacity):
        event = make_event(capacity=capacity)
        outcomes = run_together(
            *[
                (lambda n=n: registrations.register(participant_factory(n), str(event.id)))
                for n in range(30)
            ]
        )

        successes = [o for o in outcomes if not isinstance(o, DomainError)]
        assert len(successes) == capacity
        assert all(isinstance(o, CapacityExceeded) for o in outcomes if isinstance(o, DomainError))
        active = store.list_registrations(
            event_id=event.id, states=(RegistrationState.CONFIRMED,)
        )
        assert len(active) == capacity
        assert events.get_event(str(event.id)).registered_count == capacity

    def test_cancel_and_reclaim_interleaved(
        self, registrations, events, make_event, participant_factory
    ):
        event = make_event(capacity=1)
        holder = participant_factory(1)
        held = registrations.register(holder, str(event.id))

        outcomes = run_together(
            lambda: registrations.cancel(holder, str(held.id)),
            lambda: registrations.register(participant_factory(2), str(event.id)),
        )

        assert outcomes[0].state is RegistrationState.CANCELLED
        count = events.get_event(str(event.id)).registered_count
        if isinstance(outcomes[1], DomainError):
            assert isinstance(outcomes[1], CapacityExceeded)
            assert count == 0
        else:
            assert count == 1


class TestEventCancellationRace:
    def test_counter_matches_active_registrations(
        self, registrations, events, store, make_event, organizer, participant_factory
    ):
        event = make_event(capacity=50)
        calls = [
            (lambda n=n: registrations.register(participant_factory(n), str(event.id)))
            for n in range(10)
        ]
        outcomes = run_together(*calls, lambda: events.cancel(organizer, str(event.id)))

        for outcome in outcomes[:-1]:
            if isinstance(outcome, DomainError):
                # Lost to the cancellation before or after the slot was taken.
                assert isinstance(outcome, (WindowClosed, InvalidStateTransition))
        active = [
            r for r in store.list_registrations(event_id=event.id) if r.is_active
        ]
        assert active == []
        assert events.get_event(str(event.id)).registered_count == 0


class TestDoubleScan:
    """A ticket scanned twice at the same moment checks in exactly once."""

    def test_concurrent_scans(self, verification, registrations, store, make_event, participant, organizer):
        event = make_event()
        registration = registrations.register(participant, str(event.id))
        token = store.get_ticket(registration.ticket_id).token

        outcomes = run_together(
            lambda: verification.verify(token, organizer),
            lambda: verification.verify(token, organizer),
        )

        failures = [o for o in outcomes if isinstance(o, DomainError)]
        assert len(failures) == 1
        assert isinstance(failures[0], TicketAlreadyUsed)
        assert store.get_registration(registration.id).state is RegistrationState.CHECKED_IN


class InterruptingStore(InMemoryEventStore):
    """Starts a competing call on another thread while a ticket is being written."""

    def __init__(self) -> None:
        super().__init__()
        self.competitor = None
        self.threads: list[threading.Thread] = []

    def add_ticket(self, ticket) -> None:
        if self.competitor is not None:
            competitor, self.competitor = self.competitor, None
            thread = threading.Thread(target=competitor, args=(ticket,))
            thread.start()
            # Give the competitor every chance to land before the ticket does.
            thread.join(timeout=0.2)
            self.threads.append(thread)
        super().add_ticket(ticket)


class FailingTicketStore(InMemoryEventStore):
    def add_ticket(self, ticket) -> None:
        raise OSError("ticket table unavailable")


class TestConfirmationIsOneUnit:
    """Confirmation writes the registration and its ticket as one unit of work."""

    @pytest.fixture
    def store(self) -> InterruptingStore:
        return InterruptingStore()

    def test_cancel_during_confirmation_voids_the_ticket(
        self, registrations, store, make_event, participant
    ):
        outcomes = []

        def cancel(ticket):
            try:
                outcomes.append(registrations.cancel(participant, str(ticket.registration_id)))
            except DomainError as exc:
                outcomes.append(exc)

        event = make_event()
        store.competitor = cancel
        registration = registrations.register(participant, str(event.id))
        for thread in store.threads:
            thread.join()

        assert registration.state is RegistrationState.CONFIRMED
        assert [o.state for o in outcomes] == [RegistrationState.CANCELLED]
        assert store.get_registration(registration.id).state is RegistrationState.CANCELLED
        assert store.get_ticket(registration.ticket_id).state is TicketState.VOID


class TestApprovalIsOneUnit:
    """Approving a proof and confirming the registration succeed or fail together."""

    def test_failed_confirmation_rolls_back_approval(self, clock, codec, notifier, organizer, participant):
        store = FailingTicketStore()
        registrations = RegistrationService(store, codec=codec, notifier=notifier, clock=clock)
        events = EventService(store, registrations, clock=clock)
        payments = PaymentGate(store, registrations, clock=clock)
        event = events.create_event(
            organizer,
            name="Paid Workshop",
            starts_at=clock.now + timedelta(days=10),
            capacity=5,
            registration_opens_at=clock.now - timedelta(days=1),
            registration_closes_at=clock.now + timedelta(days=5),
            price=Decimal("80"),
        )
        events.publish(organizer, str(event.id))
        registration = registrations.register(participant, str(event.id))
        proof = payments.submit_proof(participant, str(registration.id), "uploads/receipt.png")

        with pytest.raises(OSError):
            payments.approve(organizer, str(registration.id))

        assert store.get_proof(proof.id).state is ProofState.PENDING
        assert store.get_registration(registration.id).state is RegistrationState.PENDING
        assert notifier.sent == []

    @pytest.mark.parametrize("competitor", ["registrant", "event"])
    def test_approve_racing_cancellation(
        self, payments, registrations, events, store, make_event, participant, organizer, competitor
    ):
        event = make_event(price=Decimal("80"))
        registration = registrations.register(participant, str(event.id))
        proof = payments.submit_proof(participant, str(registration.id), "uploads/receipt.png")
        cancellations = {
            "registrant": lambda: registrations.cancel(participant, str(registration.id)),
            "event": lambda: events.cancel(organizer, str(event.id)),
        }

        approved, _ = run_together(
            lambda: payments.approve(organizer, str(registration.id)),
            cancellations[competitor],
        )

        final = store.get_registration(registration.id)
        assert final.state is RegistrationState.CANCELLED
        assert events.get_event(str(event.id)).registered_count == 0
        if isinstance(approved, DomainError):
            assert isinstance(approved, InvalidStateTransition)
            assert store.get_proof(proof.id).state is ProofState.PENDING
            assert final.ticket_id is None
        else:
            assert store.get_proof(proof.id).state is ProofState.APPROVED
            assert store.get_ticket(final.ticket_id).state is TicketState.VOID
