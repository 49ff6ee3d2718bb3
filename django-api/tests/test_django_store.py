"""Integration tests running the services on the Django ORM store.

Run with: pytest tests/test_django_store.py -v
"""

from decimal import Decimal

import pytest

from campus_events import models
from campus_events.domain import (
    EventState,
    MerchandiseSelection,
    ProofState,
    RegistrationState,
    TicketState,
)
from campus_events.domain.errors import (
    CapacityExceeded,
    DuplicateRegistration,
    FeedbackAlreadySubmitted,
    InvalidEventData,
    MerchandiseUnavailable,
    TicketAlreadyUsed,
    WindowClosed,
)
from campus_events.stores.django_store import DjangoEventStore


@pytest.fixture
def store(db) -> DjangoEventStore:
    return DjangoEventStore()


@pytest.mark.django_db
class TestEventPersistence:
    """Event rows round-trip through the store."""

    def test_create_and_read_back(self, events, make_event, organizer):
        event = make_event(
            capacity=3,
            price=Decimal("75"),
            merchandise=[{"name": "Sticker", "price": "10", "stock": 4}],
        )
        loaded = events.get_event(str(event.id))

        assert loaded.state is EventState.PUBLISHED
        assert loaded.capacity.value == 3
        assert loaded.price.amount == Decimal("75.00")
        assert loaded.merchandise[0].name == "Sticker"
        assert loaded.merchandise[0].stock == 4
        assert loaded.organizer_id == organizer.user_id

    def test_stale_version_update_is_refused(self, store, make_event, clock):
        event = make_event(publish=False)
        assert store.update_event(event.publish(clock.now)) is not None
        assert store.update_event(event.publish(clock.now)) is None

    def test_draft_merchandise_rewritten(self, events, make_event, organizer):
        event = make_event(publish=False, merchandise=[{"name": "Cap", "price": "5", "stock": 2}])
        updated = events.update_event(
            organizer, str(event.id), merchandise=[{"name": "Mug", "price": "8", "stock": 6}]
        )
        assert [(m.name, m.stock) for m in updated.merchandise] == [("Mug", 6)]
        assert models.MerchandiseItem.objects.filter(event_id=event.id.value).count() == 1

    def test_capacity_floor(self, events, registrations, make_event, organizer, participant_factory):
        event = make_event(capacity=3)
        registrations.register(participant_factory(1), str(event.id))
        registrations.register(participant_factory(2), str(event.id))
        with pytest.raises(InvalidEventData):
            events.update_event(organizer, str(event.id), capacity=1)


@pytest.mark.django_db
class TestSlotLedger:
    """Conditional counter updates in the database."""

    def test_counter_follows_registrations(self, registrations, events, make_event, participant_factory):
        event = make_event(capacity=2)
        first = registrations.register(participant_factory(1), str(event.id))
        registrations.register(participant_factory(2), str(event.id))
        with pytest.raises(CapacityExceeded):
            registrations.register(participant_factory(3), str(event.id))
        assert models.Event.objects.get(pk=event.id.value).registered_count == 2

        registrations.cancel(participant_factory(1), str(first.id))
        assert events.get_event(str(event.id)).registered_count == 1
        registrations.register(participant_factory(3), str(event.id))
        assert events.get_event(str(event.id)).registered_count == 2

    def test_duplicate_is_rolled_back(self, registrations, events, make_event, participant):
        event = make_event(capacity=5)
        registrations.register(participant, str(event.id))
        with pytest.raises(DuplicateRegistration):
            registrations.register(participant, str(event.id))
        assert events.get_event(str(event.id)).registered_count == 1

    def test_closed_window_does_not_count(self, registrations, events, make_event, participant, clock):
        event = make_event()
        clock.advance(days=10)
        with pytest.raises(WindowClosed):
            registrations.register(participant, str(event.id))
        assert events.get_event(str(event.id)).registered_count == 0

    def test_stock_shortage_rolls_back_slot(
        self, registrations, events, make_event, participant_factory
    ):
        event = make_event(merchandise=[{"name": "Hoodie", "price": "0", "stock": 1}])
        registrations.register(
            participant_factory(1), str(event.id), [MerchandiseSelection(name="Hoodie")]
        )
        with pytest.raises(MerchandiseUnavailable):
            registrations.register(
                participant_factory(2), str(event.id), [MerchandiseSelection(name="Hoodie")]
            )
        loaded = events.get_event(str(event.id))
        assert loaded.registered_count == 1
        assert loaded.merchandise[0].stock == 0


@pytest.mark.django_db
class TestFullFlow:
    """Payment, confirmation, check-in and feedback on the ORM store."""

    def test_paid_flow_to_feedback(
        self,
        registrations,
        payments,
        verification,
        events,
        feedback,
        store,
        make_event,
        participant,
        organizer,
        notifier,
        django_capture_on_commit_callbacks,
    ):
        event = make_event(price=Decimal("120"))
        registration = registrations.register(participant, str(event.id))
        payments.submit_proof(participant, str(registration.id), "uploads/a.png")
        payments.reject(organizer, str(registration.id), "blurry image")
        proof = payments.submit_proof(participant, str(registration.id), "uploads/b.png")

        with django_capture_on_commit_callbacks(execute=True):
            confirmed = payments.approve(organizer, str(registration.id))

        assert confirmed.state is RegistrationState.CONFIRMED
        assert store.get_proof(proof.id).state is ProofState.APPROVED
        assert models.Ticket.objects.filter(registration_id=registration.id.value).count() == 1
        assert [notice.recipient for notice in notifier.sent] == [participant.email]

        ticket = store.get_ticket(confirmed.ticket_id)
        verification.verify(ticket.token, organizer)
        with pytest.raises(TicketAlreadyUsed):
            verification.verify(ticket.token, organizer)
        assert store.get_ticket(ticket.id).state is TicketState.USED

        events.close(organizer, str(event.id))
        events.complete(organizer, str(event.id))
        feedback.submit(participant, str(registration.id), 5, "Loved it")
        with pytest.raises(FeedbackAlreadySubmitted):
            feedback.submit(participant, str(registration.id), 4)
        assert feedback.list_feedback(organizer, str(event.id)).average_rating == Decimal("5.00")

    def test_event_cancel_cascade(
        self, registrations, events, store, make_event, organizer, participant_factory
    ):
        event = make_event(capacity=10)
        registered = [
            registrations.register(participant_factory(n), str(event.id)) for n in range(3)
        ]

        cancelled = events.cancel(organizer, str(event.id))

        assert cancelled.registered_count == 0
        for registration in registered:
            assert store.get_registration(registration.id).state is RegistrationState.CANCELLED
            assert store.get_ticket(registration.ticket_id).state is TicketState.VOID


@pytest.mark.django_db
class TestDraftDeletion:
    """Draft events and their merchandise are removed from the database."""

    def test_delete_draft(self, events, make_event, organizer):
        event = make_event(publish=False, merchandise=[{"name": "Cap", "price": "5", "stock": 2}])
        events.delete_event(organizer, str(event.id))
        assert not models.Event.objects.filter(pk=event.id.value).exists()
        assert not models.MerchandiseItem.objects.filter(event_id=event.id.value).exists()

    def test_published_row_survives(self, store, make_event):
        event = make_event()
        assert store.delete_event(store.get_event(event.id)) is False
        assert models.Event.objects.filter(pk=event.id.value).exists()

    def test_feedback_lookup(self, store, feedback, registrations, events, make_event, participant, organizer):
        event = make_event()
        registration = registrations.register(participant, str(event.id))
        events.close(organizer, str(event.id))
        events.complete(organizer, str(event.id))
        assert store.get_feedback(registration.id) is None

        feedback.submit(participant, str(registration.id), 4, "Good pacing")

        assert store.get_feedback(registration.id).comment == "Good pacing"
