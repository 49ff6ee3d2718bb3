"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from campus_events.domain import Actor, Role
from campus_events.services.capacity import CapacityLedger
from campus_events.services.event_service import EventService
from campus_events.services.feedback_service import FeedbackService
from campus_events.services.notifications import ConfirmationNotice, Notifier
from campus_events.services.payment_gate import PaymentGate
from campus_events.services.registration_service import RegistrationService
from campus_events.services.ticket_codec import TicketCodec
from campus_events.services.verification_service import VerificationService
from campus_events.stores.memory_store import InMemoryEventStore

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[ConfirmationNotice] = []
        self.fail = fail

    def send_confirmation(self, notice: ConfirmationNotice) -> None:
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.sent.append(notice)


@pytest.fixture(autouse=True)
def celery_eager_mode(settings) -> None:
    """Run Celery tasks in-process so no broker is needed."""
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def codec() -> TicketCodec:
    return TicketCodec(salt="tests.ticket")


@pytest.fixture
def registrations(store, codec, notifier, clock) -> RegistrationService:
    return RegistrationService(
        store,
        codec=codec,
        notifier=notifier,
        ledger=CapacityLedger(store, max_attempts=3),
        clock=clock,
    )


@pytest.fixture
def events(store, registrations, clock) -> EventService:
    return EventService(store, registrations, clock=clock)


@pytest.fixture
def payments(store, registrations, clock) -> PaymentGate:
    return PaymentGate(store, registrations, clock=clock)


@pytest.fixture
def verification(store, registrations, codec) -> VerificationService:
    return VerificationService(store, registrations, codec=codec)


@pytest.fixture
def feedback(store, clock) -> FeedbackService:
    return FeedbackService(store, clock=clock)


@pytest.fixture
def organizer() -> Actor:
    return Actor(user_id=1, role=Role.ORGANIZER, email="organizer@campus.test")


@pytest.fixture
def other_organizer() -> Actor:
    return Actor(user_id=2, role=Role.ORGANIZER, email="rival@campus.test")


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id=3, role=Role.ADMIN, email="admin@campus.test")


def make_participant(user_id: int) -> Actor:
    return Actor(user_id=user_id, role=Role.PARTICIPANT, email=f"student{user_id}@campus.test")


@pytest.fixture
def participant() -> Actor:
    return make_participant(100)


@pytest.fixture
def participant_factory():
    return make_participant


@pytest.fixture
def make_event(events, organizer):
    """Create (and by default publish) an event with an open registration window."""

    def _make(
        capacity: int = 10,
        price: Decimal | int = 0,
        merchandise=(),
        publish: bool = True,
        owner: Actor | None = None,
    ):
        owner = owner or organizer
        event = events.create_event(
            owner,
            name="Robotics Workshop",
            description="Build a line follower",
            venue="Lab 3",
            starts_at=NOW + timedelta(days=10),
            capacity=capacity,
            registration_opens_at=NOW - timedelta(days=1),
            registration_closes_at=NOW + timedelta(days=5),
            price=price,
            merchandise=merchandise,
        )
        if publish:
            event = events.publish(owner, str(event.id))
        return event

    return _make
