"""Wiring of the services onto the configured store.

Shared by the HTTP handlers and the management commands.
"""

from dataclasses import dataclass
from functools import cache

from django.conf import settings
from django.utils.module_loading import import_string

from campus_events.services.event_service import EventService
from campus_events.services.feedback_service import FeedbackService
from campus_events.services.payment_gate import PaymentGate
from campus_events.services.registration_service import RegistrationService
from campus_events.services.verification_service import VerificationService
from campus_events.stores.interfaces import EventStore


@dataclass(frozen=True)
class Services:
    store: EventStore
    events: EventService
    registrations: RegistrationService
    payments: PaymentGate
    verification: VerificationService
    feedback: FeedbackService


@cache
def _store_for(backend: str) -> EventStore:
    # One instance per backend path, so an in-memory store outlives the request.
    return import_string(backend)()


def default_store() -> EventStore:
    """Return the store named by ``EVENT_STORE_BACKEND``."""
    return _store_for(settings.EVENT_STORE_BACKEND)


def build_services(store: EventStore | None = None) -> Services:
    store = store or default_store()
    registrations = RegistrationService(store)
    return Services(
        store=store,
        events=EventService(store, registrations),
        registrations=registrations,
        payments=PaymentGate(store, registrations),
        verification=VerificationService(store, registrations),
        feedback=FeedbackService(store),
    )
