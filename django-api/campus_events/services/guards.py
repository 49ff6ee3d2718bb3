"""Helpers shared by the services: id parsing, authorization and CAS retries."""

from datetime import datetime
from typing import Callable, TypeVar
from uuid import UUID

from campus_events.domain import Actor, Event, EventId, Registration, RegistrationId, Role
from campus_events.domain.errors import (
    ConcurrentUpdate,
    EventNotFound,
    InvalidEventData,
    RegistrationNotFound,
    Unauthorized,
)
from campus_events.stores.interfaces import EventStore

Clock = Callable[[], datetime]
T = TypeVar("T")

# One retry with fresh state after a failed compare-and-swap.
CAS_ATTEMPTS = 2


def parse_event_id(value: str | EventId) -> EventId:
    if isinstance(value, EventId):
        return value
    try:
        return EventId(value=UUID(str(value)))
    except ValueError as exc:
        raise InvalidEventData("Invalid event ID format") from exc


def parse_registration_id(value: str | RegistrationId) -> RegistrationId:
    if isinstance(value, RegistrationId):
        return value
    try:
        return RegistrationId(value=UUID(str(value)))
    except ValueError as exc:
        raise RegistrationNotFound(value) from exc


def load_event(store: EventStore, event_id: str | EventId) -> Event:
    parsed = parse_event_id(event_id)
    event = store.get_event(parsed)
    if event is None:
        raise EventNotFound(parsed)
    return event


def load_registration(store: EventStore, registration_id: str | RegistrationId) -> Registration:
    parsed = parse_registration_id(registration_id)
    registration = store.get_registration(parsed)
    if registration is None:
        raise RegistrationNotFound(parsed)
    return registration


def require_role(actor: Actor, *roles: Role) -> None:
    if actor.role not in roles:
        raise Unauthorized()


def require_event_owner(actor: Actor, event: Event, allow_admin: bool = True) -> None:
    """Only the organizer owning the event (optionally an admin) may proceed."""
    if allow_admin and actor.is_admin:
        return
    if actor.role is not Role.ORGANIZER or actor.user_id != event.organizer_id:
        raise Unauthorized("Only the event's organizer may perform this action")


def compare_and_swap(
    entity: str,
    entity_id: object,
    load: Callable[[], T],
    change: Callable[[T], T],
    save: Callable[[T], T | None],
) -> T:
    """Apply ``change`` to freshly loaded state and save it, retrying once on conflict.

    ``change`` re-validates its guards on every attempt, so the retry may raise
    a domain error instead of succeeding.
    """
    for _ in range(CAS_ATTEMPTS):
        saved = save(change(load()))
        if saved is not None:
            return saved
    raise ConcurrentUpdate(entity, entity_id)
