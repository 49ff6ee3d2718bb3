"""In-process implementation of the EventStore.

Selected with ``EVENT_STORE_BACKEND`` for running the engine without a
database, and used by the service test-suite.

Every read and write runs under one re-entrant store lock. ``atomic()`` holds
that lock for the whole unit and snapshots the tables on entry, so other
threads never observe a half-applied unit and an exception restores the
snapshot. ``on_commit`` callbacks wait for the outermost unit to finish.
"""

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Iterator

from campus_events.domain import (
    Event,
    EventId,
    EventState,
    Feedback,
    MerchandiseSelection,
    PaymentProof,
    ProofId,
    Registration,
    RegistrationId,
    RegistrationState,
    Ticket,
)
from campus_events.domain.errors import (
    CapacityExceeded,
    DuplicateRegistration,
    EventNotFound,
    FeedbackAlreadySubmitted,
    MerchandiseUnavailable,
    RegistrationNotFound,
)
from campus_events.stores.interfaces import EventStore

_TABLES = (
    "_events",
    "_counts",
    "_stock",
    "_registrations",
    "_proofs",
    "_tickets",
    "_feedback",
)


class InMemoryEventStore(EventStore):
    """Dictionary-backed event store with rollback-capable units of work."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._depth = 0
        self._callbacks: list[Callable[[], None]] = []
        self._events: dict[EventId, Event] = {}
        self._counts: dict[EventId, int] = {}
        self._stock: dict[tuple[EventId, str], int] = {}
        self._registrations: dict[RegistrationId, Registration] = {}
        self._proofs: dict[ProofId, PaymentProof] = {}
        self._tickets: dict[str, Ticket] = {}
        self._feedback: dict[RegistrationId, Feedback] = {}

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            # Stored values are frozen dataclasses, so shallow copies suffice.
            snapshot = {name: dict(getattr(self, name)) for name in _TABLES}
            queued = len(self._callbacks)
            self._depth += 1
            try:
                yield
            except BaseException:
                for name, table in snapshot.items():
                    setattr(self, name, table)
                del self._callbacks[queued:]
                raise
            finally:
                self._depth -= 1
            if self._depth:
                return
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def on_commit(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if self._depth:
                self._callbacks.append(callback)
                return
        callback()

    def _present(self, event: Event) -> Event:
        merchandise = tuple(
            replace(option, stock=self._stock.get((event.id, option.name), 0))
            for option in event.merchandise
        )
        return replace(
            event,
            registered_count=self._counts.get(event.id, 0),
            merchandise=merchandise,
        )

    # Events

    def add_event(self, event: Event) -> None:
        with self._lock:
            self._events[event.id] = event
            self._counts[event.id] = 0
            self._reset_stock(event)

    def _reset_stock(self, event: Event) -> None:
        for key in [key for key in self._stock if key[0] == event.id]:
            del self._stock[key]
        for option in event.merchandise:
            self._stock[(event.id, option.name)] = option.stock

    def get_event(self, event_id: EventId) -> Event | None:
        with self._lock:
            event = self._events.get(event_id)
            return self._present(event) if event is not None else None

    def list_events(
        self,
        organizer_id: int | None = None,
        states: Iterable[EventState] | None = None,
    ) -> list[Event]:
        wanted = set(states) if states is not None else None
        with self._lock:
            events = [
                self._present(event)
                for event in self._events.values()
                if (organizer_id is None or event.organizer_id == organizer_id)
                and (wanted is None or event.state in wanted)
            ]
        return sorted(events, key=lambda event: event.starts_at)

    def update_event(self, event: Event) -> Event | None:
        with self._lock:
            stored = self._events.get(event.id)
            if stored is None or stored.version != event.version:
                return None
            if self._below_registered_count(event):
                return None
            updated = replace(event, version=event.version + 1)
            self._events[event.id] = updated
            if updated.state is EventState.DRAFT:
                self._reset_stock(updated)
            return self._present(updated)

    def _below_registered_count(self, event: Event) -> bool:
        if event.capacity is None or event.capacity.is_unlimited:
            return False
        return self._counts.get(event.id, 0) > event.capacity.value

    def delete_event(self, event: Event) -> bool:
        with self._lock:
            stored = self._events.get(event.id)
            if stored is None or stored.version != event.version:
                return False
            if stored.state is not EventState.DRAFT:
                return False
            del self._events[event.id]
            self._counts.pop(event.id, None)
            for key in [key for key in self._stock if key[0] == event.id]:
                del self._stock[key]
            return True

    # Capacity ledger

    def create_registration(self, registration: Registration, now: datetime) -> None:
        event_id = registration.event_id
        with self._lock:
            event = self.get_event(event_id)
            if event is None:
                raise EventNotFound(event_id)
            event.ensure_accepts_registrations(now)
            if not event.has_free_slot():
                raise CapacityExceeded(event_id)
            for item in registration.items:
                if self._stock.get((event_id, item.name), 0) < item.quantity:
                    raise MerchandiseUnavailable(item.name)
            for existing in self._registrations.values():
                if (
                    existing.event_id == event_id
                    and existing.participant_id == registration.participant_id
                    and existing.is_active
                ):
                    raise DuplicateRegistration(event_id, registration.participant_id)
            self._counts[event_id] = self._counts.get(event_id, 0) + 1
            for item in registration.items:
                self._stock[(event_id, item.name)] -= item.quantity
            self._registrations[registration.id] = registration

    def release_slot(
        self, event_id: EventId, items: tuple[MerchandiseSelection, ...] = ()
    ) -> None:
        with self._lock:
            self._counts[event_id] = max(self._counts.get(event_id, 0) - 1, 0)
            for item in items:
                key = (event_id, item.name)
                if key in self._stock:
                    self._stock[key] += item.quantity

    # Registrations

    def get_registration(self, registration_id: RegistrationId) -> Registration | None:
        with self._lock:
            return self._registrations.get(registration_id)

    def list_registrations(
        self,
        event_id: EventId | None = None,
        participant_id: int | None = None,
        states: Iterable[RegistrationState] | None = None,
    ) -> list[Registration]:
        wanted = set(states) if states is not None else None
        with self._lock:
            registrations = [
                registration
                for registration in self._registrations.values()
                if (event_id is None or registration.event_id == event_id)
                and (participant_id is None or registration.participant_id == participant_id)
                and (wanted is None or registration.state in wanted)
            ]
        return sorted(registrations, key=lambda registration: registration.created_at)

    def update_registration(self, registration: Registration) -> Registration | None:
        with self._lock:
            stored = self._registrations.get(registration.id)
            if stored is None or stored.version != registration.version:
                return None
            updated = replace(registration, version=registration.version + 1)
            self._registrations[registration.id] = updated
            return updated

    # Payment proofs

    def add_proof(self, proof: PaymentProof) -> None:
        with self._lock:
            if proof.registration_id not in self._registrations:
                raise RegistrationNotFound(proof.registration_id)
            self._proofs[proof.id] = proof

    def get_proof(self, proof_id: ProofId) -> PaymentProof | None:
        with self._lock:
            return self._proofs.get(proof_id)

    def list_proofs(self, registration_id: RegistrationId) -> list[PaymentProof]:
        with self._lock:
            proofs = [
                proof for proof in self._proofs.values() if proof.registration_id == registration_id
            ]
        return sorted(proofs, key=lambda proof: proof.submitted_at)

    def update_proof(self, proof: PaymentProof) -> PaymentProof | None:
        with self._lock:
            stored = self._proofs.get(proof.id)
            if stored is None or stored.version != proof.version:
                return None
            updated = replace(proof, version=proof.version + 1)
            self._proofs[proof.id] = updated
            return updated

    # Tickets

    def add_ticket(self, ticket: Ticket) -> None:
        with self._lock:
            self._tickets[ticket.id] = ticket

    def get_ticket(self, ticket_id: str) -> Ticket | None:
        with self._lock:
            return self._tickets.get(ticket_id)

    def update_ticket(self, ticket: Ticket) -> Ticket | None:
        with self._lock:
            stored = self._tickets.get(ticket.id)
            if stored is None or stored.version != ticket.version:
                return None
            updated = replace(ticket, version=ticket.version + 1)
            self._tickets[ticket.id] = updated
            return updated

    # Feedback

    def add_feedback(self, feedback: Feedback) -> None:
        with self._lock:
            if feedback.registration_id in self._feedback:
                raise FeedbackAlreadySubmitted(feedback.registration_id)
            self._feedback[feedback.registration_id] = feedback

    def get_feedback(self, registration_id: RegistrationId) -> Feedback | None:
        with self._lock:
            return self._feedback.get(registration_id)

    def list_feedback(self, event_id: EventId) -> list[Feedback]:
        with self._lock:
            feedback = [item for item in self._feedback.values() if item.event_id == event_id]
        return sorted(feedback, key=lambda item: item.created_at)
