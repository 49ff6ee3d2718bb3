"""Store interfaces (repository pattern).

Stores must be swappable and return domain models.

Updates of lifecycle state are compare-and-swap operations: the caller passes
the entity as it read it (its ``version`` is the expected stored version) with
the new field values. The store persists the change only if nobody updated
the record in between, and returns the stored entity with its bumped version,
or None on a version conflict.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Callable, Iterable

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


class EventStore(ABC):
    """Interface for event, registration, proof and ticket persistence."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager[None]:
        """Return a context manager grouping several store calls into one unit.

        Units nest. An exception leaving a block undoes every write made
        inside it.
        """
        ...

    @abstractmethod
    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run callback once the outermost unit of work commits.

        Outside any unit the callback runs immediately; callbacks of a unit
        that rolls back are dropped.
        """
        ...

    # Events

    @abstractmethod
    def add_event(self, event: Event) -> None:
        """Persist a new event."""
        ...

    @abstractmethod
    def get_event(self, event_id: EventId) -> Event | None:
        """Return an event by ID, or None if not found."""
        ...

    @abstractmethod
    def list_events(
        self,
        organizer_id: int | None = None,
        states: Iterable[EventState] | None = None,
    ) -> list[Event]:
        """Return events ordered by starts_at ascending."""
        ...

    @abstractmethod
    def update_event(self, event: Event) -> Event | None:
        """Compare-and-swap an event. Never touches the registered count."""
        ...

    @abstractmethod
    def delete_event(self, event: Event) -> bool:
        """Delete a draft event if its stored version matches; False otherwise."""
        ...

    # Capacity ledger

    @abstractmethod
    def create_registration(self, registration: Registration, now: datetime) -> None:
        """Reserve a slot and insert the registration as one atomic unit.

        The event must be published with its window open at ``now`` and a free
        slot; merchandise stock for the selected items is taken in the same unit.

        Raises:
            EventNotFound: If the event does not exist.
            WindowClosed: If the event does not accept registrations at ``now``.
            CapacityExceeded: If no slot is left.
            MerchandiseUnavailable: If an item is unknown or short on stock.
            DuplicateRegistration: If the participant already holds an active registration.
            ConcurrentUpdate: If the reservation lost a race and may be retried.
        """
        ...

    @abstractmethod
    def release_slot(
        self, event_id: EventId, items: tuple[MerchandiseSelection, ...] = ()
    ) -> None:
        """Give back one slot (never below zero) and the stock of the given items."""
        ...

    # Registrations

    @abstractmethod
    def get_registration(self, registration_id: RegistrationId) -> Registration | None:
        """Return a registration by ID, or None if not found."""
        ...

    @abstractmethod
    def list_registrations(
        self,
        event_id: EventId | None = None,
        participant_id: int | None = None,
        states: Iterable[RegistrationState] | None = None,
    ) -> list[Registration]:
        """Return registrations ordered by created_at ascending."""
        ...

    @abstractmethod
    def update_registration(self, registration: Registration) -> Registration | None:
        """Compare-and-swap a registration."""
        ...

    # Payment proofs

    @abstractmethod
    def add_proof(self, proof: PaymentProof) -> None:
        """Persist a new payment proof."""
        ...

    @abstractmethod
    def get_proof(self, proof_id: ProofId) -> PaymentProof | None:
        """Return a proof by ID, or None if not found."""
        ...

    @abstractmethod
    def list_proofs(self, registration_id: RegistrationId) -> list[PaymentProof]:
        """Return every proof submitted for a registration, oldest first."""
        ...

    @abstractmethod
    def update_proof(self, proof: PaymentProof) -> PaymentProof | None:
        """Compare-and-swap a payment proof."""
        ...

    # Tickets

    @abstractmethod
    def add_ticket(self, ticket: Ticket) -> None:
        """Persist a newly issued ticket."""
        ...

    @abstractmethod
    def get_ticket(self, ticket_id: str) -> Ticket | None:
        """Return a ticket by ID, or None if not found."""
        ...

    @abstractmethod
    def update_ticket(self, ticket: Ticket) -> Ticket | None:
        """Compare-and-swap a ticket."""
        ...

    # Feedback

    @abstractmethod
    def add_feedback(self, feedback: Feedback) -> None:
        """Persist feedback.

        Raises:
            FeedbackAlreadySubmitted: If the registration already has feedback.
        """
        ...

    @abstractmethod
    def get_feedback(self, registration_id: RegistrationId) -> Feedback | None:
        """Return the feedback left for a registration, or None."""
        ...

    @abstractmethod
    def list_feedback(self, event_id: EventId) -> list[Feedback]:
        """Return all feedback for an event, oldest first."""
        ...
