"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in campus_events/models.py (persistence layer).

Every model is immutable; lifecycle methods validate the move against the
transition tables in states.py and return an updated copy. The ``version``
field is the optimistic concurrency token checked by the stores.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum

from campus_events.domain.errors import InvalidEventData, InvalidStateTransition, WindowClosed
from campus_events.domain.states import (
    EVENT_TRANSITIONS,
    PROOF_TRANSITIONS,
    REGISTRATION_MUTABLE_EVENT_STATES,
    REGISTRATION_TRANSITIONS,
    TICKET_TRANSITIONS,
    EventState,
    ProofState,
    RegistrationState,
    TicketState,
    ensure_transition,
)
from campus_events.domain.value_objects import (
    Capacity,
    EventId,
    MerchandiseOption,
    MerchandiseSelection,
    Money,
    ProofId,
    RegistrationId,
    RegistrationWindow,
)


class Role(StrEnum):
    PARTICIPANT = "participant"
    ORGANIZER = "organizer"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, supplied by the authentication layer."""

    user_id: int
    role: Role
    email: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class Event:
    """Domain representation of an Event."""

    id: EventId
    organizer_id: int
    name: str
    description: str
    venue: str
    starts_at: datetime
    capacity: Capacity | None
    window: RegistrationWindow | None
    price: Money
    state: EventState
    created_at: datetime
    updated_at: datetime
    merchandise: tuple[MerchandiseOption, ...] = ()
    registered_count: int = 0
    version: int = 0

    def _move(self, target: EventState, now: datetime) -> "Event":
        ensure_transition(EVENT_TRANSITIONS, "event", self.state, target)
        return replace(self, state=target, updated_at=now)

    def publish(self, now: datetime) -> "Event":
        ensure_transition(EVENT_TRANSITIONS, "event", self.state, EventState.PUBLISHED)
        if self.capacity is None:
            raise InvalidEventData("Capacity must be set before publishing")
        if self.window is None:
            raise InvalidEventData("Registration window must be set before publishing")
        return self._move(EventState.PUBLISHED, now)

    def close(self, now: datetime) -> "Event":
        return self._move(EventState.CLOSED, now)

    def complete(self, now: datetime) -> "Event":
        return self._move(EventState.COMPLETED, now)

    def cancel(self, now: datetime) -> "Event":
        return self._move(EventState.CANCELLED, now)

    def ensure_accepts_registrations(self, now: datetime) -> None:
        """Raise WindowClosed unless a new registration may be created right now."""
        if self.state is not EventState.PUBLISHED or self.window is None:
            raise WindowClosed(self.id)
        if not self.window.is_open(now):
            raise WindowClosed(self.id)

    def ensure_registrations_mutable(self, target: RegistrationState) -> None:
        """Registrations are frozen once the event is completed or cancelled."""
        if self.state not in REGISTRATION_MUTABLE_EVENT_STATES:
            raise InvalidStateTransition("registration", self.state, target)

    def has_free_slot(self) -> bool:
        return self.capacity is None or self.capacity.has_room_for(self.registered_count)

    def merchandise_option(self, name: str) -> MerchandiseOption | None:
        for option in self.merchandise:
            if option.name == name:
                return option
        return None

    def price_for(self, items: tuple[MerchandiseSelection, ...]) -> Money:
        """Amount due for a registration selecting the given items."""
        total = self.price
        for item in items:
            option = self.merchandise_option(item.name)
            if option is not None:
                total = total + option.price.times(item.quantity)
        return total

    @property
    def remaining_slots(self) -> int | None:
        if self.capacity is None or self.capacity.is_unlimited:
            return None
        return max(self.capacity.value - self.registered_count, 0)


@dataclass(frozen=True)
class Registration:
    """Domain representation of a participant's Registration."""

    id: RegistrationId
    event_id: EventId
    participant_id: int
    participant_email: str
    state: RegistrationState
    amount_due: Money
    created_at: datetime
    updated_at: datetime
    items: tuple[MerchandiseSelection, ...] = ()
    proof_id: ProofId | None = None
    ticket_id: str | None = None
    cancellation_reason: str | None = None
    version: int = 0

    @property
    def requires_payment(self) -> bool:
        return not self.amount_due.is_zero()

    @property
    def is_active(self) -> bool:
        return self.state is not RegistrationState.CANCELLED

    def _move(self, target: RegistrationState, now: datetime, **changes: object) -> "Registration":
        ensure_transition(REGISTRATION_TRANSITIONS, "registration", self.state, target)
        return replace(self, state=target, updated_at=now, **changes)

    def confirm(self, ticket_id: str, now: datetime) -> "Registration":
        return self._move(RegistrationState.CONFIRMED, now, ticket_id=ticket_id)

    def check_in(self, now: datetime) -> "Registration":
        return self._move(RegistrationState.CHECKED_IN, now)

    def cancel(self, reason: str, now: datetime) -> "Registration":
        return self._move(RegistrationState.CANCELLED, now, cancellation_reason=reason)

    def attach_proof(self, proof_id: ProofId, now: datetime) -> "Registration":
        if self.state is not RegistrationState.PENDING:
            raise InvalidStateTransition("registration", self.state, RegistrationState.PENDING)
        return replace(self, proof_id=proof_id, updated_at=now)


@dataclass(frozen=True)
class PaymentProof:
    """Domain representation of a submitted payment proof."""

    id: ProofId
    registration_id: RegistrationId
    artifact_ref: str
    state: ProofState
    submitted_at: datetime
    reviewer_id: int | None = None
    rejection_reason: str | None = None
    reviewed_at: datetime | None = None
    version: int = 0

    def approve(self, reviewer_id: int, now: datetime) -> "PaymentProof":
        ensure_transition(PROOF_TRANSITIONS, "payment proof", self.state, ProofState.APPROVED)
        return replace(self, state=ProofState.APPROVED, reviewer_id=reviewer_id, reviewed_at=now)

    def reject(self, reviewer_id: int, reason: str, now: datetime) -> "PaymentProof":
        ensure_transition(PROOF_TRANSITIONS, "payment proof", self.state, ProofState.REJECTED)
        return replace(
            self,
            state=ProofState.REJECTED,
            reviewer_id=reviewer_id,
            rejection_reason=reason,
            reviewed_at=now,
        )


@dataclass(frozen=True)
class Ticket:
    """Domain representation of a single-use Ticket."""

    id: str
    registration_id: RegistrationId
    event_id: EventId
    token: str
    state: TicketState
    issued_at: datetime
    checked_in_at: datetime | None = None
    version: int = 0

    def use(self, now: datetime) -> "Ticket":
        ensure_transition(TICKET_TRANSITIONS, "ticket", self.state, TicketState.USED)
        return replace(self, state=TicketState.USED, checked_in_at=now)

    def void(self) -> "Ticket":
        ensure_transition(TICKET_TRANSITIONS, "ticket", self.state, TicketState.VOID)
        return replace(self, state=TicketState.VOID)


@dataclass(frozen=True)
class Feedback:
    """Post-event feedback left by a registrant."""

    registration_id: RegistrationId
    event_id: EventId
    participant_id: int
    rating: int
    comment: str
    created_at: datetime

    def __post_init__(self) -> None:
        if not 1 <= self.rating <= 5:
            raise ValueError("Rating must be between 1 and 5")
