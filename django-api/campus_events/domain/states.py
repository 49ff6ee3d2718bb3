"""Lifecycle states and their exhaustive transition tables.

Every entity carries exactly one state value. A move is legal only if the
target appears in the table row of the current state.
"""

from enum import StrEnum
from typing import Mapping, TypeVar

from campus_events.domain.errors import InvalidStateTransition


class EventState(StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CLOSED = "closed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RegistrationState(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CANCELLED = "cancelled"


class ProofState(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TicketState(StrEnum):
    VALID = "valid"
    USED = "used"
    VOID = "void"


EVENT_TRANSITIONS: Mapping[EventState, frozenset[EventState]] = {
    EventState.DRAFT: frozenset({EventState.PUBLISHED, EventState.CANCELLED}),
    EventState.PUBLISHED: frozenset({EventState.CLOSED, EventState.CANCELLED}),
    EventState.CLOSED: frozenset({EventState.COMPLETED}),
    EventState.COMPLETED: frozenset(),
    EventState.CANCELLED: frozenset(),
}

REGISTRATION_TRANSITIONS: Mapping[RegistrationState, frozenset[RegistrationState]] = {
    RegistrationState.PENDING: frozenset({RegistrationState.CONFIRMED, RegistrationState.CANCELLED}),
    RegistrationState.CONFIRMED: frozenset({RegistrationState.CHECKED_IN, RegistrationState.CANCELLED}),
    RegistrationState.CHECKED_IN: frozenset(),
    RegistrationState.CANCELLED: frozenset(),
}

PROOF_TRANSITIONS: Mapping[ProofState, frozenset[ProofState]] = {
    ProofState.PENDING: frozenset({ProofState.APPROVED, ProofState.REJECTED}),
    ProofState.APPROVED: frozenset(),
    ProofState.REJECTED: frozenset(),
}

TICKET_TRANSITIONS: Mapping[TicketState, frozenset[TicketState]] = {
    TicketState.VALID: frozenset({TicketState.USED, TicketState.VOID}),
    TicketState.USED: frozenset(),
    TicketState.VOID: frozenset(),
}

# Event states in which registrations may still change.
REGISTRATION_MUTABLE_EVENT_STATES = frozenset({EventState.PUBLISHED, EventState.CLOSED})

ACTIVE_REGISTRATION_STATES = frozenset(
    {RegistrationState.PENDING, RegistrationState.CONFIRMED, RegistrationState.CHECKED_IN}
)

S = TypeVar("S", EventState, RegistrationState, ProofState, TicketState)


def ensure_transition(
    table: Mapping[S, frozenset[S]], entity: str, current: S, target: S
) -> None:
    """Raise InvalidStateTransition unless current -> target is in the table."""
    if target not in table[current]:
        raise InvalidStateTransition(entity, current, target)
