from campus_events.domain.models import (
    Actor,
    Event,
    Feedback,
    PaymentProof,
    Registration,
    Role,
    Ticket,
)
from campus_events.domain.states import EventState, ProofState, RegistrationState, TicketState
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

__all__ = [
    "Actor",
    "Role",
    "Event",
    "Registration",
    "PaymentProof",
    "Ticket",
    "Feedback",
    "EventState",
    "RegistrationState",
    "ProofState",
    "TicketState",
    "EventId",
    "RegistrationId",
    "ProofId",
    "Money",
    "Capacity",
    "RegistrationWindow",
    "MerchandiseOption",
    "MerchandiseSelection",
]
