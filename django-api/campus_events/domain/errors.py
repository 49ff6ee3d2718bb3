"""Domain error codes for the campus events module."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    REGISTRATION_NOT_FOUND = "REGISTRATION_NOT_FOUND"
    PROOF_NOT_FOUND = "PROOF_NOT_FOUND"
    INVALID_EVENT_DATA = "INVALID_EVENT_DATA"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    DUPLICATE_REGISTRATION = "DUPLICATE_REGISTRATION"
    PAYMENT_NOT_APPROVED = "PAYMENT_NOT_APPROVED"
    MERCHANDISE_UNAVAILABLE = "MERCHANDISE_UNAVAILABLE"
    TICKET_ALREADY_USED = "TICKET_ALREADY_USED"
    TICKET_INVALID = "TICKET_INVALID"
    MALFORMED_TOKEN = "MALFORMED_TOKEN"
    UNAUTHORIZED = "UNAUTHORIZED"
    WINDOW_CLOSED = "WINDOW_CLOSED"
    FEEDBACK_ALREADY_SUBMITTED = "FEEDBACK_ALREADY_SUBMITTED"
    CONCURRENT_UPDATE = "CONCURRENT_UPDATE"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class EventNotFound(DomainError):
    """Raised when an event is not found."""

    def __init__(self, event_id: object) -> None:
        super().__init__(code=ErrorCode.EVENT_NOT_FOUND, message="Event not found")
        self.event_id = event_id


class RegistrationNotFound(DomainError):
    """Raised when a registration is not found."""

    def __init__(self, registration_id: object) -> None:
        super().__init__(
            code=ErrorCode.REGISTRATION_NOT_FOUND,
            message="Registration not found",
        )
        self.registration_id = registration_id


class ProofNotFound(DomainError):
    """Raised when a registration has no payment proof to review."""

    def __init__(self, registration_id: object) -> None:
        super().__init__(code=ErrorCode.PROOF_NOT_FOUND, message="Payment proof not found")
        self.registration_id = registration_id


class InvalidEventData(DomainError):
    """Raised when event fields fail validation."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.INVALID_EVENT_DATA, message=message)


class InvalidStateTransition(DomainError):
    """Raised when a lifecycle move is not in the transition table."""

    def __init__(self, entity: str, current: object, target: object) -> None:
        super().__init__(
            code=ErrorCode.INVALID_STATE_TRANSITION,
            message=f"Cannot move {entity} from {_label(current)} to {_label(target)}",
        )
        self.entity = entity
        self.current = current
        self.target = target


class CapacityExceeded(DomainError):
    """Raised when an event has no free slot left."""

    def __init__(self, event_id: object) -> None:
        super().__init__(code=ErrorCode.CAPACITY_EXCEEDED, message="Event is full")
        self.event_id = event_id


class DuplicateRegistration(DomainError):
    """Raised when the participant already holds an active registration."""

    def __init__(self, event_id: object, participant_id: int) -> None:
        super().__init__(
            code=ErrorCode.DUPLICATE_REGISTRATION,
            message="You are already registered for this event",
        )
        self.event_id = event_id
        self.participant_id = participant_id


class PaymentNotApproved(DomainError):
    """Raised when confirmation is attempted without an approved proof."""

    def __init__(self, registration_id: object) -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_NOT_APPROVED,
            message="Payment has not been approved",
        )
        self.registration_id = registration_id


class MerchandiseUnavailable(DomainError):
    """Raised when a merchandise item is unknown or out of stock."""

    def __init__(self, item_name: str) -> None:
        super().__init__(
            code=ErrorCode.MERCHANDISE_UNAVAILABLE,
            message=f"Merchandise item '{item_name}' is not available",
        )
        self.item_name = item_name


class TicketAlreadyUsed(DomainError):
    """Raised when a ticket that was already checked in is scanned again."""

    def __init__(self, ticket_id: str) -> None:
        super().__init__(
            code=ErrorCode.TICKET_ALREADY_USED,
            message="This ticket has already been checked in",
        )
        self.ticket_id = ticket_id


class TicketInvalid(DomainError):
    """Raised for unknown or cancelled tickets."""

    def __init__(self, reason: str = "Ticket is not valid") -> None:
        super().__init__(code=ErrorCode.TICKET_INVALID, message=reason)


class MalformedToken(DomainError):
    """Raised when a ticket token fails its integrity check."""

    def __init__(self) -> None:
        super().__init__(code=ErrorCode.MALFORMED_TOKEN, message="Ticket token is malformed")


class Unauthorized(DomainError):
    """Raised when the actor lacks the required role or ownership."""

    def __init__(self, message: str = "You are not allowed to perform this action") -> None:
        super().__init__(code=ErrorCode.UNAUTHORIZED, message=message)


class WindowClosed(DomainError):
    """Raised when registering outside the event's registration window."""

    def __init__(self, event_id: object) -> None:
        super().__init__(code=ErrorCode.WINDOW_CLOSED, message="Registration window is closed")
        self.event_id = event_id


class FeedbackAlreadySubmitted(DomainError):
    """Raised when feedback for a registration already exists."""

    def __init__(self, registration_id: object) -> None:
        super().__init__(
            code=ErrorCode.FEEDBACK_ALREADY_SUBMITTED,
            message="Feedback was already submitted",
        )
        self.registration_id = registration_id


class ConcurrentUpdate(DomainError):
    """Raised when a record kept changing underneath an update."""

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(
            code=ErrorCode.CONCURRENT_UPDATE,
            message="The record was modified concurrently, please retry",
        )
        self.entity = entity
        self.entity_id = entity_id


def _label(state: object) -> str:
    return str(getattr(state, "value", state))
