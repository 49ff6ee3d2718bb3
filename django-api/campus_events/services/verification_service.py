"""Venue check-in: validates a scanned ticket token and checks the holder in."""

import structlog

from campus_events.domain import Actor, Role
from campus_events.domain.errors import DomainError, TicketInvalid, Unauthorized
from campus_events.services.registration_service import CheckIn, RegistrationService
from campus_events.services.ticket_codec import TicketCodec
from campus_events.stores.interfaces import EventStore

logger = structlog.get_logger(__name__)


class VerificationService:
    """Service for scanning tickets at the venue."""

    def __init__(
        self,
        store: EventStore,
        registrations: RegistrationService,
        codec: TicketCodec | None = None,
    ) -> None:
        self._store = store
        self._registrations = registrations
        self._codec = codec or TicketCodec()

    def verify(self, token: str, scanner: Actor) -> CheckIn:
        """Check in the holder of a ticket token.

        Two scans of the same ticket never both succeed: the check-in is a
        compare-and-swap on the registration and the losing scan sees the
        ticket as used.

        Raises:
            MalformedToken: If the token fails its integrity check.
            TicketInvalid: If the ticket is unknown or was cancelled.
            Unauthorized: If the scanner is not the organizer owning the event.
            TicketAlreadyUsed: If the ticket was already checked in.
        """
        claims = self._codec.decode(token)
        ticket = self._store.get_ticket(claims.ticket_id)
        if ticket is None or ticket.event_id != claims.event_id:
            raise TicketInvalid("Unknown ticket")
        event = self._store.get_event(ticket.event_id)
        if event is None:
            raise TicketInvalid("Unknown ticket")
        if scanner.role is not Role.ORGANIZER or scanner.user_id != event.organizer_id:
            raise Unauthorized("Only the event's organizer may scan its tickets")

        try:
            result = self._registrations.check_in(ticket.registration_id, ticket.id)
        except DomainError as exc:
            logger.info(
                "ticket_scan_rejected",
                event_id=str(event.id),
                ticket_id=ticket.id,
                code=exc.code.value,
            )
            raise
        logger.info("ticket_scan_accepted", event_id=str(event.id), ticket_id=ticket.id)
        return result
