"""Registration service - the registration lifecycle lives here.

Services:
- Depend only on interfaces (stores)
- Validate domain invariants
- Perform orchestration and error mapping
- Return domain models or domain errors

A registration is created ``pending`` once a slot is reserved. Registrations
with nothing to pay are confirmed straight away; paid ones wait for the
payment gate. Confirmation issues exactly one ticket and, after commit,
queues the participant's confirmation email.
"""

from dataclasses import dataclass
from functools import partial
from typing import Iterable

import structlog
from django.utils import timezone

from campus_events.domain import (
    Actor,
    Event,
    MerchandiseSelection,
    PaymentProof,
    ProofState,
    Registration,
    RegistrationId,
    RegistrationState,
    Role,
    Ticket,
    TicketState,
)
from campus_events.domain.errors import (
    ConcurrentUpdate,
    MerchandiseUnavailable,
    PaymentNotApproved,
    TicketAlreadyUsed,
    TicketInvalid,
    Unauthorized,
)
from campus_events.services.capacity import CapacityLedger
from campus_events.services.guards import (
    CAS_ATTEMPTS,
    Clock,
    compare_and_swap,
    load_event,
    load_registration,
    require_event_owner,
    require_role,
)
from campus_events.services.notifications import (
    ConfirmationNotice,
    Notifier,
    QueuedEmailNotifier,
    deliver_confirmation,
)
from campus_events.services.ticket_codec import TicketCodec
from campus_events.stores.interfaces import EventStore

logger = structlog.get_logger(__name__)

CANCEL_REASON_PARTICIPANT = "cancelled by participant"
CANCEL_REASON_ORGANIZER = "cancelled by organizer"


@dataclass(frozen=True)
class CheckIn:
    """Outcome of a successful venue check-in."""

    registration: Registration
    ticket: Ticket


class RegistrationService:
    """Service for the participant registration lifecycle."""

    def __init__(
        self,
        store: EventStore,
        codec: TicketCodec | None = None,
        notifier: Notifier | None = None,
        ledger: CapacityLedger | None = None,
        clock: Clock = timezone.now,
    ) -> None:
        self._store = store
        self._codec = codec or TicketCodec()
        self._notifier = notifier or QueuedEmailNotifier()
        self._ledger = ledger or CapacityLedger(store)
        self._clock = clock

    def register(
        self,
        actor: Actor,
        event_id: str,
        items: Iterable[MerchandiseSelection] = (),
    ) -> Registration:
        """Register the participant for an event.

        Raises:
            Unauthorized: If the actor is not a participant.
            EventNotFound: If the event does not exist.
            WindowClosed: If the event is not accepting registrations.
            MerchandiseUnavailable: If a selected item does not exist or is out of stock.
            CapacityExceeded: If the event is full.
            DuplicateRegistration: If the participant is already registered.
        """
        require_role(actor, Role.PARTICIPANT)
        event = load_event(self._store, event_id)
        now = self._clock()
        event.ensure_accepts_registrations(now)
        selection = self._normalize_items(event, items)

        registration = Registration(
            id=RegistrationId.new(),
            event_id=event.id,
            participant_id=actor.user_id,
            participant_email=actor.email,
            state=RegistrationState.PENDING,
            amount_due=event.price_for(selection),
            created_at=now,
            updated_at=now,
            items=selection,
        )
        # The window is checked again inside the reservation, at execution time.
        self._ledger.reserve_slot(registration, self._clock())
        logger.info(
            "registration_created",
            event_id=str(event.id),
            registration_id=str(registration.id),
            requires_payment=registration.requires_payment,
        )
        if registration.requires_payment:
            return registration
        return self.confirm(registration.id)

    @staticmethod
    def _normalize_items(
        event: Event, items: Iterable[MerchandiseSelection]
    ) -> tuple[MerchandiseSelection, ...]:
        quantities: dict[str, int] = {}
        for item in items:
            if event.merchandise_option(item.name) is None:
                raise MerchandiseUnavailable(item.name)
            quantities[item.name] = quantities.get(item.name, 0) + item.quantity
        return tuple(
            MerchandiseSelection(name=name, quantity=quantity)
            for name, quantity in sorted(quantities.items())
        )

    def confirm(self, registration_id: str | RegistrationId) -> Registration:
        """Move a pending registration to confirmed and issue its ticket.

        Raises:
            InvalidStateTransition: If the registration is not pending or the event is frozen.
            PaymentNotApproved: If payment is required and the latest proof is not approved.
        """
        for _ in range(CAS_ATTEMPTS):
            current = load_registration(self._store, registration_id)
            event = load_event(self._store, current.event_id)
            event.ensure_registrations_mutable(RegistrationState.CONFIRMED)
            self._ensure_paid(current)

            now = self._clock()
            ticket = self._codec.issue(current, now)
            with self._store.atomic():
                confirmed = self._store.update_registration(current.confirm(ticket.id, now))
                if confirmed is None:
                    continue
                self._store.add_ticket(ticket)
                notice = ConfirmationNotice(
                    recipient=confirmed.participant_email,
                    event_name=event.name,
                    ticket_id=ticket.id,
                    qr_token=ticket.token,
                    event_date=event.starts_at,
                )
                self._store.on_commit(partial(deliver_confirmation, self._notifier, notice))
            logger.info(
                "registration_confirmed",
                event_id=str(event.id),
                registration_id=str(confirmed.id),
                ticket_id=ticket.id,
            )
            return confirmed
        raise ConcurrentUpdate("registration", registration_id)

    def _ensure_paid(self, registration: Registration) -> None:
        if not registration.requires_payment:
            return
        proof = self.latest_proof(registration)
        if proof is None or proof.state is not ProofState.APPROVED:
            raise PaymentNotApproved(registration.id)

    def latest_proof(self, registration: Registration) -> PaymentProof | None:
        if registration.proof_id is None:
            return None
        return self._store.get_proof(registration.proof_id)

    def check_in(self, registration_id: str | RegistrationId, ticket_id: str) -> CheckIn:
        """Mark a confirmed registration as checked in and its ticket as used.

        Raises:
            TicketAlreadyUsed: If the registration was already checked in.
            TicketInvalid: If the registration or ticket is cancelled, unknown or unconfirmed.
            InvalidStateTransition: If the event is completed or cancelled.
        """
        for _ in range(CAS_ATTEMPTS):
            current = load_registration(self._store, registration_id)
            ticket = self._store.get_ticket(ticket_id)
            if ticket is None or current.ticket_id != ticket_id:
                raise TicketInvalid("Unknown ticket")
            if current.state is RegistrationState.CHECKED_IN or ticket.state is TicketState.USED:
                raise TicketAlreadyUsed(ticket_id)
            if current.state is not RegistrationState.CONFIRMED or ticket.state is not TicketState.VALID:
                raise TicketInvalid("Ticket has been cancelled")
            event = load_event(self._store, current.event_id)
            event.ensure_registrations_mutable(RegistrationState.CHECKED_IN)

            now = self._clock()
            with self._store.atomic():
                checked_in = self._store.update_registration(current.check_in(now))
                if checked_in is None:
                    continue
                used = compare_and_swap(
                    "ticket",
                    ticket_id,
                    load=lambda: self._store.get_ticket(ticket_id),
                    change=lambda fresh: fresh.use(now),
                    save=self._store.update_ticket,
                )
            logger.info(
                "ticket_checked_in",
                event_id=str(event.id),
                registration_id=str(checked_in.id),
                ticket_id=ticket_id,
            )
            return CheckIn(registration=checked_in, ticket=used)
        raise ConcurrentUpdate("registration", registration_id)

    def cancel(
        self, actor: Actor, registration_id: str | RegistrationId, reason: str | None = None
    ) -> Registration:
        """Cancel a pending or confirmed registration, releasing its slot.

        The registrant, the event's organizer and admins may cancel.

        Raises:
            Unauthorized: If the actor may not cancel this registration.
            InvalidStateTransition: If the registration is already terminal or the event is frozen.
        """
        registration = load_registration(self._store, registration_id)
        event = load_event(self._store, registration.event_id)
        if actor.role is Role.PARTICIPANT:
            if registration.participant_id != actor.user_id:
                raise Unauthorized()
            default_reason = CANCEL_REASON_PARTICIPANT
        else:
            require_event_owner(actor, event)
            default_reason = CANCEL_REASON_ORGANIZER
        return self._cancel(registration.id, reason or default_reason, check_event=True)

    def force_cancel(self, registration_id: RegistrationId, reason: str) -> Registration:
        """Cancel regardless of the event's state; used by event cancellation."""
        return self._cancel(registration_id, reason, check_event=False)

    def _cancel(self, registration_id: RegistrationId, reason: str, check_event: bool) -> Registration:
        for _ in range(CAS_ATTEMPTS):
            current = load_registration(self._store, registration_id)
            if check_event:
                event = load_event(self._store, current.event_id)
                event.ensure_registrations_mutable(RegistrationState.CANCELLED)
            now = self._clock()
            with self._store.atomic():
                cancelled = self._store.update_registration(current.cancel(reason, now))
                if cancelled is None:
                    continue
                self._ledger.release_slot(cancelled)
                if cancelled.ticket_id is not None:
                    self._void_ticket(cancelled.ticket_id)
            logger.info(
                "registration_cancelled",
                event_id=str(cancelled.event_id),
                registration_id=str(cancelled.id),
                reason=reason,
            )
            return cancelled
        raise ConcurrentUpdate("registration", registration_id)

    def _void_ticket(self, ticket_id: str) -> None:
        ticket = self._store.get_ticket(ticket_id)
        if ticket is None or ticket.state is not TicketState.VALID:
            return
        compare_and_swap(
            "ticket",
            ticket_id,
            load=lambda: self._store.get_ticket(ticket_id),
            change=lambda fresh: fresh.void(),
            save=self._store.update_ticket,
        )

    # Queries

    def get_registration(self, actor: Actor, registration_id: str | RegistrationId) -> Registration:
        registration = load_registration(self._store, registration_id)
        self._ensure_can_view(actor, registration)
        return registration

    def get_ticket(self, actor: Actor, registration_id: str | RegistrationId) -> Ticket:
        registration = self.get_registration(actor, registration_id)
        if registration.ticket_id is None:
            raise TicketInvalid("No ticket has been issued for this registration")
        ticket = self._store.get_ticket(registration.ticket_id)
        if ticket is None:
            raise TicketInvalid("Unknown ticket")
        return ticket

    def list_my_registrations(self, actor: Actor) -> list[Registration]:
        return self._store.list_registrations(participant_id=actor.user_id)

    def list_event_registrations(
        self,
        actor: Actor,
        event_id: str,
        states: Iterable[RegistrationState] | None = None,
    ) -> list[Registration]:
        event = load_event(self._store, event_id)
        require_event_owner(actor, event)
        return self._store.list_registrations(event_id=event.id, states=states)

    def _ensure_can_view(self, actor: Actor, registration: Registration) -> None:
        if actor.role is Role.PARTICIPANT:
            if registration.participant_id != actor.user_id:
                raise Unauthorized()
            return
        require_event_owner(actor, load_event(self._store, registration.event_id))

