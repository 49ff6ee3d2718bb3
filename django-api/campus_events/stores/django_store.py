"""Django ORM implementation of the EventStore.

Slot counters and merchandise stock move through conditional ``UPDATE``
statements with ``F()`` expressions, so the database row lock serializes
concurrent reservations for the same event. State transitions are
compare-and-swap updates filtered on the ``version`` column.
"""

from contextlib import AbstractContextManager
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable

from django.db import IntegrityError, OperationalError, transaction
from django.db.models import F, Q

from campus_events import models
from campus_events.domain import (
    Capacity,
    Event,
    EventId,
    EventState,
    Feedback,
    MerchandiseOption,
    MerchandiseSelection,
    Money,
    PaymentProof,
    ProofId,
    ProofState,
    Registration,
    RegistrationId,
    RegistrationState,
    RegistrationWindow,
    Ticket,
    TicketState,
)
from campus_events.domain.errors import (
    CapacityExceeded,
    ConcurrentUpdate,
    DomainError,
    DuplicateRegistration,
    EventNotFound,
    FeedbackAlreadySubmitted,
    MerchandiseUnavailable,
)
from campus_events.stores.interfaces import EventStore


class DjangoEventStore(EventStore):
    """Database-backed event store using Django ORM."""

    def atomic(self) -> AbstractContextManager[None]:
        return transaction.atomic()

    def on_commit(self, callback: Callable[[], None]) -> None:
        transaction.on_commit(callback)

    # Events

    def add_event(self, event: Event) -> None:
        with transaction.atomic():
            row = models.Event.objects.create(id=event.id.value, **self._event_fields(event))
            self._write_merchandise(row, event.merchandise)

    def get_event(self, event_id: EventId) -> Event | None:
        row = models.Event.objects.prefetch_related("merchandise").filter(pk=event_id.value).first()
        return _to_event(row) if row is not None else None

    def list_events(
        self,
        organizer_id: int | None = None,
        states: Iterable[EventState] | None = None,
    ) -> list[Event]:
        queryset = models.Event.objects.prefetch_related("merchandise")
        if organizer_id is not None:
            queryset = queryset.filter(organizer_id=organizer_id)
        if states is not None:
            queryset = queryset.filter(state__in=[state.value for state in states])
        return [_to_event(row) for row in queryset.order_by("starts_at")]

    def update_event(self, event: Event) -> Event | None:
        queryset = models.Event.objects.filter(pk=event.id.value, version=event.version)
        if event.capacity is not None and not event.capacity.is_unlimited:
            queryset = queryset.filter(registered_count__lte=event.capacity.value)
        with transaction.atomic():
            updated = queryset.update(version=event.version + 1, **self._event_fields(event))
            if not updated:
                return None
            if event.state is EventState.DRAFT:
                row = models.Event.objects.get(pk=event.id.value)
                row.merchandise.all().delete()
                self._write_merchandise(row, event.merchandise)
        return self.get_event(event.id)

    def delete_event(self, event: Event) -> bool:
        deleted, _ = models.Event.objects.filter(
            pk=event.id.value, version=event.version, state=EventState.DRAFT.value
        ).delete()
        return deleted > 0

    @staticmethod
    def _event_fields(event: Event) -> dict:
        return {
            "organizer_id": event.organizer_id,
            "name": event.name,
            "description": event.description,
            "venue": event.venue,
            "starts_at": event.starts_at,
            "capacity": event.capacity.value if event.capacity is not None else None,
            "registration_opens_at": event.window.opens_at if event.window else None,
            "registration_closes_at": event.window.closes_at if event.window else None,
            "price": event.price.amount,
            "state": event.state.value,
            "created_at": event.created_at,
            "updated_at": event.updated_at,
        }

    @staticmethod
    def _write_merchandise(row: models.Event, options: tuple[MerchandiseOption, ...]) -> None:
        models.MerchandiseItem.objects.bulk_create(
            [
                models.MerchandiseItem(
                    event=row, name=option.name, price=option.price.amount, stock=option.stock
                )
                for option in options
            ]
        )

    # Capacity ledger

    def create_registration(self, registration: Registration, now: datetime) -> None:
        event_id = registration.event_id
        try:
            with transaction.atomic():
                reserved = (
                    models.Event.objects.filter(
                        pk=event_id.value,
                        state=EventState.PUBLISHED.value,
                        registration_opens_at__lte=now,
                        registration_closes_at__gt=now,
                    )
                    .filter(Q(capacity=0) | Q(registered_count__lt=F("capacity")))
                    .update(registered_count=F("registered_count") + 1)
                )
                if not reserved:
                    raise self._reservation_failure(event_id, now)
                for item in registration.items:
                    taken = models.MerchandiseItem.objects.filter(
                        event_id=event_id.value, name=item.name, stock__gte=item.quantity
                    ).update(stock=F("stock") - item.quantity)
                    if not taken:
                        raise MerchandiseUnavailable(item.name)
                active = models.Registration.objects.filter(
                    event_id=event_id.value, participant_id=registration.participant_id
                ).exclude(state=RegistrationState.CANCELLED.value)
                if active.exists():
                    raise DuplicateRegistration(event_id, registration.participant_id)
                models.Registration.objects.create(
                    id=registration.id.value,
                    event_id=event_id.value,
                    created_at=registration.created_at,
                    **self._registration_fields(registration),
                )
        except IntegrityError as exc:
            raise DuplicateRegistration(event_id, registration.participant_id) from exc
        except OperationalError as exc:
            raise ConcurrentUpdate("event", event_id) from exc

    def _reservation_failure(self, event_id: EventId, now: datetime) -> DomainError:
        """Explain why the conditional slot increment matched no row."""
        event = self.get_event(event_id)
        if event is None:
            return EventNotFound(event_id)
        try:
            event.ensure_accepts_registrations(now)
        except DomainError as exc:
            return exc
        if not event.has_free_slot():
            return CapacityExceeded(event_id)
        return ConcurrentUpdate("event", event_id)

    def release_slot(
        self, event_id: EventId, items: tuple[MerchandiseSelection, ...] = ()
    ) -> None:
        with transaction.atomic():
            models.Event.objects.filter(pk=event_id.value, registered_count__gt=0).update(
                registered_count=F("registered_count") - 1
            )
            for item in items:
                models.MerchandiseItem.objects.filter(event_id=event_id.value, name=item.name).update(
                    stock=F("stock") + item.quantity
                )

    # Registrations

    def get_registration(self, registration_id: RegistrationId) -> Registration | None:
        row = models.Registration.objects.filter(pk=registration_id.value).first()
        return _to_registration(row) if row is not None else None

    def list_registrations(
        self,
        event_id: EventId | None = None,
        participant_id: int | None = None,
        states: Iterable[RegistrationState] | None = None,
    ) -> list[Registration]:
        queryset = models.Registration.objects.all()
        if event_id is not None:
            queryset = queryset.filter(event_id=event_id.value)
        if participant_id is not None:
            queryset = queryset.filter(participant_id=participant_id)
        if states is not None:
            queryset = queryset.filter(state__in=[state.value for state in states])
        return [_to_registration(row) for row in queryset.order_by("created_at")]

    def update_registration(self, registration: Registration) -> Registration | None:
        updated = models.Registration.objects.filter(
            pk=registration.id.value, version=registration.version
        ).update(version=registration.version + 1, **self._registration_fields(registration))
        return replace(registration, version=registration.version + 1) if updated else None

    @staticmethod
    def _registration_fields(registration: Registration) -> dict:
        return {
            "participant_id": registration.participant_id,
            "participant_email": registration.participant_email,
            "state": registration.state.value,
            "amount_due": registration.amount_due.amount,
            "items": [{"name": item.name, "quantity": item.quantity} for item in registration.items],
            "proof_id": registration.proof_id.value if registration.proof_id else None,
            "ticket_id": registration.ticket_id,
            "cancellation_reason": registration.cancellation_reason,
            "updated_at": registration.updated_at,
        }

    # Payment proofs

    def add_proof(self, proof: PaymentProof) -> None:
        models.PaymentProof.objects.create(
            id=proof.id.value,
            registration_id=proof.registration_id.value,
            artifact_ref=proof.artifact_ref,
            submitted_at=proof.submitted_at,
            **self._proof_fields(proof),
        )

    def get_proof(self, proof_id: ProofId) -> PaymentProof | None:
        row = models.PaymentProof.objects.filter(pk=proof_id.value).first()
        return _to_proof(row) if row is not None else None

    def list_proofs(self, registration_id: RegistrationId) -> list[PaymentProof]:
        queryset = models.PaymentProof.objects.filter(registration_id=registration_id.value)
        return [_to_proof(row) for row in queryset.order_by("submitted_at")]

    def update_proof(self, proof: PaymentProof) -> PaymentProof | None:
        updated = models.PaymentProof.objects.filter(pk=proof.id.value, version=proof.version).update(
            version=proof.version + 1, **self._proof_fields(proof)
        )
        return replace(proof, version=proof.version + 1) if updated else None

    @staticmethod
    def _proof_fields(proof: PaymentProof) -> dict:
        return {
            "state": proof.state.value,
            "reviewer_id": proof.reviewer_id,
            "rejection_reason": proof.rejection_reason,
            "reviewed_at": proof.reviewed_at,
        }

    # Tickets

    def add_ticket(self, ticket: Ticket) -> None:
        models.Ticket.objects.create(
            id=ticket.id,
            registration_id=ticket.registration_id.value,
            event_id=ticket.event_id.value,
            token=ticket.token,
            issued_at=ticket.issued_at,
            state=ticket.state.value,
            checked_in_at=ticket.checked_in_at,
        )

    def get_ticket(self, ticket_id: str) -> Ticket | None:
        row = models.Ticket.objects.filter(pk=ticket_id).first()
        return _to_ticket(row) if row is not None else None

    def update_ticket(self, ticket: Ticket) -> Ticket | None:
        updated = models.Ticket.objects.filter(pk=ticket.id, version=ticket.version).update(
            version=ticket.version + 1,
            state=ticket.state.value,
            checked_in_at=ticket.checked_in_at,
        )
        return replace(ticket, version=ticket.version + 1) if updated else None

    # Feedback

    def add_feedback(self, feedback: Feedback) -> None:
        try:
            with transaction.atomic():
                models.Feedback.objects.create(
                    registration_id=feedback.registration_id.value,
                    event_id=feedback.event_id.value,
                    participant_id=feedback.participant_id,
                    rating=feedback.rating,
                    comment=feedback.comment,
                    created_at=feedback.created_at,
                )
        except IntegrityError as exc:
            raise FeedbackAlreadySubmitted(feedback.registration_id) from exc

    def list_feedback(self, event_id: EventId) -> list[Feedback]:
        queryset = models.Feedback.objects.filter(event_id=event_id.value).order_by("created_at")
        return [_to_feedback(row) for row in queryset]

    def get_feedback(self, registration_id: RegistrationId) -> Feedback | None:
        row = models.Feedback.objects.filter(registration_id=registration_id.value).first()
        return _to_feedback(row) if row is not None else None


def _to_event(row: models.Event) -> Event:
    window = None
    if row.registration_opens_at is not None and row.registration_closes_at is not None:
        window = RegistrationWindow(
            opens_at=row.registration_opens_at, closes_at=row.registration_closes_at
        )
    return Event(
        id=EventId(value=row.id),
        organizer_id=row.organizer_id,
        name=row.name,
        description=row.description,
        venue=row.venue,
        starts_at=row.starts_at,
        capacity=Capacity(value=row.capacity) if row.capacity is not None else None,
        window=window,
        price=Money(amount=Decimal(row.price)),
        state=EventState(row.state),
        created_at=row.created_at,
        updated_at=row.updated_at,
        merchandise=tuple(
            MerchandiseOption(name=item.name, price=Money(amount=Decimal(item.price)), stock=item.stock)
            for item in row.merchandise.all()
        ),
        registered_count=row.registered_count,
        version=row.version,
    )


def _to_registration(row: models.Registration) -> Registration:
    return Registration(
        id=RegistrationId(value=row.id),
        event_id=EventId(value=row.event_id),
        participant_id=row.participant_id,
        participant_email=row.participant_email,
        state=RegistrationState(row.state),
        amount_due=Money(amount=Decimal(row.amount_due)),
        created_at=row.created_at,
        updated_at=row.updated_at,
        items=tuple(
            MerchandiseSelection(name=item["name"], quantity=item["quantity"]) for item in row.items
        ),
        proof_id=ProofId(value=row.proof_id) if row.proof_id else None,
        ticket_id=row.ticket_id,
        cancellation_reason=row.cancellation_reason,
        version=row.version,
    )


def _to_proof(row: models.PaymentProof) -> PaymentProof:
    return PaymentProof(
        id=ProofId(value=row.id),
        registration_id=RegistrationId(value=row.registration_id),
        artifact_ref=row.artifact_ref,
        state=ProofState(row.state),
        submitted_at=row.submitted_at,
        reviewer_id=row.reviewer_id,
        rejection_reason=row.rejection_reason,
        reviewed_at=row.reviewed_at,
        version=row.version,
    )


def _to_ticket(row: models.Ticket) -> Ticket:
    return Ticket(
        id=row.id,
        registration_id=RegistrationId(value=row.registration_id),
        event_id=EventId(value=row.event_id),
        token=row.token,
        state=TicketState(row.state),
        issued_at=row.issued_at,
        checked_in_at=row.checked_in_at,
        version=row.version,
    )


def _to_feedback(row: models.Feedback) -> Feedback:
    return Feedback(
        registration_id=RegistrationId(value=row.registration_id),
        event_id=EventId(value=row.event_id),
        participant_id=row.participant_id,
        rating=row.rating,
        comment=row.comment,
        created_at=row.created_at,
    )
