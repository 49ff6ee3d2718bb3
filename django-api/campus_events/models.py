"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
Participants and organizers are referenced by user id only; identity is owned
by the authentication layer.
"""

import uuid

from django.db import models
from django.db.models import Q

from campus_events.domain.states import EventState, ProofState, RegistrationState, TicketState


def _choices(enum_cls) -> list[tuple[str, str]]:
    return [(member.value, member.value.replace("_", " ").title()) for member in enum_cls]


class Event(models.Model):
    """Persistence model for events."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organizer_id = models.PositiveIntegerField(db_index=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    venue = models.CharField(max_length=255, blank=True)
    starts_at = models.DateTimeField()
    capacity = models.PositiveIntegerField(null=True, blank=True)
    registration_opens_at = models.DateTimeField(null=True, blank=True)
    registration_closes_at = models.DateTimeField(null=True, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    state = models.CharField(
        max_length=20, choices=_choices(EventState), default=EventState.DRAFT.value, db_index=True
    )
    registered_count = models.PositiveIntegerField(default=0)
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        ordering = ["starts_at"]
        indexes = [
            models.Index(fields=["state", "registration_closes_at"]),
        ]

    def __str__(self) -> str:
        return self.name


class MerchandiseItem(models.Model):
    """Persistence model for merchandise sold with an event."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="merchandise")
    name = models.CharField(max_length=100)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    stock = models.PositiveIntegerField()

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["event", "name"], name="unique_merchandise_name"),
        ]

    def __str__(self) -> str:
        return f"{self.name} - {self.price}"


class Registration(models.Model):
    """Persistence model for registrations."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="registrations")
    participant_id = models.PositiveIntegerField(db_index=True)
    participant_email = models.EmailField(blank=True)
    state = models.CharField(
        max_length=20,
        choices=_choices(RegistrationState),
        default=RegistrationState.PENDING.value,
        db_index=True,
    )
    amount_due = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    items = models.JSONField(default=list, blank=True)
    proof_id = models.UUIDField(null=True, blank=True)
    ticket_id = models.CharField(max_length=64, null=True, blank=True)
    cancellation_reason = models.CharField(max_length=255, null=True, blank=True)
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["event", "participant_id"],
                condition=~Q(state=RegistrationState.CANCELLED.value),
                name="unique_active_registration",
            ),
        ]
        indexes = [
            models.Index(fields=["event", "state"]),
        ]

    def __str__(self) -> str:
        return f"{self.participant_id} @ {self.event_id} ({self.state})"


class PaymentProof(models.Model):
    """Persistence model for payment proofs."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    registration = models.ForeignKey(Registration, on_delete=models.CASCADE, related_name="proofs")
    artifact_ref = models.CharField(max_length=255)
    state = models.CharField(
        max_length=20, choices=_choices(ProofState), default=ProofState.PENDING.value
    )
    reviewer_id = models.PositiveIntegerField(null=True, blank=True)
    rejection_reason = models.CharField(max_length=255, null=True, blank=True)
    version = models.PositiveIntegerField(default=0)
    submitted_at = models.DateTimeField()
    reviewed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["submitted_at"]

    def __str__(self) -> str:
        return f"Proof {self.id} ({self.state})"


class Ticket(models.Model):
    """Persistence model for issued tickets."""

    id = models.CharField(primary_key=True, max_length=64, editable=False)
    registration = models.OneToOneField(Registration, on_delete=models.CASCADE, related_name="ticket")
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="tickets")
    token = models.TextField()
    state = models.CharField(
        max_length=20, choices=_choices(TicketState), default=TicketState.VALID.value, db_index=True
    )
    version = models.PositiveIntegerField(default=0)
    issued_at = models.DateTimeField()
    checked_in_at = models.DateTimeField(null=True, blank=True)

    def __str__(self) -> str:
        return self.id


class Feedback(models.Model):
    """Persistence model for post-event feedback."""

    registration = models.OneToOneField(Registration, on_delete=models.CASCADE, related_name="feedback")
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="feedback")
    participant_id = models.PositiveIntegerField()
    rating = models.PositiveSmallIntegerField()
    comment = models.TextField(blank=True)
    created_at = models.DateTimeField()

    class Meta:
        ordering = ["created_at"]

    def __str__(self) -> str:
        return f"{self.rating}/5 for {self.event_id}"
