"""Serializers for request validation and for rendering domain models.

Output serializers read attributes straight off the frozen domain
dataclasses; input serializers only check the request format. Business
rules stay in the services.
"""

from rest_framework import serializers


class MerchandiseOptionSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, source="price.amount")
    stock = serializers.IntegerField(min_value=0)


class EventSerializer(serializers.Serializer):
    """Serializer for Event domain model."""

    id = serializers.CharField()
    organizer_id = serializers.IntegerField()
    name = serializers.CharField()
    description = serializers.CharField()
    venue = serializers.CharField()
    starts_at = serializers.DateTimeField()
    capacity = serializers.SerializerMethodField()
    registration_opens_at = serializers.SerializerMethodField()
    registration_closes_at = serializers.SerializerMethodField()
    price = serializers.DecimalField(max_digits=10, decimal_places=2, source="price.amount")
    state = serializers.CharField()
    registered_count = serializers.IntegerField()
    remaining_slots = serializers.IntegerField(allow_null=True)
    merchandise = MerchandiseOptionSerializer(many=True)
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()

    def get_capacity(self, event) -> int | None:
        return event.capacity.value if event.capacity is not None else None

    def get_registration_opens_at(self, event) -> str | None:
        if event.window is None:
            return None
        return serializers.DateTimeField().to_representation(event.window.opens_at)

    def get_registration_closes_at(self, event) -> str | None:
        if event.window is None:
            return None
        return serializers.DateTimeField().to_representation(event.window.closes_at)


class MerchandiseInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=0)
    stock = serializers.IntegerField(min_value=0, default=0)


class EventCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    venue = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")
    starts_at = serializers.DateTimeField()
    capacity = serializers.IntegerField(min_value=0, required=False, allow_null=True, default=None)
    registration_opens_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    registration_closes_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=0)
    merchandise = MerchandiseInputSerializer(many=True, required=False, default=list)


class EventUpdateSerializer(serializers.Serializer):
    """All fields optional; only those present in the request are applied."""

    name = serializers.CharField(max_length=200, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    venue = serializers.CharField(max_length=200, required=False, allow_blank=True)
    starts_at = serializers.DateTimeField(required=False)
    capacity = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    registration_opens_at = serializers.DateTimeField(required=False)
    registration_closes_at = serializers.DateTimeField(required=False)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    merchandise = MerchandiseInputSerializer(many=True, required=False)


class MerchandiseSelectionSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    quantity = serializers.IntegerField(min_value=1, default=1)


class RegisterSerializer(serializers.Serializer):
    items = MerchandiseSelectionSerializer(many=True, required=False, default=list)


class RegistrationSerializer(serializers.Serializer):
    """Serializer for Registration domain model."""

    id = serializers.CharField()
    event_id = serializers.CharField()
    participant_id = serializers.IntegerField()
    participant_email = serializers.EmailField()
    state = serializers.CharField()
    amount_due = serializers.DecimalField(max_digits=10, decimal_places=2, source="amount_due.amount")
    items = MerchandiseSelectionSerializer(many=True)
    proof_id = serializers.CharField(allow_null=True)
    ticket_id = serializers.CharField(allow_null=True)
    cancellation_reason = serializers.CharField(allow_null=True)
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class ProofSubmitSerializer(serializers.Serializer):
    artifact_ref = serializers.CharField(max_length=255)


class ProofRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255)


class PaymentProofSerializer(serializers.Serializer):
    """Serializer for PaymentProof domain model."""

    id = serializers.CharField()
    registration_id = serializers.CharField()
    artifact_ref = serializers.CharField()
    state = serializers.CharField()
    reviewer_id = serializers.IntegerField(allow_null=True)
    rejection_reason = serializers.CharField(allow_null=True)
    submitted_at = serializers.DateTimeField()
    reviewed_at = serializers.DateTimeField(allow_null=True)


class TicketSerializer(serializers.Serializer):
    """Serializer for Ticket domain model; includes the scannable token."""

    id = serializers.CharField()
    registration_id = serializers.CharField()
    event_id = serializers.CharField()
    token = serializers.CharField()
    state = serializers.CharField()
    issued_at = serializers.DateTimeField()
    checked_in_at = serializers.DateTimeField(allow_null=True)


class VerifyTicketSerializer(serializers.Serializer):
    token = serializers.CharField()


class CheckInSerializer(serializers.Serializer):
    registration = RegistrationSerializer()
    ticket = TicketSerializer()


class EventSummarySerializer(serializers.Serializer):
    event_id = serializers.CharField(source="event.id")
    state = serializers.CharField(source="event.state")
    capacity = serializers.SerializerMethodField()
    registered_count = serializers.IntegerField(source="event.registered_count")
    remaining_slots = serializers.IntegerField(allow_null=True)
    counts = serializers.SerializerMethodField()
    confirmed_revenue = serializers.DecimalField(
        max_digits=12, decimal_places=2, source="confirmed_revenue.amount"
    )

    def get_capacity(self, summary) -> int | None:
        capacity = summary.event.capacity
        return capacity.value if capacity is not None else None

    def get_counts(self, summary) -> dict[str, int]:
        return {state.value: count for state, count in summary.counts.items()}


class FeedbackSubmitSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, default="")


class FeedbackSerializer(serializers.Serializer):
    registration_id = serializers.CharField()
    participant_id = serializers.IntegerField()
    rating = serializers.IntegerField()
    comment = serializers.CharField()
    created_at = serializers.DateTimeField()


class FeedbackReportSerializer(serializers.Serializer):
    entries = FeedbackSerializer(many=True)
    average_rating = serializers.DecimalField(max_digits=3, decimal_places=2, allow_null=True)


class SystemStatsSerializer(serializers.Serializer):
    total_events = serializers.IntegerField()
    events_by_state = serializers.SerializerMethodField()
    total_registrations = serializers.IntegerField()
    registrations_by_state = serializers.SerializerMethodField()
    total_participants = serializers.IntegerField()
    total_organizers = serializers.IntegerField()

    def get_events_by_state(self, stats) -> dict[str, int]:
        return {state.value: count for state, count in stats.events_by_state.items()}

    def get_registrations_by_state(self, stats) -> dict[str, int]:
        return {state.value: count for state, count in stats.registrations_by_state.items()}
