from django.contrib import admin

from campus_events.models import Event, Feedback, MerchandiseItem, PaymentProof, Registration, Ticket


class MerchandiseItemInline(admin.TabularInline):
    model = MerchandiseItem
    extra = 1


class PaymentProofInline(admin.TabularInline):
    model = PaymentProof
    extra = 0
    readonly_fields = ["state", "reviewer_id", "rejection_reason", "submitted_at", "reviewed_at"]


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ["name", "venue", "starts_at", "state", "registered_count", "capacity"]
    list_filter = ["state"]
    search_fields = ["name", "venue"]
    readonly_fields = ["registered_count", "version"]
    inlines = [MerchandiseItemInline]


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    list_display = ["event", "participant_email", "state", "amount_due", "created_at"]
    list_filter = ["state", "event"]
    search_fields = ["participant_email", "ticket_id"]
    readonly_fields = ["version"]
    inlines = [PaymentProofInline]


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = ["id", "event", "state", "issued_at", "checked_in_at"]
    list_filter = ["state", "event"]
    readonly_fields = ["token", "version"]


@admin.register(Feedback)
class FeedbackAdmin(admin.ModelAdmin):
    list_display = ["event", "participant_id", "rating", "created_at"]
    list_filter = ["event", "rating"]
