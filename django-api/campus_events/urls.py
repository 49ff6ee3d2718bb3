from django.urls import path

from campus_events.handlers import (
    EventDetailView,
    EventExportView,
    EventFeedbackView,
    EventListView,
    EventRegisterView,
    EventRegistrationsView,
    EventSummaryView,
    EventTransitionView,
    MyRegistrationsView,
    PaymentApproveView,
    PaymentProofView,
    PaymentRejectView,
    RegistrationCancelView,
    RegistrationDetailView,
    RegistrationFeedbackView,
    RegistrationTicketView,
    SystemStatsView,
    VerifyTicketView,
)

urlpatterns = [
    path("events", EventListView.as_view(), name="event-list"),
    path("events/<str:event_id>", EventDetailView.as_view(), name="event-detail"),
    *[
        path(
            f"events/<str:event_id>/{transition}",
            EventTransitionView.as_view(transition=transition),
            name=f"event-{transition}",
        )
        for transition in ("publish", "close", "complete", "cancel")
    ],
    path("events/<str:event_id>/register", EventRegisterView.as_view(), name="event-register"),
    path(
        "events/<str:event_id>/registrations",
        EventRegistrationsView.as_view(),
        name="event-registrations",
    ),
    path(
        "events/<str:event_id>/registrations/export",
        EventExportView.as_view(),
        name="event-registrations-export",
    ),
    path("events/<str:event_id>/summary", EventSummaryView.as_view(), name="event-summary"),
    path("events/<str:event_id>/feedback", EventFeedbackView.as_view(), name="event-feedback"),
    path("registrations/mine", MyRegistrationsView.as_view(), name="my-registrations"),
    path(
        "registrations/<str:registration_id>",
        RegistrationDetailView.as_view(),
        name="registration-detail",
    ),
    path(
        "registrations/<str:registration_id>/cancel",
        RegistrationCancelView.as_view(),
        name="registration-cancel",
    ),
    path(
        "registrations/<str:registration_id>/ticket",
        RegistrationTicketView.as_view(),
        name="registration-ticket",
    ),
    path(
        "registrations/<str:registration_id>/payment-proof",
        PaymentProofView.as_view(),
        name="payment-proof",
    ),
    path(
        "registrations/<str:registration_id>/payment-proof/approve",
        PaymentApproveView.as_view(),
        name="payment-proof-approve",
    ),
    path(
        "registrations/<str:registration_id>/payment-proof/reject",
        PaymentRejectView.as_view(),
        name="payment-proof-reject",
    ),
    path(
        "registrations/<str:registration_id>/feedback",
        RegistrationFeedbackView.as_view(),
        name="registration-feedback",
    ),
    path("tickets/verify", VerifyTicketView.as_view(), name="ticket-verify"),
    path("admin/stats", SystemStatsView.as_view(), name="admin-stats"),
]
