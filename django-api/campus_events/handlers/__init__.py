from campus_events.handlers.views import (
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

__all__ = [
    "EventListView",
    "EventDetailView",
    "EventTransitionView",
    "EventRegisterView",
    "EventRegistrationsView",
    "EventExportView",
    "EventSummaryView",
    "EventFeedbackView",
    "MyRegistrationsView",
    "RegistrationDetailView",
    "RegistrationCancelView",
    "RegistrationTicketView",
    "PaymentProofView",
    "PaymentApproveView",
    "PaymentRejectView",
    "RegistrationFeedbackView",
    "VerifyTicketView",
    "SystemStatsView",
]
