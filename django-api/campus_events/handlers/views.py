"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses
- Never contain business logic
- Never expose internal error details
"""

import structlog
from django.http import HttpResponse
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from campus_events.domain import Actor, EventState, MerchandiseSelection, RegistrationState, Role
from campus_events.domain.errors import DomainError, ErrorCode, InvalidEventData
from campus_events.handlers import serializers
from campus_events.services.container import Services, build_services

logger = structlog.get_logger(__name__)

ORGANIZER_GROUP = "organizers"

ERROR_STATUS = {
    ErrorCode.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.REGISTRATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PROOF_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_EVENT_DATA: status.HTTP_400_BAD_REQUEST,
    ErrorCode.MALFORMED_TOKEN: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorCode.INVALID_STATE_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.CAPACITY_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.DUPLICATE_REGISTRATION: status.HTTP_409_CONFLICT,
    ErrorCode.PAYMENT_NOT_APPROVED: status.HTTP_409_CONFLICT,
    ErrorCode.MERCHANDISE_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.TICKET_ALREADY_USED: status.HTTP_409_CONFLICT,
    ErrorCode.TICKET_INVALID: status.HTTP_409_CONFLICT,
    ErrorCode.WINDOW_CLOSED: status.HTTP_409_CONFLICT,
    ErrorCode.FEEDBACK_ALREADY_SUBMITTED: status.HTTP_409_CONFLICT,
    ErrorCode.CONCURRENT_UPDATE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def actor_from_request(request: Request) -> Actor:
    """Derive the domain actor from the authenticated Django user."""
    user = request.user
    if user.is_superuser:
        role = Role.ADMIN
    elif user.groups.filter(name=ORGANIZER_GROUP).exists():
        role = Role.ORGANIZER
    else:
        role = Role.PARTICIPANT
    return Actor(user_id=user.pk, role=role, email=user.email or "")


def error_response(error: DomainError) -> Response:
    return Response(
        {"code": error.code.value, "message": error.message},
        status=ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST),
    )


class DomainAPIView(APIView):
    """Base view: authenticated access and domain error mapping."""

    permission_classes = [IsAuthenticated]

    @property
    def services(self) -> Services:
        if not hasattr(self, "_services"):
            self._services = build_services()
        return self._services

    def handle_exception(self, exc: Exception) -> Response:
        if isinstance(exc, DomainError):
            logger.info(
                "domain_error",
                code=exc.code.value,
                path=self.request.path,
                method=self.request.method,
            )
            return error_response(exc)
        return super().handle_exception(exc)


def _parse_states(raw: str | None, enum_cls):
    if not raw:
        return None
    try:
        return [enum_cls(value) for value in raw.split(",")]
    except ValueError as exc:
        raise InvalidEventData(f"Unknown state filter '{raw}'") from exc


class EventListView(DomainAPIView):
    """Handler for GET/POST /api/events"""

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return super().get_permissions()

    def get(self, request: Request) -> Response:
        states = _parse_states(request.query_params.get("state"), EventState)
        organizer = request.query_params.get("organizer")
        if organizer is not None and not organizer.isdigit():
            raise InvalidEventData("Invalid organizer filter")
        events = self.services.events.list_events(
            states=states,
            organizer_id=int(organizer) if organizer is not None else None,
        )
        return Response(serializers.EventSerializer(events, many=True).data)

    def post(self, request: Request) -> Response:
        payload = serializers.EventCreateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        event = self.services.events.create_event(actor_from_request(request), **payload.validated_data)
        return Response(serializers.EventSerializer(event).data, status=status.HTTP_201_CREATED)


class EventDetailView(DomainAPIView):
    """Handler for GET/PATCH/DELETE /api/events/{event_id}"""

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return super().get_permissions()

    def get(self, request: Request, event_id: str) -> Response:
        event = self.services.events.get_event(event_id)
        return Response(serializers.EventSerializer(event).data)

    def patch(self, request: Request, event_id: str) -> Response:
        payload = serializers.EventUpdateSerializer(data=request.data, partial=True)
        payload.is_valid(raise_exception=True)
        event = self.services.events.update_event(
            actor_from_request(request), event_id, **payload.validated_data
        )
        return Response(serializers.EventSerializer(event).data)

    def delete(self, request: Request, event_id: str) -> Response:
        self.services.events.delete_event(actor_from_request(request), event_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class EventTransitionView(DomainAPIView):
    """Handler for POST /api/events/{event_id}/{publish|close|complete|cancel}"""

    transition: str = ""

    def post(self, request: Request, event_id: str) -> Response:
        move = getattr(self.services.events, self.transition)
        event = move(actor_from_request(request), event_id)
        return Response(serializers.EventSerializer(event).data)


class EventRegisterView(DomainAPIView):
    """Handler for POST /api/events/{event_id}/register"""

    def post(self, request: Request, event_id: str) -> Response:
        payload = serializers.RegisterSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        items = [MerchandiseSelection(**item) for item in payload.validated_data["items"]]
        registration = self.services.registrations.register(
            actor_from_request(request), event_id, items
        )
        return Response(
            serializers.RegistrationSerializer(registration).data,
            status=status.HTTP_201_CREATED,
        )


class EventRegistrationsView(DomainAPIView):
    """Handler for GET /api/events/{event_id}/registrations"""

    def get(self, request: Request, event_id: str) -> Response:
        states = _parse_states(request.query_params.get("state"), RegistrationState)
        registrations = self.services.registrations.list_event_registrations(
            actor_from_request(request), event_id, states=states
        )
        return Response(serializers.RegistrationSerializer(registrations, many=True).data)


class EventExportView(DomainAPIView):
    """Handler for GET /api/events/{event_id}/registrations/export"""

    def get(self, request: Request, event_id: str) -> HttpResponse:
        content = self.services.events.export_registrations_csv(actor_from_request(request), event_id)
        response = HttpResponse(content, content_type="text/csv")
        response["Content-Disposition"] = f'attachment; filename="registrations-{event_id}.csv"'
        return response


class EventSummaryView(DomainAPIView):
    """Handler for GET /api/events/{event_id}/summary"""

    def get(self, request: Request, event_id: str) -> Response:
        summary = self.services.events.event_summary(actor_from_request(request), event_id)
        return Response(serializers.EventSummarySerializer(summary).data)


class EventFeedbackView(DomainAPIView):
    """Handler for GET /api/events/{event_id}/feedback"""

    def get(self, request: Request, event_id: str) -> Response:
        report = self.services.feedback.list_feedback(actor_from_request(request), event_id)
        return Response(serializers.FeedbackReportSerializer(report).data)


class MyRegistrationsView(DomainAPIView):
    """Handler for GET /api/registrations/mine"""

    def get(self, request: Request) -> Response:
        registrations = self.services.registrations.list_my_registrations(actor_from_request(request))
        return Response(serializers.RegistrationSerializer(registrations, many=True).data)


class RegistrationDetailView(DomainAPIView):
    """Handler for GET /api/registrations/{registration_id}"""

    def get(self, request: Request, registration_id: str) -> Response:
        registration = self.services.registrations.get_registration(
            actor_from_request(request), registration_id
        )
        return Response(serializers.RegistrationSerializer(registration).data)


class RegistrationCancelView(DomainAPIView):
    """Handler for POST /api/registrations/{registration_id}/cancel"""

    def post(self, request: Request, registration_id: str) -> Response:
        payload = serializers.CancelSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        registration = self.services.registrations.cancel(
            actor_from_request(request),
            registration_id,
            reason=payload.validated_data["reason"] or None,
        )
        return Response(serializers.RegistrationSerializer(registration).data)


class RegistrationTicketView(DomainAPIView):
    """Handler for GET /api/registrations/{registration_id}/ticket"""

    def get(self, request: Request, registration_id: str) -> Response:
        ticket = self.services.registrations.get_ticket(actor_from_request(request), registration_id)
        return Response(serializers.TicketSerializer(ticket).data)


class PaymentProofView(DomainAPIView):
    """Handler for GET/POST /api/registrations/{registration_id}/payment-proof"""

    def get(self, request: Request, registration_id: str) -> Response:
        proof = self.services.payments.current_proof(actor_from_request(request), registration_id)
        return Response(serializers.PaymentProofSerializer(proof).data)

    def post(self, request: Request, registration_id: str) -> Response:
        payload = serializers.ProofSubmitSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        proof = self.services.payments.submit_proof(
            actor_from_request(request),
            registration_id,
            payload.validated_data["artifact_ref"],
        )
        return Response(
            serializers.PaymentProofSerializer(proof).data,
            status=status.HTTP_201_CREATED,
        )


class PaymentApproveView(DomainAPIView):
    """Handler for POST /api/registrations/{registration_id}/payment-proof/approve"""

    def post(self, request: Request, registration_id: str) -> Response:
        registration = self.services.payments.approve(actor_from_request(request), registration_id)
        return Response(serializers.RegistrationSerializer(registration).data)


class PaymentRejectView(DomainAPIView):
    """Handler for POST /api/registrations/{registration_id}/payment-proof/reject"""

    def post(self, request: Request, registration_id: str) -> Response:
        payload = serializers.ProofRejectSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        proof = self.services.payments.reject(
            actor_from_request(request),
            registration_id,
            payload.validated_data["reason"],
        )
        return Response(serializers.PaymentProofSerializer(proof).data)


class RegistrationFeedbackView(DomainAPIView):
    """Handler for GET/POST /api/registrations/{registration_id}/feedback"""

    def get(self, request: Request, registration_id: str) -> Response:
        feedback = self.services.feedback.feedback_status(actor_from_request(request), registration_id)
        return Response(
            {
                "submitted": feedback is not None,
                "feedback": serializers.FeedbackSerializer(feedback).data if feedback else None,
            }
        )

    def post(self, request: Request, registration_id: str) -> Response:
        payload = serializers.FeedbackSubmitSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        feedback = self.services.feedback.submit(
            actor_from_request(request), registration_id, **payload.validated_data
        )
        return Response(serializers.FeedbackSerializer(feedback).data, status=status.HTTP_201_CREATED)


class VerifyTicketView(DomainAPIView):
    """Handler for POST /api/tickets/verify"""

    def post(self, request: Request) -> Response:
        payload = serializers.VerifyTicketSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        result = self.services.verification.verify(
            payload.validated_data["token"], actor_from_request(request)
        )
        return Response(serializers.CheckInSerializer(result).data)


class SystemStatsView(DomainAPIView):
    """Handler for GET /api/admin/stats"""

    def get(self, request: Request) -> Response:
        stats = self.services.events.system_stats(actor_from_request(request))
        return Response(serializers.SystemStatsSerializer(stats).data)
