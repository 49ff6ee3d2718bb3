"""Post-event feedback.

Feedback opens once an event is completed and is limited to participants
whose registration was confirmed (checked in or not). Each registration may
leave feedback once.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import structlog
from django.utils import timezone

from campus_events.domain import Actor, EventState, Feedback, RegistrationId, RegistrationState
from campus_events.domain.errors import InvalidEventData, InvalidStateTransition, Unauthorized
from campus_events.services.guards import (
    Clock,
    load_event,
    load_registration,
    require_event_owner,
)
from campus_events.stores.interfaces import EventStore

logger = structlog.get_logger(__name__)

_ATTENDED_STATES = frozenset({RegistrationState.CONFIRMED, RegistrationState.CHECKED_IN})


@dataclass(frozen=True)
class FeedbackReport:
    entries: list[Feedback]
    average_rating: Decimal | None


class FeedbackService:
    """Service for collecting and reading event feedback."""

    def __init__(self, store: EventStore, clock: Clock = timezone.now) -> None:
        self._store = store
        self._clock = clock

    def submit(
        self,
        actor: Actor,
        registration_id: str | RegistrationId,
        rating: int,
        comment: str = "",
    ) -> Feedback:
        """Record the registrant's feedback for a completed event.

        Raises:
            Unauthorized: If the actor is not the registrant.
            InvalidStateTransition: If the event is not completed or the
                registration never reached confirmed.
            InvalidEventData: If the rating is outside 1-5.
            FeedbackAlreadySubmitted: If feedback exists for the registration.
        """
        registration = load_registration(self._store, registration_id)
        if registration.participant_id != actor.user_id:
            raise Unauthorized()
        event = load_event(self._store, registration.event_id)
        if event.state is not EventState.COMPLETED:
            raise InvalidStateTransition("feedback", event.state, EventState.COMPLETED)
        if registration.state not in _ATTENDED_STATES:
            raise InvalidStateTransition("feedback", registration.state, RegistrationState.CONFIRMED)
        try:
            feedback = Feedback(
                registration_id=registration.id,
                event_id=event.id,
                participant_id=actor.user_id,
                rating=int(rating),
                comment=comment.strip(),
                created_at=self._clock(),
            )
        except (TypeError, ValueError) as exc:
            raise InvalidEventData("Rating must be a whole number between 1 and 5") from exc
        self._store.add_feedback(feedback)
        logger.info(
            "feedback_submitted",
            event_id=str(event.id),
            registration_id=str(registration.id),
            rating=feedback.rating,
        )
        return feedback

    def feedback_status(self, actor: Actor, registration_id: str | RegistrationId) -> Feedback | None:
        """Return the registrant's own feedback, or None if none was left yet."""
        registration = load_registration(self._store, registration_id)
        if registration.participant_id != actor.user_id:
            raise Unauthorized()
        return self._store.get_feedback(registration.id)

    def list_feedback(self, actor: Actor, event_id: str) -> FeedbackReport:
        event = load_event(self._store, event_id)
        require_event_owner(actor, event)
        entries = self._store.list_feedback(event.id)
        if not entries:
            return FeedbackReport(entries=entries, average_rating=None)
        average = Decimal(sum(entry.rating for entry in entries)) / len(entries)
        return FeedbackReport(
            entries=entries,
            average_rating=average.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
        )
