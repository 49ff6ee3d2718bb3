"""Unit tests for post-event feedback."""

from decimal import Decimal

import pytest

from campus_events.domain.errors import (
    FeedbackAlreadySubmitted,
    InvalidEventData,
    InvalidStateTransition,
    Unauthorized,
)


@pytest.fixture
def attended(registrations, events, make_event, participant, organizer):
    event = make_event()
    registration = registrations.register(participant, str(event.id))
    events.close(organizer, str(event.id))
    events.complete(organizer, str(event.id))
    return registration


class TestSubmitFeedback:
    """Tests for FeedbackService.submit"""

    def test_submit_after_completion(self, feedback, attended, participant):
        entry = feedback.submit(participant, str(attended.id), 4, "  Great mentors  ")
        assert entry.rating == 4
        assert entry.comment == "Great mentors"

    def test_one_per_registration(self, feedback, attended, participant):
        feedback.submit(participant, str(attended.id), 5)
        with pytest.raises(FeedbackAlreadySubmitted):
            feedback.submit(participant, str(attended.id), 3)

    def test_rating_out_of_range(self, feedback, attended, participant):
        with pytest.raises(InvalidEventData):
            feedback.submit(participant, str(attended.id), 0)

    def test_not_before_completion(self, feedback, registrations, make_event, participant):
        registration = registrations.register(participant, str(make_event().id))
        with pytest.raises(InvalidStateTransition):
            feedback.submit(participant, str(registration.id), 5)

    def test_only_the_registrant(self, feedback, attended, participant_factory):
        with pytest.raises(Unauthorized):
            feedback.submit(participant_factory(555), str(attended.id), 5)

    def test_cancelled_registration_cannot_leave_feedback(
        self, feedback, registrations, events, make_event, participant, organizer
    ):
        event = make_event()
        registration = registrations.register(participant, str(event.id))
        registrations.cancel(participant, str(registration.id))
        events.close(organizer, str(event.id))
        events.complete(organizer, str(event.id))
        with pytest.raises(InvalidStateTransition):
            feedback.submit(participant, str(registration.id), 2)


class TestListFeedback:
    """Tests for FeedbackService.list_feedback"""

    def test_average_rating(
        self, feedback, registrations, events, make_event, organizer, participant_factory
    ):
        event = make_event()
        ratings = {1: 5, 2: 4, 3: 4}
        registered = {
            user_id: registrations.register(participant_factory(user_id), str(event.id))
            for user_id in ratings
        }
        events.close(organizer, str(event.id))
        events.complete(organizer, str(event.id))
        for user_id, rating in ratings.items():
            feedback.submit(participant_factory(user_id), str(registered[user_id].id), rating)

        report = feedback.list_feedback(organizer, str(event.id))

        assert len(report.entries) == 3
        assert report.average_rating == Decimal("4.33")

    def test_empty_report(self, feedback, make_event, organizer):
        report = feedback.list_feedback(organizer, str(make_event().id))
        assert report.entries == []
        assert report.average_rating is None

    def test_owner_only(self, feedback, make_event, other_organizer):
        with pytest.raises(Unauthorized):
            feedback.list_feedback(other_organizer, str(make_event().id))


class TestFeedbackStatus:
    """Tests for FeedbackService.feedback_status"""

    def test_none_until_submitted(self, feedback, attended, participant):
        assert feedback.feedback_status(participant, str(attended.id)) is None
        feedback.submit(participant, str(attended.id), 3, "Too long")
        assert feedback.feedback_status(participant, str(attended.id)).rating == 3

    def test_only_the_registrant(self, feedback, attended, participant_factory):
        with pytest.raises(Unauthorized):
            feedback.feedback_status(participant_factory(555), str(attended.id))
