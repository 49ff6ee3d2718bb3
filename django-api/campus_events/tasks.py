"""Celery tasks for campus events."""

from celery import shared_task

from campus_events.services.notifications import (
    ConfirmationNotice,
    EmailNotifier,
    deliver_confirmation,
)


@shared_task
def send_confirmation_email(payload: dict[str, str]) -> bool:
    """Render and send a registration confirmation email.

    Failures are logged and reported as False rather than retried; the
    participant can always fetch the ticket from the API.
    """
    return deliver_confirmation(EmailNotifier(), ConfirmationNotice.from_payload(payload))
