"""Confirmation notices sent to participants once a ticket is issued.

Delivery is asynchronous and best effort. The service hands the notice to a
Celery worker after commit; a failed enqueue or send is logged and never
undoes the confirmation that triggered it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

import structlog
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.utils.html import format_html

from campus_events.services.ticket_codec import render_qr_data_uri

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ConfirmationNotice:
    recipient: str
    event_name: str
    ticket_id: str
    qr_token: str
    event_date: datetime

    def as_payload(self) -> dict[str, str]:
        """JSON-safe form for the task queue."""
        return {
            "recipient": self.recipient,
            "event_name": self.event_name,
            "ticket_id": self.ticket_id,
            "qr_token": self.qr_token,
            "event_date": self.event_date.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, str]) -> "ConfirmationNotice":
        return cls(
            recipient=payload["recipient"],
            event_name=payload["event_name"],
            ticket_id=payload["ticket_id"],
            qr_token=payload["qr_token"],
            event_date=datetime.fromisoformat(payload["event_date"]),
        )


class Notifier(ABC):
    """Interface for the notification collaborator."""

    @abstractmethod
    def send_confirmation(self, notice: ConfirmationNotice) -> None:
        """Deliver a registration confirmation. May raise on failure."""
        ...


class EmailNotifier(Notifier):
    """Sends confirmations through Django's configured email backend.

    Runs on the worker; rendering the QR code and talking to SMTP both
    happen here.
    """

    def send_confirmation(self, notice: ConfirmationNotice) -> None:
        body = (
            f"Your registration for {notice.event_name} has been confirmed.\n\n"
            f"Date: {notice.event_date:%A, %d %B %Y}\n"
            f"Ticket ID: {notice.ticket_id}\n\n"
            "Show the QR code in this email at the event venue."
        )
        html = format_html(
            "<p>Your registration for <strong>{}</strong> has been confirmed.</p>"
            "<p>Date: {}</p>"
            "<p>Ticket ID: <code>{}</code></p>"
            '<p><img src="{}" alt="Ticket QR code"/></p>',
            notice.event_name,
            f"{notice.event_date:%A, %d %B %Y}",
            notice.ticket_id,
            render_qr_data_uri(notice.qr_token),
        )
        message = EmailMultiAlternatives(
            subject=f"Registration Confirmed: {notice.event_name}",
            body=body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[notice.recipient],
        )
        message.attach_alternative(html, "text/html")
        message.send(fail_silently=False)


class QueuedEmailNotifier(Notifier):
    """Hands confirmations to the Celery worker instead of sending inline."""

    def send_confirmation(self, notice: ConfirmationNotice) -> None:
        from campus_events.tasks import send_confirmation_email

        send_confirmation_email.delay(notice.as_payload())


def deliver_confirmation(notifier: Notifier, notice: ConfirmationNotice) -> bool:
    """Send a notice, logging instead of raising on failure."""
    if not notice.recipient:
        logger.info("confirmation_skipped_no_recipient", ticket_id=notice.ticket_id)
        return False
    try:
        notifier.send_confirmation(notice)
    except Exception:
        logger.exception(
            "confirmation_delivery_failed",
            ticket_id=notice.ticket_id,
            notifier=type(notifier).__name__,
        )
        return False
    logger.info(
        "confirmation_handed_off",
        ticket_id=notice.ticket_id,
        notifier=type(notifier).__name__,
    )
    return True
