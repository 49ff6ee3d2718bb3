"""Ticket identifiers and the signed token carried by a ticket's QR code.

A token embeds the ticket id and event id and is signed with an HMAC derived
from ``SECRET_KEY`` plus a ticket-specific salt, so a forged or corrupted
token is rejected without touching the database. Whether the ticket is still
usable is a separate state lookup.
"""

import base64
import io
import secrets
from dataclasses import dataclass
from datetime import datetime

import qrcode
from django.conf import settings
from django.core import signing
from qrcode import constants

from campus_events.domain import EventId, Registration, Ticket, TicketState
from campus_events.domain.errors import MalformedToken

TICKET_ID_PREFIX = "TKT-"
TICKET_ID_BYTES = 10


@dataclass(frozen=True)
class TokenClaims:
    """Identifiers recovered from a verified token."""

    ticket_id: str
    event_id: EventId


class TicketCodec:
    """Issues tickets and encodes/decodes their scannable tokens."""

    def __init__(self, salt: str | None = None) -> None:
        self._salt = salt or settings.TICKET_SIGNING_SALT

    @staticmethod
    def new_ticket_id() -> str:
        return f"{TICKET_ID_PREFIX}{secrets.token_hex(TICKET_ID_BYTES).upper()}"

    def issue(self, registration: Registration, now: datetime) -> Ticket:
        """Create a fresh valid ticket bound to the registration."""
        ticket_id = self.new_ticket_id()
        return Ticket(
            id=ticket_id,
            registration_id=registration.id,
            event_id=registration.event_id,
            token=self.encode(ticket_id, registration.event_id),
            state=TicketState.VALID,
            issued_at=now,
        )

    def encode(self, ticket_id: str, event_id: EventId) -> str:
        return signing.dumps({"t": ticket_id, "e": str(event_id)}, salt=self._salt)

    def decode(self, token: str) -> TokenClaims:
        """Verify the token signature and return the embedded identifiers.

        Raises:
            MalformedToken: If the token is not a string or its integrity check fails.
        """
        if not isinstance(token, str) or not token:
            raise MalformedToken()
        try:
            payload = signing.loads(token, salt=self._salt)
            return TokenClaims(ticket_id=payload["t"], event_id=EventId.from_string(payload["e"]))
        except (signing.BadSignature, KeyError, TypeError, ValueError) as exc:
            raise MalformedToken() from exc


def render_qr_data_uri(token: str, box_size: int = 8, border: int = 4) -> str:
    """Render a token as a PNG QR code embedded in a data URI."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(token)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()
