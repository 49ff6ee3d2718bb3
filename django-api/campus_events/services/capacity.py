"""Capacity ledger: slot reservation on top of the store's atomic primitives."""

from datetime import datetime

import structlog
from django.conf import settings

from campus_events.domain import Registration
from campus_events.domain.errors import CapacityExceeded, ConcurrentUpdate
from campus_events.stores.interfaces import EventStore

logger = structlog.get_logger(__name__)


class CapacityLedger:
    """Reserves and releases event slots.

    The counter itself lives in the store; the ledger only adds bounded
    retries for reservations that lost a race.
    """

    def __init__(self, store: EventStore, max_attempts: int | None = None) -> None:
        self._store = store
        self._max_attempts = max_attempts or settings.CAPACITY_RESERVATION_RETRIES

    def reserve_slot(self, registration: Registration, now: datetime) -> None:
        """Take a slot and persist the registration in the same atomic unit.

        Raises:
            CapacityExceeded: If the event is full, or every attempt lost a race.
            WindowClosed, DuplicateRegistration, MerchandiseUnavailable,
            EventNotFound: Propagated from the store unchanged.
        """
        for attempt in range(1, self._max_attempts + 1):
            try:
                self._store.create_registration(registration, now)
            except ConcurrentUpdate:
                logger.warning(
                    "slot_reservation_conflict",
                    event_id=str(registration.event_id),
                    attempt=attempt,
                )
                continue
            logger.info(
                "slot_reserved",
                event_id=str(registration.event_id),
                registration_id=str(registration.id),
            )
            return
        raise CapacityExceeded(registration.event_id)

    def release_slot(self, registration: Registration) -> None:
        """Give back the registration's slot and merchandise stock."""
        self._store.release_slot(registration.event_id, registration.items)
        logger.info(
            "slot_released",
            event_id=str(registration.event_id),
            registration_id=str(registration.id),
        )
