"""Event service - all event lifecycle logic lives here.

Services:
- Depend only on interfaces (stores)
- Validate domain invariants
- Perform orchestration and error mapping
- Return domain models or domain errors
"""

import csv
import io
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable

import structlog
from django.utils import timezone

from campus_events.domain import (
    Actor,
    Capacity,
    Event,
    EventId,
    EventState,
    MerchandiseOption,
    Money,
    RegistrationState,
    RegistrationWindow,
    Role,
)
from campus_events.domain.errors import ConcurrentUpdate, InvalidEventData, InvalidStateTransition
from campus_events.services.guards import (
    CAS_ATTEMPTS,
    Clock,
    compare_and_swap,
    load_event,
    require_event_owner,
    require_role,
)
from campus_events.services.registration_service import RegistrationService
from campus_events.stores.interfaces import EventStore

logger = structlog.get_logger(__name__)

CANCEL_REASON_EVENT = "event cancelled"

DRAFT_EDITABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "venue",
        "starts_at",
        "capacity",
        "registration_opens_at",
        "registration_closes_at",
        "price",
        "merchandise",
    }
)
PUBLISHED_EDITABLE_FIELDS = frozenset(
    {"name", "description", "venue", "capacity", "registration_closes_at"}
)

EXPORT_COLUMNS = [
    "registration_id",
    "participant_id",
    "participant_email",
    "state",
    "amount_due",
    "items",
    "ticket_id",
    "created_at",
]


@dataclass(frozen=True)
class EventSummary:
    """Organizer dashboard figures for one event."""

    event: Event
    counts: dict[RegistrationState, int]
    remaining_slots: int | None
    confirmed_revenue: Money


@dataclass(frozen=True)
class SystemStats:
    """Platform-wide totals for administrators."""

    total_events: int
    events_by_state: dict[EventState, int]
    total_registrations: int
    registrations_by_state: dict[RegistrationState, int]
    total_participants: int
    total_organizers: int


class EventService:
    """Service for event lifecycle operations."""

    def __init__(
        self,
        store: EventStore,
        registrations: RegistrationService,
        clock: Clock = timezone.now,
    ) -> None:
        self._store = store
        self._registrations = registrations
        self._clock = clock

    def create_event(
        self,
        actor: Actor,
        name: str,
        starts_at: datetime,
        description: str = "",
        venue: str = "",
        capacity: int | None = None,
        registration_opens_at: datetime | None = None,
        registration_closes_at: datetime | None = None,
        price: Decimal | str | int = 0,
        merchandise: Iterable[dict[str, Any]] = (),
    ) -> Event:
        """Create a draft event owned by the calling organizer.

        Raises:
            Unauthorized: If the actor is not an organizer or admin.
            InvalidEventData: If a field fails validation.
        """
        require_role(actor, Role.ORGANIZER, Role.ADMIN)
        now = self._clock()
        event = Event(
            id=EventId.new(),
            organizer_id=actor.user_id,
            name=_required_name(name),
            description=description,
            venue=venue,
            starts_at=starts_at,
            capacity=_capacity(capacity),
            window=_window(registration_opens_at, registration_closes_at),
            price=_money(price),
            state=EventState.DRAFT,
            created_at=now,
            updated_at=now,
            merchandise=_merchandise(merchandise),
        )
        self._store.add_event(event)
        logger.info("event_created", event_id=str(event.id), organizer_id=actor.user_id)
        return event

    def get_event(self, event_id: str) -> Event:
        """Return an event by ID.

        Raises:
            InvalidEventData: If the event_id is not a valid UUID.
            EventNotFound: If the event does not exist.
        """
        return load_event(self._store, event_id)

    def list_events(
        self,
        states: Iterable[EventState] | None = None,
        organizer_id: int | None = None,
    ) -> list[Event]:
        """Return events, by default only those open for browsing."""
        if states is None:
            states = (EventState.PUBLISHED, EventState.CLOSED, EventState.COMPLETED)
        return self._store.list_events(organizer_id=organizer_id, states=states)

    def update_event(self, actor: Actor, event_id: str, **changes: Any) -> Event:
        """Edit event fields allowed in its current state.

        Drafts may change everything; published events only their
        description fields, capacity and registration close time.

        Raises:
            InvalidStateTransition: If the event is no longer editable.
            InvalidEventData: If a field is not editable or fails validation,
                including a capacity below the current registration count.
        """
        event = load_event(self._store, event_id)
        require_event_owner(actor, event)

        def edit(current: Event) -> Event:
            return self._apply_changes(current, changes)

        updated = compare_and_swap(
            "event",
            event.id,
            load=lambda: load_event(self._store, event.id),
            change=edit,
            save=self._store.update_event,
        )
        logger.info("event_updated", event_id=str(event.id), fields=sorted(changes))
        return updated

    def _apply_changes(self, event: Event, changes: dict[str, Any]) -> Event:
        if event.state is EventState.DRAFT:
            allowed = DRAFT_EDITABLE_FIELDS
        elif event.state is EventState.PUBLISHED:
            allowed = PUBLISHED_EDITABLE_FIELDS
        else:
            raise InvalidStateTransition("event", event.state, EventState.DRAFT)
        unknown = set(changes) - allowed
        if unknown:
            raise InvalidEventData(f"Fields cannot be changed now: {', '.join(sorted(unknown))}")

        fields: dict[str, Any] = {"updated_at": self._clock()}
        if "name" in changes:
            fields["name"] = _required_name(changes["name"])
        for key in ("description", "venue", "starts_at"):
            if key in changes:
                fields[key] = changes[key]
        if "price" in changes:
            fields["price"] = _money(changes["price"])
        if "merchandise" in changes:
            fields["merchandise"] = _merchandise(changes["merchandise"])
        if "capacity" in changes:
            capacity = _capacity(changes["capacity"])
            if capacity is None and event.state is not EventState.DRAFT:
                raise InvalidEventData("Capacity cannot be unset on a published event")
            if (
                capacity is not None
                and not capacity.is_unlimited
                and capacity.value < event.registered_count
            ):
                raise InvalidEventData("Capacity cannot be reduced below the number of registrations")
            fields["capacity"] = capacity
        if "registration_opens_at" in changes or "registration_closes_at" in changes:
            opens_at = changes.get(
                "registration_opens_at", event.window.opens_at if event.window else None
            )
            closes_at = changes.get(
                "registration_closes_at", event.window.closes_at if event.window else None
            )
            fields["window"] = _window(opens_at, closes_at)
            if fields["window"] is None and event.state is not EventState.DRAFT:
                raise InvalidEventData("Registration window cannot be unset on a published event")
        return replace(event, **fields)

    def delete_event(self, actor: Actor, event_id: str) -> None:
        """Delete a draft event. Published events are cancelled instead.

        Raises:
            InvalidStateTransition: If the event has left the draft state.
            ConcurrentUpdate: If the event kept changing during the delete.
        """
        event = load_event(self._store, event_id)
        require_event_owner(actor, event)
        for _ in range(CAS_ATTEMPTS):
            current = load_event(self._store, event.id)
            if current.state is not EventState.DRAFT:
                raise InvalidStateTransition("event", current.state, "deleted")
            if self._store.delete_event(current):
                logger.info("event_deleted", event_id=str(event.id), actor_id=actor.user_id)
                return
        raise ConcurrentUpdate("event", event.id)

    def publish(self, actor: Actor, event_id: str) -> Event:
        return self._transition(actor, event_id, "event_published", lambda e, now: e.publish(now))

    def close(self, actor: Actor, event_id: str) -> Event:
        return self._transition(actor, event_id, "event_closed", lambda e, now: e.close(now))

    def complete(self, actor: Actor, event_id: str) -> Event:
        return self._transition(actor, event_id, "event_completed", lambda e, now: e.complete(now))

    def cancel(self, actor: Actor, event_id: str) -> Event:
        """Cancel the event and every pending or confirmed registration under it.

        Raises:
            InvalidStateTransition: If the event is closed, completed or already cancelled.
        """
        with self._store.atomic():
            cancelled = self._transition(
                actor, event_id, "event_cancelled", lambda e, now: e.cancel(now)
            )
            active = self._store.list_registrations(
                event_id=cancelled.id,
                states=(RegistrationState.PENDING, RegistrationState.CONFIRMED),
            )
            for registration in active:
                self._registrations.force_cancel(registration.id, CANCEL_REASON_EVENT)
        logger.info(
            "event_cancellation_cascaded",
            event_id=str(cancelled.id),
            registrations_cancelled=len(active),
        )
        return load_event(self._store, cancelled.id)

    def _transition(
        self,
        actor: Actor,
        event_id: str | EventId,
        log_event: str,
        move: Callable[[Event, datetime], Event],
    ) -> Event:
        event = load_event(self._store, event_id)
        require_event_owner(actor, event)
        updated = compare_and_swap(
            "event",
            event.id,
            load=lambda: load_event(self._store, event.id),
            change=lambda current: move(current, self._clock()),
            save=self._store.update_event,
        )
        logger.info(log_event, event_id=str(updated.id), state=updated.state.value)
        return updated

    def close_expired_events(self, now: datetime | None = None) -> list[Event]:
        """Close every published event whose registration window has passed by ``now``."""
        now = now or self._clock()
        closed = []
        for event in self._store.list_events(states=(EventState.PUBLISHED,)):
            if event.window is None or not event.window.has_expired(now):
                continue
            try:
                updated = compare_and_swap(
                    "event",
                    event.id,
                    load=lambda event_id=event.id: load_event(self._store, event_id),
                    change=lambda current: current.close(now),
                    save=self._store.update_event,
                )
            except InvalidStateTransition:
                # Moved on by its organizer in the meantime.
                continue
            logger.info("event_closed_on_expiry", event_id=str(updated.id))
            closed.append(updated)
        return closed

    def event_summary(self, actor: Actor, event_id: str) -> EventSummary:
        event = load_event(self._store, event_id)
        require_event_owner(actor, event)
        registrations = self._store.list_registrations(event_id=event.id)
        counts = {state: 0 for state in RegistrationState}
        revenue = Money.zero()
        for registration in registrations:
            counts[registration.state] += 1
            if registration.state in (RegistrationState.CONFIRMED, RegistrationState.CHECKED_IN):
                revenue = revenue + registration.amount_due
        return EventSummary(
            event=event,
            counts=counts,
            remaining_slots=event.remaining_slots,
            confirmed_revenue=revenue,
        )

    def system_stats(self, actor: Actor) -> SystemStats:
        """Totals across every event, for the admin dashboard.

        Participants and organizers are counted from the people who
        registered or own an event, not from user accounts.
        """
        require_role(actor, Role.ADMIN)
        events = self._store.list_events()
        registrations = self._store.list_registrations()
        events_by_state = {state: 0 for state in EventState}
        for event in events:
            events_by_state[event.state] += 1
        registrations_by_state = {state: 0 for state in RegistrationState}
        for registration in registrations:
            registrations_by_state[registration.state] += 1
        return SystemStats(
            total_events=len(events),
            events_by_state=events_by_state,
            total_registrations=len(registrations),
            registrations_by_state=registrations_by_state,
            total_participants=len({r.participant_id for r in registrations}),
            total_organizers=len({event.organizer_id for event in events}),
        )

    def export_registrations_csv(self, actor: Actor, event_id: str) -> str:
        """Render the event's registrations as CSV for the organizer."""
        event = load_event(self._store, event_id)
        require_event_owner(actor, event)
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(EXPORT_COLUMNS)
        for registration in self._store.list_registrations(event_id=event.id):
            writer.writerow(
                [
                    str(registration.id),
                    registration.participant_id,
                    registration.participant_email,
                    registration.state.value,
                    str(registration.amount_due),
                    "; ".join(f"{item.name} x{item.quantity}" for item in registration.items),
                    registration.ticket_id or "",
                    registration.created_at.isoformat(),
                ]
            )
        return buffer.getvalue()


def _required_name(name: str) -> str:
    if not name or not name.strip():
        raise InvalidEventData("Event name is required")
    return name.strip()


def _capacity(value: int | None) -> Capacity | None:
    if value is None:
        return None
    try:
        return Capacity(value=int(value))
    except (TypeError, ValueError) as exc:
        raise InvalidEventData("Capacity must be a non-negative integer") from exc


def _money(value: Decimal | str | int) -> Money:
    try:
        return Money(amount=Decimal(str(value)).quantize(Decimal("0.01")))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidEventData("Price must be a non-negative amount") from exc


def _window(opens_at: datetime | None, closes_at: datetime | None) -> RegistrationWindow | None:
    if opens_at is None and closes_at is None:
        return None
    if opens_at is None or closes_at is None:
        raise InvalidEventData("Registration window needs both an opening and a closing time")
    try:
        return RegistrationWindow(opens_at=opens_at, closes_at=closes_at)
    except ValueError as exc:
        raise InvalidEventData(str(exc)) from exc


def _merchandise(options: Iterable[dict[str, Any]]) -> tuple[MerchandiseOption, ...]:
    parsed = []
    seen = set()
    for option in options:
        try:
            item = MerchandiseOption(
                name=str(option["name"]).strip(),
                price=_money(option.get("price", 0)),
                stock=int(option.get("stock", 0)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidEventData("Invalid merchandise option") from exc
        if item.name in seen:
            raise InvalidEventData(f"Duplicate merchandise option '{item.name}'")
        seen.add(item.name)
        parsed.append(item)
    return tuple(parsed)
