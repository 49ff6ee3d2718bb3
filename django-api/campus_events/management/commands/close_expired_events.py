"""Close published events whose registration window has passed.

Meant to run periodically (cron or a scheduler container):
    python manage.py close_expired_events
    python manage.py close_expired_events --dry-run
"""

import typing as t

from django.core.management.base import BaseCommand
from django.utils import timezone

from campus_events.domain import EventState
from campus_events.services.container import build_services, default_store


class Command(BaseCommand):
    help = "Move published events with an expired registration window to closed."

    def add_arguments(self, parser: t.Any) -> None:
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the events that would be closed without changing them.",
        )

    def handle(self, *args: t.Any, **kwargs: t.Any) -> None:
        store = default_store()
        now = timezone.now()
        if kwargs["dry_run"]:
            for event in store.list_events(states=(EventState.PUBLISHED,)):
                if event.window is not None and event.window.has_expired(now):
                    self.stdout.write(f"would close {event.id} {event.name}")
            return

        closed = build_services(store).events.close_expired_events(now)
        for event in closed:
            self.stdout.write(f"closed {event.id} {event.name}")
        self.stdout.write(self.style.SUCCESS(f"Closed {len(closed)} event(s)."))
