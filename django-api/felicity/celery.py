"""Celery setup for Felicity."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "felicity.settings")

app = Celery("felicity")

# Celery settings live in Django settings under the CELERY_ prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
