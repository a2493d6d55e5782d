"""
Celery configuration for the billing service.

Celery runs the webhook dead-letter replay:
- replay_webhook_event: re-dispatch one stored delivery
- replay_failed_webhook_events: periodic sweep (celery-beat)
- reset_stuck_webhook_events: periodic reset of crashed replays (celery-beat)

Redis is both the message broker and result backend. Tasks are
auto-discovered from installed apps; beat schedules live in the database
(django-celery-beat) and are created by billing migrations.

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("billing_service")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
