"""
Add celery-beat schedules for the webhook dead-letter log.

Creates periodic tasks that:
- Replay failed webhook events every 5 minutes
- Reset replays stuck in PROCESSING every 15 minutes

The replay sweep is a no-op while BILLING_WEBHOOK_DEAD_LETTER_ENABLED is
off, since no WebhookEvent rows are written.
"""

from django.db import migrations

SCHEDULES = [
    {
        "name": "Replay Failed Billing Webhooks",
        "task": "billing.tasks.replay_failed_webhook_events",
        "every": 5,
        "description": "Re-dispatches dead-lettered Razorpay webhook events.",
    },
    {
        "name": "Reset Stuck Billing Webhook Replays",
        "task": "billing.tasks.reset_stuck_webhook_events",
        "every": 15,
        "description": "Sets replays stuck in PROCESSING back to FAILED.",
    },
]


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for webhook replay."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in SCHEDULES:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period="minutes",
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name__in=[entry["name"] for entry in SCHEDULES],
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("billing", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
