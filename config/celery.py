"""Celery application for SlotHub background work.

Workers run the notification fan-out for booking events; beat runs the
pending-booking expiry sweep. Beat entries are also persisted through
django-celery-beat so operators can retune them from the admin.
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("slothub")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


@app.on_after_finalize.connect
def schedule_booking_sweep(sender, **kwargs):
    from django.conf import settings

    interval = float(settings.BOOKINGS.get("SWEEP_INTERVAL_SECONDS", 60))
    sender.conf.beat_schedule = {
        "expire-pending-bookings": {
            "task": "bookings.expire_pending_bookings",
            "schedule": interval,
            # a run that waited longer than one interval is superseded by the next
            "options": {"expires": max(interval - 10, 1)},
        },
    }
