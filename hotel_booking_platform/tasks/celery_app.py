"""
Celery application configuration for background tasks.
"""

from celery import Celery
from celery.schedules import crontab

from ..config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "hotel_booking_platform",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "hotel_booking_platform.tasks.maintenance_tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

# Sweeps run at the checkout hour, hotel time; the schedule itself is in UTC
_checkout_hour_utc = (settings.checkout_hour - settings.hotel_utc_offset_hours) % 24

celery_app.conf.beat_schedule = {
    "auto-checkout": {
        "task": "auto_checkout_task",
        "schedule": crontab(hour=_checkout_hour_utc, minute=0),
    },
    "cancel-expired-bookings": {
        "task": "cancel_expired_bookings_task",
        "schedule": crontab(hour=_checkout_hour_utc, minute=5),
    },
}
