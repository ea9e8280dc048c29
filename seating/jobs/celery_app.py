"""Celery application configuration"""

from celery import Celery
from seating.config import settings

# Create Celery app
celery_app = Celery(
    "venue_seating",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "seating.jobs.tasks",
    ],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # A sweep must finish before the next one is due
    task_time_limit=int(settings.sweep_interval_seconds),
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Beat schedule for periodic tasks
    beat_schedule={
        "sweep-unallocated-bookings": {
            "task": "sweep_unallocated_bookings",
            "schedule": settings.sweep_interval_seconds,
            # Drop a queued sweep once the next one has been scheduled
            "options": {"expires": settings.sweep_interval_seconds},
        },
        "release-expired-holds": {
            "task": "release_expired_holds",
            "schedule": settings.hold_cleanup_interval_seconds,
            "options": {"expires": settings.hold_cleanup_interval_seconds},
        },
    },
)
