"""Celery application instance shared across the backend.

Start the beat scheduler and a single-slot worker with:
    celery -A app.celery_app beat -l info
    celery -A app.celery_app worker -Q schedule -l info --concurrency=1
"""

from celery import Celery

from config import settings

BROKER_URL = settings.REDIS_URL

celery_app = Celery("grateful_backend", broker=BROKER_URL, backend=BROKER_URL)

# Global task settings
celery_app.conf.task_acks_late = True
celery_app.conf.task_reject_on_worker_lost = True

celery_app.conf.task_routes = {
    "app.workers.scheduler.run_scheduled": {"queue": "schedule"},
}

# Beat schedule: one scheduled pass per interval. A run that is still queued
# when the next one is due is dropped instead of piling up.
celery_app.conf.beat_schedule = {
    "scheduled-pass": {
        "task": "app.workers.scheduler.run_scheduled",
        "schedule": settings.SCHEDULE_INTERVAL_SECONDS,
        "options": {"expires": settings.SCHEDULE_INTERVAL_SECONDS},
    }
}

# --- Ensure tasks are registered ---
import app.workers.scheduler  # noqa: E402,F401
