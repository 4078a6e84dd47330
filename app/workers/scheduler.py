"""Celery task wrapping the scheduled pass.

The reconciler must never run concurrently with itself, so every run takes a
Redis lock first and simply skips when another run still holds it.
"""

from __future__ import annotations

import asyncio
import logging

import redis
from redis.exceptions import LockNotOwnedError

from app.celery_app import celery_app
from app.services import schedule
from config import settings

_LOGGER = logging.getLogger(__name__)

LOCK_NAME = "grateful:scheduled-pass"
# Generous upper bound for one pass; the lock expires if a worker dies mid-run.
LOCK_TIMEOUT = 15 * 60


def _redis() -> redis.Redis:
    return redis.Redis.from_url(settings.REDIS_URL)


def _release(lock) -> None:
    try:
        lock.release()
    except LockNotOwnedError:
        _LOGGER.warning(
            "Scheduled pass outlived its %ds lock; it may have overlapped another run",
            LOCK_TIMEOUT,
        )


@celery_app.task(name="app.workers.scheduler.run_scheduled", bind=True)
def run_scheduled(self, skip_prompts: bool = False):  # noqa: D401
    """Run command sync, registry reconciliation and prompt fan-out once."""
    lock = _redis().lock(LOCK_NAME, timeout=LOCK_TIMEOUT, blocking=False)
    if not lock.acquire():
        _LOGGER.warning("Previous scheduled pass still running; skipping this one")
        return {"skipped": True}
    try:
        summary = asyncio.run(schedule.run_from_settings(settings, skip_prompts=skip_prompts))
    finally:
        _release(lock)
    _LOGGER.info("Scheduled pass finished: %s", summary)
    return summary
