"""Run one scheduled pass outside Celery.

Run via a platform cron every minute:
    python -m app.scripts.run_scheduled
    python -m app.scripts.run_scheduled --skip-prompts   # sync + reconcile only
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from app.services import schedule
from config import settings

_LOGGER = logging.getLogger("app.scripts.run_scheduled")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--skip-prompts",
        action="store_true",
        help="sync commands and reconcile the registry without prompting anyone",
    )
    args = parser.parse_args(argv)

    _LOGGER.info("[CRON] run_scheduled: job started")
    try:
        summary = asyncio.run(schedule.run_from_settings(settings, skip_prompts=args.skip_prompts))
    except Exception:  # noqa: BLE001
        _LOGGER.exception("[CRON] run_scheduled: job failed")
        return 1
    _LOGGER.info("[CRON] run_scheduled: job completed successfully")
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":  # pragma: no cover
    logging.basicConfig(level=settings.LOG_LEVEL)
    sys.exit(main())
