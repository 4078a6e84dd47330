"""The periodic pass: sync commands, reconcile the registry, prompt.

Shared by the Celery beat task and the cron script.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, Optional

import db
from app.errors import UpstreamFailure
from app.services.command_sync import CommandSetSyncer
from app.services.journal import JournalStore
from app.services.prompts import prompt_subscribers
from app.services.reconciler import RegistryReconciler
from app.utils.discord import DiscordClient

_LOGGER = logging.getLogger(__name__)


async def run_scheduled_pass(
    client,
    users_store,
    entries_store,
    *,
    prompt_odds: int = 60,
    page_size: Optional[int] = None,
    skip_prompts: bool = False,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    summary: Dict[str, Any] = {"commands": None, "registry": None, "prompted": []}

    try:
        sync = await CommandSetSyncer(client).run()
        summary["commands"] = sync.summary()
    except UpstreamFailure as exc:
        # reconciliation does not depend on the command set
        _LOGGER.error("Command sync failed: %s", exc)

    # Any failure here aborts the run: prompting from a stale registry is worse
    # than skipping one round.
    report = await RegistryReconciler(users_store, page_size=page_size).run()
    summary["registry"] = report.summary()

    if skip_prompts:
        _LOGGER.info("Skipping prompts for this run")
        return summary

    summary["prompted"] = await prompt_subscribers(
        report.registry.values(),
        JournalStore(entries_store, rng=rng),
        client,
        odds=prompt_odds,
        rng=rng,
    )
    return summary


async def run_from_settings(settings, skip_prompts: bool = False) -> Dict[str, Any]:
    """Build collaborators from *settings*, run one pass, release the engine."""
    client = DiscordClient.from_settings(settings)
    users = db.KvStore(settings.USERS_NAMESPACE, page_size=settings.KV_LIST_PAGE_SIZE)
    entries = db.KvStore(settings.ENTRIES_NAMESPACE, page_size=settings.KV_LIST_PAGE_SIZE)
    try:
        return await run_scheduled_pass(
            client,
            users,
            entries,
            prompt_odds=settings.PROMPT_ODDS,
            skip_prompts=skip_prompts,
        )
    finally:
        client.close()
        # the engine's pool is bound to this event loop
        await db.dispose_engine()
