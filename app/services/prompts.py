"""Randomly resurface journal entries to subscribers."""

from __future__ import annotations

import logging
import random
from typing import Iterable, List, Optional

from app.errors import GratefulError
from app.services import messages
from app.services.journal import JournalStore
from app.types.registry import Subscriber

_LOGGER = logging.getLogger(__name__)


async def prompt_subscribers(
    subscribers: Iterable[Subscriber],
    journal: JournalStore,
    client,
    odds: int = 60,
    rng: Optional[random.Random] = None,
) -> List[str]:
    """Prompt each subscriber with probability ``1/odds``; return who was prompted."""
    rng = rng or random.Random()
    prompted: List[str] = []
    for subscriber in subscribers:
        if rng.randint(1, odds) != 1:
            continue
        try:
            entry = await journal.sample(subscriber.uid)
            await client.send_message(subscriber.channel_id, messages.prompt(entry))
        except GratefulError as exc:
            _LOGGER.error("Error sending message to user %s: %s", subscriber.uid, exc)
            continue
        _LOGGER.info("Prompted %s", subscriber.uid)
        prompted.append(subscriber.uid)
    return prompted
