"""Per-user gratitude journals: one JSON array of strings per user id.

``append`` is a plain read-modify-write. Two simultaneous appends by the same
user can drop one entry; that is tolerated here, unlike for the registry.
"""

from __future__ import annotations

import json
import logging
import random
from typing import List, Optional

from app.errors import ContractViolation

_LOGGER = logging.getLogger(__name__)


class JournalStore:
    def __init__(self, store, rng: Optional[random.Random] = None):
        self.store = store
        self._rng = rng or random.Random()

    async def entries(self, uid: str) -> List[str]:
        raw = await self.store.get(uid)
        if raw is None:
            return []
        try:
            entries = json.loads(raw)
        except ValueError as exc:
            raise ContractViolation(f"Journal for {uid} is not JSON: {exc}") from exc
        if not isinstance(entries, list) or not all(isinstance(e, str) for e in entries):
            raise ContractViolation(f"Journal for {uid} is not a list of strings")
        return entries

    async def append(self, uid: str, entry: str) -> None:
        entries = await self.entries(uid)
        entries.append(entry)
        await self.store.put_json(uid, entries)
        _LOGGER.info("Stored entry %d for %s", len(entries), uid)

    async def sample(self, uid: str) -> Optional[str]:
        entries = await self.entries(uid)
        if not entries:
            return None
        return self._rng.choice(entries)
