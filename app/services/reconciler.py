"""Registry reconciliation: drain the pending-op log into the ``users`` blob.

Run from a single scheduled trigger only. Per page of listed keys:

1. classify every key (unknown shapes abort the pass),
2. union the ADDs into the in-memory registry, then remove the DELETEs,
   so a DELETE beats an ADD for the same user within a page,
3. persist the registry,
4. delete the op keys that were just folded in.

Persisting before deleting means an interrupted pass only ever re-applies
ops (harmless, applying is idempotent) and never loses one.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from app.errors import ContractViolation, StoreError
from app.services.pending_ops import PendingOp, parse_op
from app.types.registry import Subscriber

_LOGGER = logging.getLogger(__name__)

REGISTRY_KEY = "users"

Registry = Dict[str, Subscriber]


async def load_registry(store) -> Registry:
    """Read the registry snapshot; a missing key is an empty registry."""
    raw = await store.get(REGISTRY_KEY)
    if raw is None:
        return {}
    try:
        rows = json.loads(raw)
        subscribers = [Subscriber.model_validate(row) for row in rows]
    except (ValueError, TypeError, ValidationError) as exc:
        raise ContractViolation(f"Registry blob is not a list of subscribers: {exc}") from exc
    return {s.uid: s for s in subscribers}


async def save_registry(store, registry: Registry) -> None:
    await store.put_json(
        REGISTRY_KEY, [s.model_dump() for s in registry.values()]
    )


def apply_ops(registry: Registry, ops: Iterable[PendingOp]) -> tuple[int, int]:
    """Fold one page of ops into *registry* in place.

    Returns ``(added, removed)`` counts of ids that actually changed state.
    """
    to_add: Dict[str, Subscriber] = {}
    to_remove: set[str] = set()
    for op in ops:
        if op.kind == "add":
            to_add[op.uid] = op.subscriber  # last one in the page wins
        else:
            to_remove.add(op.uid)

    before = set(registry)
    registry.update(to_add)
    for uid in to_remove:
        registry.pop(uid, None)
    after = set(registry)
    return len(after - before), len(before - after)


@dataclass
class ReconcileReport:
    pages: int = 0
    applied: int = 0
    added: int = 0
    removed: int = 0
    undeleted: List[str] = field(default_factory=list)
    registry: Registry = field(default_factory=dict)

    def summary(self) -> dict:
        return {
            "pages": self.pages,
            "applied": self.applied,
            "added": self.added,
            "removed": self.removed,
            "undeleted": list(self.undeleted),
            "size": len(self.registry),
        }


class RegistryReconciler:
    def __init__(self, store, page_size: Optional[int] = None):
        self.store = store
        self.page_size = page_size

    async def run(self) -> ReconcileReport:
        registry = await load_registry(self.store)
        report = ReconcileReport(registry=registry)

        cursor: Optional[str] = None
        while True:
            page = await self.store.list(cursor=cursor, limit=self.page_size)
            report.pages += 1
            ops = [parse_op(key) for key in page.keys if key != REGISTRY_KEY]

            if ops:
                added, removed = apply_ops(registry, ops)
                # StoreError here aborts the pass with this page's keys intact
                await save_registry(self.store, registry)
                report.applied += len(ops)
                report.added += added
                report.removed += removed
                _LOGGER.info(
                    "Applied page %d: %d ops (+%d / -%d), registry size %d",
                    report.pages, len(ops), added, removed, len(registry),
                )
                await self._delete_applied(ops, report)

            if page.list_complete:
                break
            cursor = page.cursor

        return report

    async def _delete_applied(self, ops: List[PendingOp], report: ReconcileReport) -> None:
        for op in ops:
            try:
                await self.store.delete(op.key)
            except StoreError as exc:
                # re-applied next pass, which changes nothing
                _LOGGER.error("Couldn't remove key %s: %s", op.key, exc)
                report.undeleted.append(op.key)
            else:
                _LOGGER.debug("Removed key: %s", op.key)
