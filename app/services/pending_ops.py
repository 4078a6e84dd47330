"""Pending enroll / unenroll intents, one store key per intent.

The key name *is* the operation: ``ADD <subscriber json>`` or ``DELETE <uid>``.
Writers never touch the registry blob, so concurrent requests cannot lose each
other's updates; the reconciler folds these keys into the registry later.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional

from pydantic import ValidationError

from app.errors import ContractViolation
from app.types.registry import Subscriber

_LOGGER = logging.getLogger(__name__)

ADD_PREFIX = "ADD "
DELETE_PREFIX = "DELETE "

# Values are never read back; only the key's presence matters.
ADD_SENTINEL = "FOOP"
DELETE_SENTINEL = "POOF"


@dataclass(frozen=True)
class PendingOp:
    key: str
    kind: Literal["add", "delete"]
    uid: str
    subscriber: Optional[Subscriber] = None


def add_key(subscriber: Subscriber) -> str:
    return ADD_PREFIX + subscriber.serialize()


def delete_key(uid: str) -> str:
    return DELETE_PREFIX + uid


def parse_op(key: str) -> PendingOp:
    """Decode a pending-op key.

    Anything that is not one of our two shapes means some other writer is using
    the namespace, which we refuse to guess about.
    """
    if key.startswith(ADD_PREFIX):
        try:
            subscriber = Subscriber.deserialize(key[len(ADD_PREFIX):])
        except ValidationError as exc:
            raise ContractViolation(f"Malformed ADD key {key!r}: {exc}") from exc
        return PendingOp(key=key, kind="add", uid=subscriber.uid, subscriber=subscriber)
    if key.startswith(DELETE_PREFIX):
        uid = key[len(DELETE_PREFIX):]
        if not uid:
            raise ContractViolation(f"DELETE key without a user id: {key!r}")
        return PendingOp(key=key, kind="delete", uid=uid)
    raise ContractViolation(f"Unrecognised pending-op key {key!r}")


class PendingOpLog:
    def __init__(self, store):
        self.store = store

    async def record_add(self, subscriber: Subscriber) -> None:
        await self.store.put(add_key(subscriber), ADD_SENTINEL)
        _LOGGER.info("Recorded pending ADD for %s", subscriber.uid)

    async def record_delete(self, uid: str) -> None:
        await self.store.put(delete_key(uid), DELETE_SENTINEL)
        _LOGGER.info("Recorded pending DELETE for %s", uid)

    # Advisory lookups: good enough for replying to the user, never for
    # deciding what goes into the registry.
    async def has_add(self, subscriber: Subscriber) -> bool:
        return await self.store.get(add_key(subscriber)) is not None

    async def has_delete(self, uid: str) -> bool:
        return await self.store.get(delete_key(uid)) is not None
