"""
Async key/value store backing the registry, the pending-op log and journals.
Uses SQLAlchemy 2.0 + asyncpg driver – no raw SQL strings in app code.

The store deliberately offers nothing but single-key get / put / delete and a
paginated key listing. Callers must not assume multi-key atomicity.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import String, Text, delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.errors import StoreError

# ──────────────────────────────────────────────────────────────────────
# 1. Declarative metadata
# ──────────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    pass

# ──────────────────────────────────────────────────────────────────────
# 2. Lazy engine / session factory
# ──────────────────────────────────────────────────────────────────────
_engine = None
_session_maker: async_sessionmaker[AsyncSession] | None = None

def _build_url() -> str:
    url = os.getenv("DATABASE_URL") or os.getenv("DATABASE_PUBLIC_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set")
    if "+asyncpg" not in url:
        url = url.replace("postgres://", "postgresql+asyncpg://", 1).replace(
            "postgresql://", "postgresql+asyncpg://", 1
        )
    return url

def get_engine():
    global _engine
    if _engine is None:
        _engine = create_async_engine(_build_url(), pool_size=5, max_overflow=5)
    return _engine

def get_session_maker() -> async_sessionmaker[AsyncSession]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_maker


# ──────────────────────────────────────────────────────────────────────
# 3. ORM models
# ──────────────────────────────────────────────────────────────────────

class KvEntry(Base):
    __tablename__ = "kv_entries"

    namespace:  Mapped[str] = mapped_column(String(64), primary_key=True)
    key:        Mapped[str] = mapped_column(String(512), primary_key=True)
    value:      Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )


# ──────────────────────────────────────────────────────────────────────
# 4. DDL helper (run once at startup or from Alembic)
# ──────────────────────────────────────────────────────────────────────
async def create_all(engine=None):
    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ──────────────────────────────────────────────────────────────────────
# 5. Key/value API
# ──────────────────────────────────────────────────────────────────────

@dataclass
class ListResult:
    """One page of a key listing."""

    keys: list[str] = field(default_factory=list)
    list_complete: bool = True
    cursor: str | None = None


class KvStore:
    """A single namespace of the key/value table.

    ``list`` pages in key order; ``cursor`` is the last key of the previous
    page, so deleting keys that were already returned never shifts a page.
    """

    def __init__(
        self,
        namespace: str,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        page_size: int = 1000,
    ):
        self.namespace = namespace
        self.page_size = page_size
        self._session_maker = session_maker

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        return self._session_maker or get_session_maker()

    async def get(self, key: str) -> str | None:
        try:
            async with self._sessions()() as s:
                row = await s.get(KvEntry, (self.namespace, key))
                return row.value if row is not None else None
        except SQLAlchemyError as exc:
            raise StoreError(f"Couldn't read key {key!r}: {exc}") from exc

    async def get_json(self, key: str) -> Any | None:
        raw = await self.get(key)
        return None if raw is None else json.loads(raw)

    async def put(self, key: str, value: str) -> None:
        try:
            async with self._sessions()() as s:
                row = await s.get(KvEntry, (self.namespace, key))
                if row is None:
                    s.add(KvEntry(namespace=self.namespace, key=key, value=value))
                else:
                    row.value = value
                try:
                    await s.commit()
                except IntegrityError:
                    # a concurrent writer created the key first; last write wins
                    await s.rollback()
                    await s.execute(
                        update(KvEntry)
                        .where(KvEntry.namespace == self.namespace, KvEntry.key == key)
                        .values(value=value, updated_at=func.now())
                    )
                    await s.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Couldn't write key {key!r}: {exc}") from exc

    async def put_json(self, key: str, value: Any) -> None:
        await self.put(key, json.dumps(value, separators=(",", ":")))

    async def delete(self, key: str) -> None:
        try:
            async with self._sessions()() as s:
                await s.execute(
                    delete(KvEntry).where(
                        KvEntry.namespace == self.namespace, KvEntry.key == key
                    )
                )
                await s.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Couldn't delete key {key!r}: {exc}") from exc

    async def list(
        self,
        prefix: str | None = None,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> ListResult:
        limit = limit or self.page_size
        stmt = select(KvEntry.key).where(KvEntry.namespace == self.namespace)
        if prefix:
            stmt = stmt.where(KvEntry.key.startswith(prefix, autoescape=True))
        if cursor is not None:
            stmt = stmt.where(KvEntry.key > cursor)
        # one extra row tells us whether another page exists
        stmt = stmt.order_by(KvEntry.key).limit(limit + 1)
        try:
            async with self._sessions()() as s:
                res = await s.execute(stmt)
                keys = list(res.scalars())
        except SQLAlchemyError as exc:
            raise StoreError(f"Couldn't list namespace {self.namespace!r}: {exc}") from exc

        if len(keys) > limit:
            keys = keys[:limit]
            return ListResult(keys=keys, list_complete=False, cursor=keys[-1])
        return ListResult(keys=keys, list_complete=True, cursor=None)


async def dispose_engine():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None
