"""Concurrency Control — ordered exclusive locks on inventory entries for one unit of work.

Invariants:
    - Locks are taken in ascending entry-id order whatever order the caller passes
    - Validation (exists, owned by user, not is_locked) happens AFTER the locks are
      held, never before: a second request on the same entry sees it already gone
    - Lock scope == unit-of-work scope: in-process locks are released only after the
      commit or rollback finishes, and on every exit path
    - Fewer locked rows than requested ids -> ConflictError, nothing written

Design Decisions:
    - Two layers: EntryLockRegistry serializes requests inside this process;
      SELECT ... FOR UPDATE (ORDER BY id) serializes across processes on PostgreSQL
    - PostgreSQL lock waits bounded with SET LOCAL lock_timeout; SQLite (tests)
      relies on the in-process layer and its own database-level write lock
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Iterable
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from kinstone.config import get_settings
from kinstone.core.errors import ConflictError, ErrorContext
from kinstone.infrastructure.database import unit_of_work
from kinstone.infrastructure.entry_locks import EntryLockRegistry, entry_locks
from kinstone.models.inventory import InventoryEntry

logger = logging.getLogger(__name__)

LOCK_CONFLICT_MESSAGE = "One or both pieces not found, not owned by user, or are locked"


async def select_entries_for_update(
    db: AsyncSession, user_id: UUID, entry_ids: Iterable[UUID],
) -> list[InventoryEntry]:
    """Row-lock the user's unlocked entries among entry_ids, in id order."""
    result = await db.execute(
        select(InventoryEntry)
        .where(InventoryEntry.id.in_(list(entry_ids)))
        .where(InventoryEntry.owner_id == user_id)
        .where(InventoryEntry.is_locked.is_(False))
        .order_by(InventoryEntry.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


class ConcurrencyControl:
    """Acquire deterministic, ordered exclusive access to a set of entries."""

    def __init__(
        self,
        registry: EntryLockRegistry | None = None,
        lock_timeout_ms: int | None = None,
    ):
        self.registry = registry or entry_locks
        self.lock_timeout_ms = (
            lock_timeout_ms if lock_timeout_ms is not None
            else get_settings().lock_timeout_ms
        )

    @asynccontextmanager
    async def lock_entries(
        self, db: AsyncSession, user_id: UUID, entry_ids: Iterable[UUID],
    ) -> AsyncGenerator[dict[UUID, InventoryEntry], None]:
        """Open a unit of work holding exclusive locks on entry_ids.

        Yields the locked entries keyed by id. Commits on clean exit, rolls
        back on any exception, then releases the locks.
        """
        async with self.registry.hold(entry_ids, self.lock_timeout_ms) as ordered:
            async with unit_of_work(db):
                await self._bound_store_lock_wait(db)
                entries = await select_entries_for_update(db, user_id, ordered)
                if len(entries) != len(ordered):
                    raise ConflictError(
                        LOCK_CONFLICT_MESSAGE,
                        ErrorContext(
                            user_id=str(user_id),
                            entry_ids=[str(e) for e in ordered],
                        ),
                    )
                logger.debug(
                    f"Locked {len(entries)} entries",
                    extra={"user_id": str(user_id), "entry_ids": [str(e) for e in ordered]},
                )
                yield {entry.id: entry for entry in entries}

    async def _bound_store_lock_wait(self, db: AsyncSession) -> None:
        if db.bind is not None and db.bind.dialect.name == "postgresql":
            await db.execute(
                text(f"SET LOCAL lock_timeout = '{int(self.lock_timeout_ms)}ms'"),
            )
