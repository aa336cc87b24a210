"""Inventory Ledger — capacity-bounded add/remove of entries with a balanced usage counter.

Invariants:
    - Ledger methods join the caller's unit of work and NEVER commit
    - Every mutating path ends with _assert_balanced: current_usage must equal a fresh
      COUNT(*) of live entries, else LedgerInvariantError aborts the unit of work
    - add_entry: insert + current_usage increment + serial allocation happen together
      under the inventory row lock; capacity is checked before the piece
    - An unknown or inactive piece in add_entry is bad input (400); an unknown owner
      inventory is ResourceNotFoundError (404)
    - remove_entries: all-or-nothing; any missing, foreign or locked entry -> ConflictError
    - set_capacity: new_capacity >= max(1, current_usage), else InvalidInputError

Design Decisions:
    - Lock order is entries first, then the inventory row, on every path that takes both
    - Reads (list_entries, stats, fusion_pairs) take no locks
"""

import logging
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kinstone.core.domain_types import Provenance
from kinstone.core.errors import (
    CapacityExceededError, ConflictError, ErrorContext, InvalidInputError,
    LedgerInvariantError, ResourceNotFoundError,
)
from kinstone.core.ledger_stats import compute_inventory_stats, find_fusion_pairs
from kinstone.models.inventory import Inventory, InventoryEntry
from kinstone.models.piece import Piece
from kinstone.services.concurrency_control import select_entries_for_update

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Owner inventory operations inside a caller-provided unit of work."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Reads ───────────────────────────────────────────────────

    async def get_inventory(
        self, owner_id: UUID, for_update: bool = False,
    ) -> Inventory:
        query = select(Inventory).where(Inventory.user_id == owner_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        inventory = (await self.db.execute(query)).scalar_one_or_none()
        if inventory is None:
            raise ResourceNotFoundError("Inventory for user", str(owner_id))
        return inventory

    async def list_entries(
        self, owner_id: UUID, limit: int = 100, offset: int = 0,
    ) -> list[InventoryEntry]:
        result = await self.db.execute(
            select(InventoryEntry)
            .where(InventoryEntry.owner_id == owner_id)
            .order_by(InventoryEntry.serial_number.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def stats(self, owner_id: UUID) -> dict:
        inventory = await self.get_inventory(owner_id)
        entries = await self._all_entries(owner_id)
        return compute_inventory_stats(
            inventory.capacity, inventory.current_usage, entries,
        )

    async def fusion_pairs(
        self, owner_id: UUID,
    ) -> list[tuple[InventoryEntry, InventoryEntry]]:
        await self.get_inventory(owner_id)
        return find_fusion_pairs(await self._all_entries(owner_id))

    # ─── Mutations ───────────────────────────────────────────────

    async def add_entry(
        self,
        owner_id: UUID,
        piece_id: UUID,
        provenance: Provenance | str = Provenance.DROP,
    ) -> InventoryEntry:
        """Insert one entry and take one slot."""
        inventory = await self.get_inventory(owner_id, for_update=True)
        if inventory.current_usage >= inventory.capacity:
            raise CapacityExceededError(
                inventory.capacity, ErrorContext(user_id=str(owner_id)),
            )

        piece = (await self.db.execute(
            select(Piece).where(Piece.id == piece_id).where(Piece.is_active.is_(True))
        )).scalar_one_or_none()
        if piece is None:
            raise InvalidInputError(
                f"Piece '{piece_id}' not found or inactive", field="piece_id",
                context=ErrorContext(user_id=str(owner_id)),
            )

        entry = InventoryEntry(
            inventory_id=inventory.id,
            owner_id=owner_id,
            piece_id=piece.id,
            provenance=Provenance(provenance).value,
            serial_number=inventory.next_serial,
        )
        entry.piece = piece
        self.db.add(entry)
        inventory.next_serial += 1
        inventory.current_usage += 1
        await self.db.flush()
        await self._assert_balanced(inventory)

        logger.info(
            f"Added piece {piece.id} as serial #{entry.serial_number}",
            extra={"user_id": str(owner_id), "entry_ids": [str(entry.id)]},
        )
        return entry

    async def remove_entries(
        self, owner_id: UUID, entry_ids: Iterable[UUID],
    ) -> list[InventoryEntry]:
        """Delete the given entries and free their slots, atomically."""
        ids = sorted(set(entry_ids))
        entries = await select_entries_for_update(self.db, owner_id, ids)
        if len(entries) != len(ids):
            raise ConflictError(
                "Inventory entry not found, not owned by user, or is locked",
                ErrorContext(user_id=str(owner_id), entry_ids=[str(i) for i in ids]),
            )

        inventory = await self.get_inventory(owner_id, for_update=True)
        for entry in entries:
            await self.db.delete(entry)
        inventory.current_usage -= len(entries)
        await self.db.flush()
        await self._assert_balanced(inventory)

        logger.info(
            f"Removed {len(entries)} entries",
            extra={"user_id": str(owner_id), "entry_ids": [str(i) for i in ids]},
        )
        return entries

    async def set_capacity(self, owner_id: UUID, new_capacity: int) -> Inventory:
        if new_capacity < 1:
            raise InvalidInputError(
                "Capacity must be at least 1", field="capacity",
            )
        inventory = await self.get_inventory(owner_id, for_update=True)
        if new_capacity < inventory.current_usage:
            raise InvalidInputError(
                f"Cannot reduce capacity below current usage ({inventory.current_usage})",
                field="capacity",
            )
        inventory.capacity = new_capacity
        await self.db.flush()
        await self._assert_balanced(inventory)
        return inventory

    async def set_lock_status(
        self, owner_id: UUID, entry_ids: Iterable[UUID], locked: bool,
    ) -> int:
        """Lock or unlock owned entries (cooldowns, trades, admin holds)."""
        ids = sorted(set(entry_ids))
        if not ids:
            return 0
        result = await self.db.execute(
            select(InventoryEntry)
            .where(InventoryEntry.id.in_(ids))
            .where(InventoryEntry.owner_id == owner_id)
            .order_by(InventoryEntry.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        entries = list(result.scalars().all())
        if len(entries) != len(ids):
            raise ConflictError(
                "Inventory entry not found or not owned by user",
                ErrorContext(user_id=str(owner_id), entry_ids=[str(i) for i in ids]),
            )
        for entry in entries:
            entry.is_locked = locked
        await self.db.flush()
        return len(entries)

    # ─── Internals ───────────────────────────────────────────────

    async def _all_entries(self, owner_id: UUID) -> list[InventoryEntry]:
        result = await self.db.execute(
            select(InventoryEntry).where(InventoryEntry.owner_id == owner_id)
        )
        return list(result.scalars().all())

    async def _assert_balanced(self, inventory: Inventory) -> None:
        live = await self.db.scalar(
            select(func.count())
            .select_from(InventoryEntry)
            .where(InventoryEntry.inventory_id == inventory.id)
        )
        if live != inventory.current_usage or inventory.current_usage > inventory.capacity:
            raise LedgerInvariantError(
                str(inventory.user_id), inventory.current_usage, live,
            )
