"""Inventory — view, grant, remove and lock entries; capacity; stats and fusion pairs.

Invariants:
    - Each mutating route is one unit of work around one InventoryLedger call
    - Routes touching existing entries hold the in-process entry locks first,
      same registry and order as fusions, so they never interleave with one
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from kinstone.config import get_settings
from kinstone.infrastructure.database import get_db, unit_of_work
from kinstone.infrastructure.entry_locks import entry_locks
from kinstone.schemas.inventory import (
    AddEntryRequest, CapacityUpdate, EntryResponse, FusionPairResponse,
    InventoryResponse, LockRequest,
)
from kinstone.services.inventory_ledger import InventoryLedger

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/inventory", tags=["inventory"])


@router.get("/{user_id}", response_model=InventoryResponse)
async def get_inventory(
    user_id: UUID,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Inventory header plus entries, newest serial first."""
    ledger = InventoryLedger(db)
    inventory = await ledger.get_inventory(user_id)
    entries = await ledger.list_entries(user_id, limit=limit, offset=offset)
    return InventoryResponse(
        id=inventory.id,
        user_id=inventory.user_id,
        capacity=inventory.capacity,
        current_usage=inventory.current_usage,
        entries=[EntryResponse.model_validate(e) for e in entries],
    )


@router.post("/{user_id}", status_code=status.HTTP_201_CREATED)
async def add_entry(
    user_id: UUID, body: AddEntryRequest, db: AsyncSession = Depends(get_db),
):
    async with unit_of_work(db):
        entry = await InventoryLedger(db).add_entry(
            user_id, body.piece_id, body.provenance,
        )
    return {"entry": EntryResponse.model_validate(entry)}


@router.delete("/{user_id}/entries/{entry_id}")
async def remove_entry(
    user_id: UUID, entry_id: UUID, db: AsyncSession = Depends(get_db),
):
    async with entry_locks.hold([entry_id], get_settings().lock_timeout_ms):
        async with unit_of_work(db):
            removed = await InventoryLedger(db).remove_entries(user_id, [entry_id])
    return {"entry": EntryResponse.model_validate(removed[0])}


@router.put("/{user_id}/capacity")
async def update_capacity(
    user_id: UUID, body: CapacityUpdate, db: AsyncSession = Depends(get_db),
):
    async with unit_of_work(db):
        inventory = await InventoryLedger(db).set_capacity(user_id, body.capacity)
    return {
        "user_id": inventory.user_id,
        "capacity": inventory.capacity,
        "current_usage": inventory.current_usage,
    }


@router.post("/{user_id}/locks")
async def set_lock_status(
    user_id: UUID, body: LockRequest, db: AsyncSession = Depends(get_db),
):
    """Lock or unlock entries; locked entries cannot be fused or removed."""
    async with entry_locks.hold(body.entry_ids, get_settings().lock_timeout_ms):
        async with unit_of_work(db):
            updated = await InventoryLedger(db).set_lock_status(
                user_id, body.entry_ids, body.locked,
            )
    return {"updated": updated, "locked": body.locked}


@router.get("/{user_id}/stats")
async def inventory_stats(user_id: UUID, db: AsyncSession = Depends(get_db)):
    return await InventoryLedger(db).stats(user_id)


@router.get("/{user_id}/fusion-pairs", response_model=list[FusionPairResponse])
async def fusion_pairs(user_id: UUID, db: AsyncSession = Depends(get_db)):
    """Every compatible pair of unlocked entries currently in the inventory."""
    pairs = await InventoryLedger(db).fusion_pairs(user_id)
    return [
        FusionPairResponse(
            shape_family=first.piece.shape_family,
            piece1=EntryResponse.model_validate(first),
            piece2=EntryResponse.model_validate(second),
        )
        for first, second in pairs
    ]
