"""Inventory Schemas — add-entry, capacity and lock requests; entry and inventory views.

Invariants:
    - AddEntryRequest.provenance defaults to "drop"
    - CapacityUpdate.capacity >= 1 (the lower bound vs current usage is a domain check)
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from kinstone.core.domain_types import Provenance


class AddEntryRequest(BaseModel):
    piece_id: UUID
    provenance: Provenance = Provenance.DROP


class CapacityUpdate(BaseModel):
    capacity: int = Field(ge=1)


class LockRequest(BaseModel):
    entry_ids: list[UUID] = Field(min_length=1, max_length=100)
    locked: bool


class PieceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    shape_family: str
    half: str
    rarity: str
    tags: list[str] = []
    is_active: bool


class EntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    piece_id: UUID
    provenance: str
    is_locked: bool
    serial_number: int
    created_at: datetime
    piece: PieceResponse


class InventoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    capacity: int
    current_usage: int
    entries: list[EntryResponse] = []


class FusionPairResponse(BaseModel):
    shape_family: str
    piece1: EntryResponse
    piece2: EntryResponse
