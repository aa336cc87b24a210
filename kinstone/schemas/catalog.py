"""Catalog Schemas — user and piece creation.

Invariants:
    - UserCreate.handle: 3-50 chars, letters/digits/underscore/dash
    - PieceCreate.shape_family and name are stripped and non-empty
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kinstone.core.domain_types import PieceHalf, Rarity


class UserCreate(BaseModel):
    handle: str | None = Field(None, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_-]+$")
    display_name: str | None = Field(None, max_length=100)
    inventory_capacity: int | None = Field(None, ge=1, le=10_000)


class InventorySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    capacity: int
    current_usage: int


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    handle: str | None = None
    display_name: str | None = None
    is_active: bool
    created_at: datetime
    inventory: InventorySummary | None = None


class PieceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    shape_family: str = Field(min_length=1, max_length=50)
    half: PieceHalf
    rarity: Rarity = Rarity.COMMON
    description: str | None = Field(None, max_length=2000)
    tags: list[str] = Field(default_factory=list)

    @field_validator("name", "shape_family")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty or whitespace")
        return v
