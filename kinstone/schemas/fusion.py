"""Fusion Schemas — fusion request, result envelope and history rows.

Invariants:
    - FusionRequest requires three UUIDs; equality of the entry ids is a domain
      error (InvalidInputError), not a schema error, so it carries the domain code
    - FusionResultResponse.consumed_pieces is empty for a failed attempt
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from kinstone.schemas.reward import RewardResponse


class FusionRequest(BaseModel):
    user_id: UUID
    entry_id_1: UUID
    entry_id_2: UUID


class PieceSnapshotResponse(BaseModel):
    """Input piece as it was before consumption."""
    model_config = ConfigDict(from_attributes=True)

    entry_id: UUID
    piece_id: UUID
    name: str
    shape_family: str
    half: str
    rarity: str


class FusionRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    input_entry_1_id: UUID
    input_entry_2_id: UUID
    input_piece_1_id: UUID
    input_piece_2_id: UUID
    shape_family: str
    is_success: bool
    score_value: int
    created_at: datetime


class FusionDetail(FusionRecordResponse):
    input_piece_1: PieceSnapshotResponse
    input_piece_2: PieceSnapshotResponse


class FusionResultResponse(BaseModel):
    fusion: FusionDetail
    reward: RewardResponse | None = None
    consumed_pieces: list[UUID]


class FusionHistoryResponse(BaseModel):
    fusions: list[FusionRecordResponse]
    pagination: dict
