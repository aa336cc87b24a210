"""Fusions — attempt a fusion, read history, per-user statistics.

Invariants:
    - POST /fusions is one atomic attempt (FusionEngine); the route adds no writes
    - Every read is scoped by user_id: a foreign fusion id is 404, not 403
    - Failed attempts are 201 too: the record is created, consumed_pieces is empty
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from kinstone.infrastructure.database import get_db
from kinstone.models.fusion import FusionRecord
from kinstone.models.piece import Piece
from kinstone.schemas.fusion import (
    FusionDetail, FusionHistoryResponse, FusionRecordResponse, FusionRequest,
    FusionResultResponse, PieceSnapshotResponse,
)
from kinstone.schemas.reward import RewardResponse
from kinstone.services.fusion_engine import FusionEngine, PieceSnapshot

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/fusions", tags=["fusions"])


def _detail(
    record: FusionRecord, piece_1: PieceSnapshot, piece_2: PieceSnapshot,
) -> FusionDetail:
    return FusionDetail(
        **FusionRecordResponse.model_validate(record).model_dump(),
        input_piece_1=PieceSnapshotResponse.model_validate(piece_1),
        input_piece_2=PieceSnapshotResponse.model_validate(piece_2),
    )


def _catalog_snapshot(entry_id: UUID, piece: Piece) -> PieceSnapshot:
    return PieceSnapshot(
        entry_id=entry_id,
        piece_id=piece.id,
        name=piece.name,
        shape_family=piece.shape_family,
        half=piece.half,
        rarity=piece.rarity,
    )


@router.post(
    "", response_model=FusionResultResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_fusion(
    body: FusionRequest, db: AsyncSession = Depends(get_db),
):
    """Attempt to fuse two inventory entries owned by body.user_id."""
    attempt = await FusionEngine(db).attempt_fusion(
        body.user_id, body.entry_id_1, body.entry_id_2,
    )
    return FusionResultResponse(
        fusion=_detail(attempt.record, attempt.input_piece_1, attempt.input_piece_2),
        reward=(
            RewardResponse.model_validate(attempt.reward)
            if attempt.reward is not None else None
        ),
        consumed_pieces=attempt.consumed_entry_ids,
    )


@router.get("", response_model=FusionHistoryResponse)
async def list_fusions(
    user_id: UUID,
    success_only: bool = False,
    shape_family: str | None = Query(None, max_length=50),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Fusion history for a user, newest first."""
    records = await FusionEngine(db).history(
        user_id, success_only=success_only, shape_family=shape_family,
        limit=limit, offset=offset,
    )
    return FusionHistoryResponse(
        fusions=[FusionRecordResponse.model_validate(r) for r in records],
        pagination={"limit": limit, "offset": offset, "count": len(records)},
    )


@router.get("/stats/{user_id}")
async def fusion_stats(user_id: UUID, db: AsyncSession = Depends(get_db)):
    return await FusionEngine(db).stats(user_id)


@router.get("/{fusion_id}", response_model=FusionResultResponse)
async def get_fusion(
    fusion_id: UUID, user_id: UUID, db: AsyncSession = Depends(get_db),
):
    """One fusion record with its input pieces and reward, if any."""
    record = await FusionEngine(db).get(fusion_id, user_id)
    consumed = (
        [record.input_entry_1_id, record.input_entry_2_id] if record.is_success else []
    )
    return FusionResultResponse(
        fusion=_detail(
            record,
            _catalog_snapshot(record.input_entry_1_id, record.input_piece_1),
            _catalog_snapshot(record.input_entry_2_id, record.input_piece_2),
        ),
        reward=(
            RewardResponse.model_validate(record.reward)
            if record.reward is not None else None
        ),
        consumed_pieces=consumed,
    )
