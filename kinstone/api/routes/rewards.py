"""Rewards — list, stats, claim one, claim all, mark consumed.

Invariants:
    - Claim/consume go through RewardIssuer, which owns their unit of work
    - A reward in the wrong state answers 400 CONFLICT, never 404
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from kinstone.core.domain_types import RewardStatus, RewardType
from kinstone.infrastructure.database import get_db
from kinstone.schemas.reward import ClaimRequest, RewardListResponse, RewardResponse
from kinstone.services.reward_issuer import RewardIssuer

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/rewards", tags=["rewards"])


@router.get("", response_model=RewardListResponse)
async def list_rewards(
    user_id: UUID,
    status_filter: RewardStatus | None = Query(None, alias="status"),
    reward_type: RewardType | None = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    rewards = await RewardIssuer(db).list_for_user(
        user_id, status=status_filter, reward_type=reward_type,
        limit=limit, offset=offset,
    )
    return RewardListResponse(
        rewards=[RewardResponse.model_validate(r) for r in rewards],
    )


@router.get("/stats")
async def reward_stats(user_id: UUID, db: AsyncSession = Depends(get_db)):
    return await RewardIssuer(db).stats(user_id)


@router.post("/claim-all", response_model=RewardListResponse)
async def claim_all(body: ClaimRequest, db: AsyncSession = Depends(get_db)):
    """Claim every pending reward of the user in one batch."""
    rewards = await RewardIssuer(db).claim_all_pending(body.user_id)
    return RewardListResponse(
        rewards=[RewardResponse.model_validate(r) for r in rewards],
    )


@router.post("/{reward_id}/claim")
async def claim_reward(
    reward_id: UUID, body: ClaimRequest, db: AsyncSession = Depends(get_db),
):
    reward = await RewardIssuer(db).claim(reward_id, body.user_id)
    return {"reward": RewardResponse.model_validate(reward)}


@router.post("/{reward_id}/consume")
async def consume_reward(reward_id: UUID, db: AsyncSession = Depends(get_db)):
    reward = await RewardIssuer(db).mark_consumed(reward_id)
    return {"reward_id": reward.id, "status": reward.status}
