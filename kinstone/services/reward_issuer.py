"""Reward Issuer — pending -> claimed -> consumed lifecycle of fusion rewards.

Invariants:
    - issue() joins the fusion's unit of work (never commits); the reward is born pending
    - claim / claim_all_pending / mark_consumed each run in their own unit of work
      with the affected rows locked (SELECT ... FOR UPDATE)
    - Transitions are one-directional: only pending -> claimed and claimed -> consumed
    - claim_all_pending is one batch: all pending rewards of the user or none
    - An invalid transition raises ConflictError and writes nothing

Design Decisions:
    - Status guard repeated in the WHERE clause of the locking select: a row in the
      wrong state is indistinguishable from a missing row, matching the claim contract
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kinstone.core.domain_types import RewardStatus, RewardType
from kinstone.core.errors import ConflictError, ErrorContext, ResourceNotFoundError
from kinstone.core.ledger_stats import compute_reward_stats
from kinstone.core.reward_payloads import RewardPayload, to_json
from kinstone.infrastructure.database import unit_of_work
from kinstone.models.fusion import FusionRecord
from kinstone.models.reward import Reward

logger = logging.getLogger(__name__)


class RewardIssuer:
    """Creates rewards for fusions and drives their state machine."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def issue(self, fusion: FusionRecord, payload: RewardPayload) -> Reward:
        """Create a pending reward referencing the fusion record."""
        reward = Reward(
            fusion_id=fusion.id,
            user_id=fusion.user_id,
            reward_type=payload.reward_type.value,
            reward_value=to_json(payload),
            status=RewardStatus.PENDING.value,
        )
        self.db.add(reward)
        await self.db.flush()
        logger.info(
            f"Issued {payload.reward_type.value} reward",
            extra={
                "user_id": str(fusion.user_id),
                "fusion_id": str(fusion.id),
                "reward_id": str(reward.id),
            },
        )
        return reward

    async def claim(self, reward_id: UUID, user_id: UUID) -> Reward:
        """pending -> claimed for one reward owned by user_id."""
        async with unit_of_work(self.db):
            reward = (await self.db.execute(
                select(Reward)
                .where(Reward.id == reward_id)
                .where(Reward.user_id == user_id)
                .where(Reward.status == RewardStatus.PENDING.value)
                .with_for_update()
                .execution_options(populate_existing=True)
            )).scalar_one_or_none()
            if reward is None:
                raise ConflictError(
                    "Reward not found, not owned by user, or already claimed",
                    ErrorContext(user_id=str(user_id), reward_id=str(reward_id)),
                )
            reward.status = RewardStatus.CLAIMED.value
            reward.claimed_at = datetime.now(timezone.utc)

        logger.info(
            "Reward claimed",
            extra={"user_id": str(user_id), "reward_id": str(reward_id)},
        )
        return reward

    async def claim_all_pending(self, user_id: UUID) -> list[Reward]:
        """Claim every pending reward of the user as one batch; [] if none."""
        async with unit_of_work(self.db):
            rewards = list((await self.db.execute(
                select(Reward)
                .where(Reward.user_id == user_id)
                .where(Reward.status == RewardStatus.PENDING.value)
                .order_by(Reward.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )).scalars().all())
            claimed_at = datetime.now(timezone.utc)
            for reward in rewards:
                reward.status = RewardStatus.CLAIMED.value
                reward.claimed_at = claimed_at

        if rewards:
            logger.info(
                f"Claimed {len(rewards)} pending rewards",
                extra={"user_id": str(user_id)},
            )
        return rewards

    async def mark_consumed(self, reward_id: UUID) -> Reward:
        """claimed -> consumed, after the payout has been processed."""
        async with unit_of_work(self.db):
            reward = (await self.db.execute(
                select(Reward)
                .where(Reward.id == reward_id)
                .where(Reward.status == RewardStatus.CLAIMED.value)
                .with_for_update()
                .execution_options(populate_existing=True)
            )).scalar_one_or_none()
            if reward is None:
                raise ConflictError(
                    "Reward not found or not in claimed state",
                    ErrorContext(reward_id=str(reward_id)),
                )
            reward.status = RewardStatus.CONSUMED.value

        logger.info("Reward consumed", extra={"reward_id": str(reward_id)})
        return reward

    # ─── Reads ───────────────────────────────────────────────────

    async def get(self, reward_id: UUID, user_id: UUID) -> Reward:
        reward = (await self.db.execute(
            select(Reward)
            .where(Reward.id == reward_id)
            .where(Reward.user_id == user_id)
        )).scalar_one_or_none()
        if reward is None:
            raise ResourceNotFoundError("Reward", str(reward_id))
        return reward

    async def list_for_user(
        self,
        user_id: UUID,
        status: RewardStatus | None = None,
        reward_type: RewardType | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Reward]:
        query = select(Reward).where(Reward.user_id == user_id)
        if status:
            query = query.where(Reward.status == RewardStatus(status).value)
        if reward_type:
            query = query.where(Reward.reward_type == RewardType(reward_type).value)
        query = query.order_by(Reward.created_at.desc()).limit(limit).offset(offset)
        return list((await self.db.execute(query)).scalars().all())

    async def stats(self, user_id: UUID) -> dict:
        rewards = (await self.db.execute(
            select(Reward).where(Reward.user_id == user_id)
        )).scalars().all()
        return compute_reward_stats(rewards)
