"""Reward ORM — payout created by a successful fusion, claimed later by its owner.

Invariants:
    - fusion_id is unique: at most one reward per fusion record
    - status transitions: pending -> claimed -> consumed (RewardIssuer is the only writer)
    - claimed_at is set exactly when status leaves pending
    - reward_value holds the tagged payload matching reward_type (core/reward_payloads.py)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, JSON, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from kinstone.core.reward_payloads import RewardPayload, parse_reward_value
from kinstone.db.base import Base


class Reward(Base):
    """Reward entity — one per rewarded fusion."""
    __tablename__ = "rewards"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'claimed', 'consumed')", name="ck_rewards_status",
        ),
        CheckConstraint(
            "reward_type IN ('points', 'coins', 'cosmetic', 'lootbox', 'event_trigger')",
            name="ck_rewards_type",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    fusion_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("fusions.id"), nullable=False, unique=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True,
    )
    reward_type: Mapped[str] = mapped_column(String(20), nullable=False)
    reward_value: Mapped[dict] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending",
    )
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    fusion: Mapped["FusionRecord"] = relationship(
        "FusionRecord", back_populates="reward",
    )

    @property
    def payload(self) -> RewardPayload:
        return parse_reward_value(self.reward_type, self.reward_value)
