"""Fusion Engine — consumes two owned entries atomically and records the attempt.

Invariants:
    - entry_id_1 == entry_id_2 -> InvalidInputError before any lock or write
    - Ownership/existence/lock checks happen under the entry locks, never before
    - Identical catalog pieces -> InvalidInputError, unit of work rolled back
    - One unit of work per attempt: FusionRecord insert, removal of both entries
      (success only) and reward issue (earned only) commit together or not at all
    - Every committed attempt leaves exactly one FusionRecord, success or not
    - Snapshots of both inputs are taken before consumption, in caller order

Design Decisions:
    - Outcome computed by the pure rules in core/fusion_rules.py; this module only
      sequences IO around it
    - No retries here: ConflictError means nothing was written and the caller may retry
"""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kinstone.core.errors import ErrorContext, InvalidInputError, ResourceNotFoundError
from kinstone.core.fusion_rules import evaluate_fusion
from kinstone.core.ledger_stats import compute_fusion_stats
from kinstone.models.fusion import FusionRecord
from kinstone.models.inventory import InventoryEntry
from kinstone.models.reward import Reward
from kinstone.services.concurrency_control import ConcurrencyControl
from kinstone.services.inventory_ledger import InventoryLedger
from kinstone.services.reward_issuer import RewardIssuer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PieceSnapshot:
    """Display attributes of an input entry as they were before consumption."""
    entry_id: UUID
    piece_id: UUID
    name: str
    shape_family: str
    half: str
    rarity: str

    @classmethod
    def of(cls, entry: InventoryEntry) -> "PieceSnapshot":
        piece = entry.piece
        return cls(
            entry_id=entry.id,
            piece_id=piece.id,
            name=piece.name,
            shape_family=piece.shape_family,
            half=piece.half,
            rarity=piece.rarity,
        )


@dataclass
class FusionAttempt:
    """Committed result of one fusion attempt."""
    record: FusionRecord
    input_piece_1: PieceSnapshot
    input_piece_2: PieceSnapshot
    reward: Reward | None = None
    consumed_entry_ids: list[UUID] = field(default_factory=list)


class FusionEngine:
    """Orchestrates lock -> validate -> evaluate -> persist for one fusion."""

    def __init__(
        self, db: AsyncSession, concurrency: ConcurrencyControl | None = None,
    ):
        self.db = db
        self.concurrency = concurrency or ConcurrencyControl()
        self.ledger = InventoryLedger(db)
        self.rewards = RewardIssuer(db)

    async def attempt_fusion(
        self, user_id: UUID, entry_id_1: UUID, entry_id_2: UUID,
    ) -> FusionAttempt:
        if entry_id_1 == entry_id_2:
            raise InvalidInputError(
                "Cannot fuse a piece with itself", field="entry_id_2",
                context=ErrorContext(user_id=str(user_id), entry_ids=[str(entry_id_1)]),
            )

        async with self.concurrency.lock_entries(
            self.db, user_id, (entry_id_1, entry_id_2),
        ) as locked:
            entry_1, entry_2 = locked[entry_id_1], locked[entry_id_2]
            if entry_1.piece_id == entry_2.piece_id:
                raise InvalidInputError(
                    "Cannot fuse identical pieces", field="entry_id_2",
                    context=ErrorContext(
                        user_id=str(user_id),
                        entry_ids=[str(entry_id_1), str(entry_id_2)],
                    ),
                )

            snapshot_1 = PieceSnapshot.of(entry_1)
            snapshot_2 = PieceSnapshot.of(entry_2)
            outcome = evaluate_fusion(entry_1.piece, entry_2.piece)

            record = FusionRecord(
                user_id=user_id,
                input_entry_1_id=entry_1.id,
                input_entry_2_id=entry_2.id,
                input_piece_1_id=entry_1.piece_id,
                input_piece_2_id=entry_2.piece_id,
                shape_family=snapshot_1.shape_family,
                is_success=outcome.is_success,
                score_value=outcome.score_value,
            )
            self.db.add(record)
            await self.db.flush()

            attempt = FusionAttempt(
                record=record, input_piece_1=snapshot_1, input_piece_2=snapshot_2,
            )
            if outcome.is_success:
                await self.ledger.remove_entries(user_id, (entry_1.id, entry_2.id))
                attempt.consumed_entry_ids = [entry_1.id, entry_2.id]
                if outcome.reward is not None:
                    attempt.reward = await self.rewards.issue(record, outcome.reward)

        logger.info(
            f"Fusion {'succeeded' if record.is_success else 'failed'} "
            f"({record.shape_family}, score {record.score_value})",
            extra={
                "user_id": str(user_id),
                "fusion_id": str(record.id),
                "entry_ids": [str(entry_id_1), str(entry_id_2)],
                "is_success": record.is_success,
                "score_value": record.score_value,
            },
        )
        return attempt

    # ─── Reads ───────────────────────────────────────────────────

    async def get(self, fusion_id: UUID, user_id: UUID) -> FusionRecord:
        record = (await self.db.execute(
            select(FusionRecord)
            .where(FusionRecord.id == fusion_id)
            .where(FusionRecord.user_id == user_id)
        )).scalar_one_or_none()
        if record is None:
            raise ResourceNotFoundError("Fusion", str(fusion_id))
        return record

    async def history(
        self,
        user_id: UUID,
        success_only: bool = False,
        shape_family: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[FusionRecord]:
        query = select(FusionRecord).where(FusionRecord.user_id == user_id)
        if success_only:
            query = query.where(FusionRecord.is_success.is_(True))
        if shape_family:
            query = query.where(FusionRecord.shape_family == shape_family)
        query = (
            query.order_by(FusionRecord.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list((await self.db.execute(query)).scalars().all())

    async def stats(self, user_id: UUID) -> dict:
        records = (await self.db.execute(
            select(FusionRecord).where(FusionRecord.user_id == user_id)
        )).scalars().all()
        return compute_fusion_stats(records)
