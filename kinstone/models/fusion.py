"""FusionRecord ORM — permanent audit row for every fusion attempt, success or not.

Invariants:
    - Created once per committed attempt; never updated or deleted (mapper events raise)
    - input_entry_*_id are plain ids: the entries themselves are deleted on success
    - input_piece_*_id reference the catalog, which is never hard-deleted
    - score_value == 0 whenever is_success is false

Design Decisions:
    - Immutability enforced at the ORM layer so no service can mutate history by accident
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    String, Integer, Boolean, DateTime, ForeignKey, CheckConstraint, event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, object_session
from sqlalchemy.dialects.postgresql import UUID

from kinstone.core.errors import ImmutableRecordError
from kinstone.db.base import Base


class FusionRecord(Base):
    """Append-only fact: one fusion attempt and its outcome."""
    __tablename__ = "fusions"
    __table_args__ = (
        CheckConstraint(
            "is_success OR score_value = 0", name="ck_fusions_failed_scores_zero",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True,
    )
    input_entry_1_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False,
    )
    input_entry_2_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False,
    )
    input_piece_1_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("pieces.id"), nullable=False,
    )
    input_piece_2_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("pieces.id"), nullable=False,
    )
    shape_family: Mapped[str] = mapped_column(String(50), nullable=False)
    is_success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    score_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    input_piece_1: Mapped["Piece"] = relationship(
        "Piece", foreign_keys=[input_piece_1_id], lazy="selectin",
    )
    input_piece_2: Mapped["Piece"] = relationship(
        "Piece", foreign_keys=[input_piece_2_id], lazy="selectin",
    )
    reward: Mapped["Reward"] = relationship(
        "Reward", back_populates="fusion", uselist=False, lazy="selectin",
    )


@event.listens_for(FusionRecord, "before_update")
def _reject_update(mapper, connection, target: FusionRecord) -> None:
    # Fires for relationship-only changes too; only column changes are mutations.
    session = object_session(target)
    if session is not None and not session.is_modified(
        target, include_collections=False,
    ):
        return
    raise ImmutableRecordError("FusionRecord", str(target.id))


@event.listens_for(FusionRecord, "before_delete")
def _reject_delete(mapper, connection, target: FusionRecord) -> None:
    raise ImmutableRecordError("FusionRecord", str(target.id))
