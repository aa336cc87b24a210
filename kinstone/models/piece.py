"""Piece ORM — immutable catalog definition of a fusable half.

Invariants:
    - half is "A" or "B"; rarity is one of the Rarity values
    - Retired pieces keep their row (is_active = false) so fusion records stay joinable

Design Decisions:
    - JSON column for tags: portable across PostgreSQL and SQLite
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Boolean, DateTime, JSON, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from kinstone.db.base import Base


class Piece(Base):
    """Catalog piece — one half of a shape family at a given rarity."""
    __tablename__ = "pieces"
    __table_args__ = (
        CheckConstraint("half IN ('A', 'B')", name="ck_pieces_half"),
        CheckConstraint(
            "rarity IN ('common', 'uncommon', 'rare', 'epic', 'legendary')",
            name="ck_pieces_rarity",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    shape_family: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    half: Mapped[str] = mapped_column(String(1), nullable=False)
    rarity: Mapped[str] = mapped_column(
        String(20), nullable=False, default="common",
    )
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
