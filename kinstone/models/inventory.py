"""Inventory & InventoryEntry ORM — the per-owner capacity ledger and its slots.

Invariants:
    - One Inventory per user (unique user_id)
    - current_usage == count of live InventoryEntry rows for the inventory
    - 1 <= capacity and 0 <= current_usage <= capacity (CHECK constraints)
    - serial_number allocated from Inventory.next_serial under the inventory row lock,
      so serials only ever increase within an inventory
    - owner_id denormalized on entries: the fusion lock query filters by owner without a JOIN

Design Decisions:
    - current_usage maintained by InventoryLedger, not DB triggers: same behaviour on
      PostgreSQL and SQLite, and the post-condition is checked before commit
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    String, Integer, Boolean, DateTime, ForeignKey, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from kinstone.db.base import Base


class Inventory(Base):
    """Capacity ledger for one user."""
    __tablename__ = "inventories"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_inventories_capacity_min"),
        CheckConstraint("current_usage >= 0", name="ck_inventories_usage_min"),
        CheckConstraint(
            "current_usage <= capacity", name="ck_inventories_usage_le_capacity",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    current_usage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_serial: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user: Mapped["User"] = relationship("User", back_populates="inventory")


class InventoryEntry(Base):
    """One owned instance of a catalog piece, occupying one slot."""
    __tablename__ = "inventory_entries"
    __table_args__ = (
        UniqueConstraint(
            "inventory_id", "serial_number", name="uq_inventory_entries_serial",
        ),
        CheckConstraint(
            "provenance IN ('drop', 'reward', 'grant', 'admin')",
            name="ck_inventory_entries_provenance",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    inventory_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("inventories.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    piece_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("pieces.id"), nullable=False,
    )
    provenance: Mapped[str] = mapped_column(
        String(20), nullable=False, default="drop",
    )
    is_locked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    serial_number: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    piece: Mapped["Piece"] = relationship("Piece", lazy="selectin")
