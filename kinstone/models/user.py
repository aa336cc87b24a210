"""User ORM — a player who owns exactly one Inventory.

Invariants:
    - id is UUID primary key
    - handle is unique when present
    - Soft delete only (is_active = false): fusion history keeps its user reference
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from kinstone.db.base import Base


class User(Base):
    """User aggregate root — owns an inventory and its rewards."""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    handle: Mapped[str | None] = mapped_column(
        String(50), nullable=True, unique=True,
    )
    display_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
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

    inventory: Mapped["Inventory"] = relationship(
        "Inventory", back_populates="user", uselist=False, lazy="selectin",
    )
