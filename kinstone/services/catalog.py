"""Catalog & Users — the supporting CRUD around the fusion core.

Invariants:
    - A user is created together with its inventory in one unit of work
    - Inactive users and retired pieces behave as not found
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kinstone.config import get_settings
from kinstone.core.domain_types import PieceHalf, Rarity
from kinstone.core.errors import InvalidInputError, ResourceNotFoundError
from kinstone.infrastructure.database import unit_of_work
from kinstone.models.inventory import Inventory
from kinstone.models.piece import Piece
from kinstone.models.user import User

logger = logging.getLogger(__name__)


class CatalogService:
    """Users and catalog pieces."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_user(
        self,
        handle: str | None = None,
        display_name: str | None = None,
        inventory_capacity: int | None = None,
    ) -> User:
        capacity = inventory_capacity
        if capacity is None:
            capacity = get_settings().default_inventory_capacity
        if capacity < 1:
            raise InvalidInputError("Capacity must be at least 1", field="inventory_capacity")

        async with unit_of_work(self.db):
            if handle is not None:
                taken = await self.db.scalar(
                    select(User.id).where(User.handle == handle)
                )
                if taken is not None:
                    raise InvalidInputError(
                        f"Handle '{handle}' is already taken", field="handle",
                    )
            user = User(handle=handle, display_name=display_name)
            # Attached while still pending: no lazy load of a previous inventory
            user.inventory = Inventory(capacity=capacity)
            self.db.add(user)
            await self.db.flush()

        logger.info(f"Created user with capacity {capacity}", extra={"user_id": str(user.id)})
        return user

    async def get_user(self, user_id: UUID) -> User:
        user = (await self.db.execute(
            select(User).where(User.id == user_id).where(User.is_active.is_(True))
        )).scalar_one_or_none()
        if user is None:
            raise ResourceNotFoundError("User", str(user_id))
        return user

    async def create_piece(
        self,
        name: str,
        shape_family: str,
        half: PieceHalf | str,
        rarity: Rarity | str = Rarity.COMMON,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> Piece:
        piece = Piece(
            name=name,
            shape_family=shape_family,
            half=PieceHalf(half).value,
            rarity=Rarity(rarity).value,
            description=description,
            tags=tags or [],
        )
        async with unit_of_work(self.db):
            self.db.add(piece)
        return piece

    async def list_pieces(
        self,
        rarity: Rarity | None = None,
        shape_family: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Piece]:
        query = select(Piece).where(Piece.is_active.is_(True))
        if rarity:
            query = query.where(Piece.rarity == Rarity(rarity).value)
        if shape_family:
            query = query.where(Piece.shape_family == shape_family)
        query = (
            query.order_by(Piece.shape_family, Piece.half, Piece.rarity)
            .limit(limit)
            .offset(offset)
        )
        return list((await self.db.execute(query)).scalars().all())
