"""Users — create a player (with an empty inventory) and read it back."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from kinstone.infrastructure.database import get_db
from kinstone.schemas.catalog import UserCreate, UserResponse
from kinstone.services.catalog import CatalogService

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.post(
    "", response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_user(body: UserCreate, db: AsyncSession = Depends(get_db)):
    return await CatalogService(db).create_user(
        handle=body.handle,
        display_name=body.display_name,
        inventory_capacity=body.inventory_capacity,
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: UUID, db: AsyncSession = Depends(get_db)):
    return await CatalogService(db).get_user(user_id)
