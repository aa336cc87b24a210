"""Pieces — the catalog of piece halves that inventories hold."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from kinstone.core.domain_types import Rarity
from kinstone.infrastructure.database import get_db
from kinstone.schemas.catalog import PieceCreate
from kinstone.schemas.inventory import PieceResponse
from kinstone.services.catalog import CatalogService

router = APIRouter(prefix="/api/v1/pieces", tags=["pieces"])


@router.post(
    "", response_model=PieceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_piece(body: PieceCreate, db: AsyncSession = Depends(get_db)):
    return await CatalogService(db).create_piece(
        name=body.name,
        shape_family=body.shape_family,
        half=body.half,
        rarity=body.rarity,
        description=body.description,
        tags=body.tags,
    )


@router.get("", response_model=list[PieceResponse])
async def list_pieces(
    rarity: Rarity | None = None,
    shape_family: str | None = Query(None, max_length=50),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    return await CatalogService(db).list_pieces(
        rarity=rarity, shape_family=shape_family, limit=limit, offset=offset,
    )
