"""
services/point/router.py
Points of interest on the pilgrim map.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from services.point import service
from shared.middleware.auth import get_current_user
from shared.models.models import User
from shared.schemas.schemas import (
    FavoritedByResponse,
    PaginatedResponse,
    PointCreateRequest,
    PointDeletedResponse,
    PointResponse,
    PointTypeLiteral,
    PointTypeResponse,
    PointUpdateRequest,
)

router = APIRouter(prefix="/points", tags=["Points of interest"])


def _point_response(stats: service.PointStats) -> PointResponse:
    favorited_by = None
    if stats.favorited_by is not None:
        favorited_by = [
            FavoritedByResponse(
                user_id=f.user.id,
                first_name=f.user.first_name,
                last_name=f.user.last_name,
                added_at=f.added_at,
            )
            for f in stats.favorited_by
        ]
    p = stats.point
    return PointResponse(
        id=p.id,
        name=p.name,
        type=p.type.value,
        type_label=p.type_label,
        address=p.address,
        description=p.description,
        emergency_number=p.emergency_number,
        image_url=p.image_url,
        created_at=p.created_at,
        favorite_count=stats.favorite_count,
        viewer_favorited=stats.viewer_favorited,
        favorited_by=favorited_by,
    )


@router.get("", response_model=PaginatedResponse)
async def list_points(
    type: Optional[PointTypeLiteral] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Browse points of interest alphabetically, optionally by type."""
    result = await service.list_points(
        db, current_user, point_type=type, search=search, page=page, page_size=page_size
    )
    return PaginatedResponse(
        items=[_point_response(s) for s in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


# Must be declared before /{point_id}
@router.get("/types", response_model=List[PointTypeResponse])
async def list_point_types():
    return [PointTypeResponse(**t) for t in service.list_point_types()]


@router.post("", response_model=PointResponse, status_code=status.HTTP_201_CREATED)
async def create_point(
    data: PointCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a point of interest (admin)."""
    point = await service.create_point(db, current_user, data.model_dump())
    return _point_response(
        service.PointStats(point=point, favorite_count=0, viewer_favorited=False)
    )


@router.get("/{point_id}", response_model=PointResponse)
async def get_point(
    point_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Point detail. Admins also see which pilgrims favorited it."""
    return _point_response(await service.get_point(db, current_user, point_id))


@router.patch("/{point_id}", response_model=PointResponse)
async def update_point(
    point_id: UUID,
    data: PointUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await service.update_point(db, current_user, point_id, data.model_dump(exclude_unset=True))
    return _point_response(await service.get_point(db, current_user, point_id))


@router.delete("/{point_id}", response_model=PointDeletedResponse)
async def delete_point(
    point_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a point of interest (admin). Favorites on it are removed too."""
    favorites_deleted = await service.delete_point(db, current_user, point_id)
    return PointDeletedResponse(
        message="Point of interest deleted",
        point_id=point_id,
        favorites_deleted=favorites_deleted,
    )
