"""
services/favorite/router.py
Bookmarking points of interest.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.favorite import service
from shared.middleware.auth import get_current_user
from shared.models.models import POINT_TYPE_LABELS, User
from shared.schemas.schemas import (
    FavoriteItem,
    FavoriteListResponse,
    FavoriteResponse,
    PointTypeLiteral,
)
from shared.utils.clock import Clock, get_clock

router = APIRouter(tags=["Favorites"])


@router.post(
    "/points/{point_id}/favorite",
    response_model=FavoriteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_favorite(
    point_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Bookmark a point. 409 with reason `already_favorited` if it already is."""
    entry = await service.add_favorite(db, current_user, point_id, clock)
    return FavoriteResponse(
        point_id=entry.point.id,
        name=entry.point.name,
        type=entry.point.type.value,
        type_label=entry.point.type_label,
        added_at=entry.added_at,
    )


@router.delete("/points/{point_id}/favorite", response_model=FavoriteResponse)
async def remove_favorite(
    point_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    point = await service.remove_favorite(db, current_user, point_id)
    return FavoriteResponse(
        point_id=point.id,
        name=point.name,
        type=point.type.value,
        type_label=point.type_label,
    )


@router.get("/users/me/favorites", response_model=FavoriteListResponse)
async def my_favorites(
    type: Optional[PointTypeLiteral] = Query(None),
    sort: str = Query("desc", pattern="^(asc|desc)$"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The current user's favorites, newest first by default."""
    entries = await service.list_favorites(
        db, current_user, point_type=type, newest_first=(sort == "desc")
    )
    items = [
        FavoriteItem(
            point_id=e.point.id,
            name=e.point.name,
            type=e.point.type.value,
            type_label=e.point.type_label,
            address=e.point.address,
            description=e.point.description,
            emergency_number=e.point.emergency_number,
            image_url=e.point.image_url,
            added_at=e.added_at,
        )
        for e in entries
    ]
    return FavoriteListResponse(
        items=items,
        total=len(items),
        available_types={t.value: label for t, label in POINT_TYPE_LABELS.items()},
    )
