"""
services/point/service.py
Points of interest (mosques, health centres, lodging...) for the pilgrim
map. Admin CRUD plus listings enriched with favorite counts.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.exceptions import NotFound
from shared.middleware.policy import ensure_admin, is_admin
from shared.models.models import (
    POINT_TYPE_LABELS,
    Favorite,
    PointOfInterest,
    PointType,
    User,
)
from shared.utils.pagination import Page, paginate
from shared.utils.search import LIKE_ESCAPE, contains_pattern

logger = logging.getLogger(__name__)

POINT_FIELDS = ("name", "type", "address", "description", "emergency_number", "image_url")
NULLABLE_POINT_FIELDS = ("address", "description", "emergency_number", "image_url")


@dataclass
class FavoritedBy:
    user: User
    added_at: datetime


@dataclass
class PointStats:
    point: PointOfInterest
    favorite_count: int
    viewer_favorited: bool
    favorited_by: Optional[List[FavoritedBy]] = None


async def get_point_or_404(db: AsyncSession, point_id: UUID) -> PointOfInterest:
    point = await db.get(PointOfInterest, point_id)
    if not point:
        raise NotFound("Point of interest not found.", reason="point_not_found")
    return point


async def count_favorites(db: AsyncSession, point_id: UUID) -> int:
    count = await db.scalar(
        select(func.count(Favorite.id)).where(Favorite.point_id == point_id)
    )
    return count or 0


async def _favorite_counts(db: AsyncSession, point_ids: List[UUID]) -> Dict[UUID, int]:
    if not point_ids:
        return {}
    rows = await db.execute(
        select(Favorite.point_id, func.count(Favorite.id))
        .where(Favorite.point_id.in_(point_ids))
        .group_by(Favorite.point_id)
    )
    return dict(rows.all())


async def _viewer_point_ids(db: AsyncSession, user_id: UUID, point_ids: List[UUID]) -> set:
    if not point_ids:
        return set()
    rows = await db.scalars(
        select(Favorite.point_id).where(
            Favorite.user_id == user_id, Favorite.point_id.in_(point_ids)
        )
    )
    return set(rows)


async def _favorited_by(db: AsyncSession, point_id: UUID) -> List[FavoritedBy]:
    result = await db.execute(
        select(User, Favorite.added_at)
        .join(Favorite, Favorite.user_id == User.id)
        .where(Favorite.point_id == point_id)
        .order_by(Favorite.added_at.desc())
    )
    return [FavoritedBy(user=u, added_at=at) for u, at in result.all()]


# ── Admin mutations ───────────────────────────────────────────

async def create_point(db: AsyncSession, actor: User, data: dict) -> PointOfInterest:
    ensure_admin(actor, "create_point")
    point = PointOfInterest(**{k: v for k, v in data.items() if k in POINT_FIELDS})
    db.add(point)
    await db.commit()
    await db.refresh(point)
    logger.info("Point of interest %s (%s) created by %s", point.id, point.type, actor.id)
    return point


async def update_point(
    db: AsyncSession, actor: User, point_id: UUID, updates: dict
) -> PointOfInterest:
    ensure_admin(actor, "update_point")
    point = await get_point_or_404(db, point_id)
    for field, value in updates.items():
        if field not in POINT_FIELDS:
            continue
        if value is None and field not in NULLABLE_POINT_FIELDS:
            continue
        setattr(point, field, value)
    await db.commit()
    await db.refresh(point)
    return point


async def delete_point(db: AsyncSession, actor: User, point_id: UUID) -> int:
    """Delete a point; its favorites cascade. Returns the favorite count at deletion."""
    ensure_admin(actor, "delete_point")
    point = await get_point_or_404(db, point_id)
    favorite_count = await count_favorites(db, point.id)
    await db.delete(point)
    await db.commit()
    logger.info(
        "Point of interest %s deleted by %s (%d favorites removed)",
        point_id, actor.id, favorite_count,
    )
    return favorite_count


# ── Reads ─────────────────────────────────────────────────────

async def get_point(db: AsyncSession, viewer: User, point_id: UUID) -> PointStats:
    point = await get_point_or_404(db, point_id)
    mine = await _viewer_point_ids(db, viewer.id, [point.id])
    return PointStats(
        point=point,
        favorite_count=await count_favorites(db, point.id),
        viewer_favorited=point.id in mine,
        favorited_by=await _favorited_by(db, point.id) if is_admin(viewer) else None,
    )


async def list_points(
    db: AsyncSession,
    viewer: User,
    point_type: Optional[PointType] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 10,
) -> Page:
    """Points ordered by name; `search` matches name or address."""
    query = select(PointOfInterest)
    if point_type is not None:
        query = query.where(PointOfInterest.type == point_type)
    if search:
        pattern = contains_pattern(search)
        query = query.where(
            or_(
                func.lower(PointOfInterest.name).like(pattern, escape=LIKE_ESCAPE),
                func.lower(PointOfInterest.address).like(pattern, escape=LIKE_ESCAPE),
            )
        )
    query = query.order_by(PointOfInterest.name.asc(), PointOfInterest.id)

    result = await paginate(db, query, page, page_size)
    point_ids = [p.id for p in result.items]
    counts = await _favorite_counts(db, point_ids)
    mine = await _viewer_point_ids(db, viewer.id, point_ids)
    result.items = [
        PointStats(
            point=p,
            favorite_count=counts.get(p.id, 0),
            viewer_favorited=p.id in mine,
        )
        for p in result.items
    ]
    return result


def list_point_types() -> List[Dict[str, str]]:
    return [{"value": t.value, "label": POINT_TYPE_LABELS[t]} for t in PointType]
