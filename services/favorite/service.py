"""
services/favorite/service.py
Membership ledger for (user, point of interest) bookmarks.
Removing a favorite hard-deletes the row, so it can be added again.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from services.point.service import get_point_or_404
from shared.exceptions import Conflict, InvalidState
from shared.models.models import Favorite, PointOfInterest, PointType, User
from shared.utils.clock import Clock

logger = logging.getLogger(__name__)


@dataclass
class FavoriteEntry:
    point: PointOfInterest
    added_at: datetime


async def _find(db: AsyncSession, user_id: UUID, point_id: UUID) -> Optional[Favorite]:
    return await db.scalar(
        select(Favorite).where(Favorite.user_id == user_id, Favorite.point_id == point_id)
    )


async def add_favorite(db: AsyncSession, user: User, point_id: UUID, clock: Clock) -> FavoriteEntry:
    point = await get_point_or_404(db, point_id)
    if await _find(db, user.id, point.id):
        raise Conflict(
            "This point is already in your favorites.", reason="already_favorited"
        )

    now = clock.now()
    db.add(Favorite(user_id=user.id, point_id=point.id, added_at=now))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict(
            "This point is already in your favorites.", reason="already_favorited"
        )
    logger.info("User %s added point %s to favorites", user.id, point.id)
    return FavoriteEntry(point=point, added_at=now)


async def remove_favorite(db: AsyncSession, user: User, point_id: UUID) -> PointOfInterest:
    point = await get_point_or_404(db, point_id)
    favorite = await _find(db, user.id, point.id)
    if not favorite:
        raise InvalidState("This point is not in your favorites.", reason="not_favorited")

    await db.delete(favorite)
    await db.commit()
    logger.info("User %s removed point %s from favorites", user.id, point.id)
    return point


async def list_favorites(
    db: AsyncSession,
    user: User,
    point_type: Optional[PointType] = None,
    newest_first: bool = True,
) -> List[FavoriteEntry]:
    query = (
        select(PointOfInterest, Favorite.added_at)
        .join(Favorite, Favorite.point_id == PointOfInterest.id)
        .where(Favorite.user_id == user.id)
    )
    if point_type is not None:
        query = query.where(PointOfInterest.type == point_type)
    order = Favorite.added_at.desc() if newest_first else Favorite.added_at.asc()
    result = await db.execute(query.order_by(order))
    return [FavoriteEntry(point=p, added_at=at) for p, at in result.all()]
