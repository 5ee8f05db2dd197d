"""
services/event/service.py
Event catalog: admin CRUD plus scoped listings (active/inactive,
upcoming/past, text search).
"""

import logging
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from services.signup.service import (
    Attendee,
    count_signups,
    is_full,
    is_signed_up,
    list_attendees,
    remaining_seats,
)
from shared.exceptions import NotFound
from shared.middleware.policy import ensure_admin, is_admin
from shared.models.models import Event, Signup, User
from shared.utils.clock import Clock
from shared.utils.pagination import Page, paginate
from shared.utils.search import LIKE_ESCAPE, contains_pattern

logger = logging.getLogger(__name__)

EVENT_FIELDS = (
    "title", "description", "starts_at", "location", "max_capacity", "is_active", "image_url",
)
# An explicit null clears these; for any other field it is ignored.
NULLABLE_EVENT_FIELDS = ("max_capacity", "image_url")


@dataclass
class EventStats:
    event: Event
    signup_count: int
    remaining_seats: Optional[int]
    is_full: bool
    viewer_signed_up: bool
    attendees: Optional[List[Attendee]] = None


async def _get_event_or_404(db: AsyncSession, event_id: UUID) -> Event:
    event = await db.get(Event, event_id)
    if not event:
        raise NotFound("Event not found.", reason="event_not_found")
    return event


async def _stats(
    db: AsyncSession, event: Event, viewer: User, with_attendees: bool = False
) -> EventStats:
    count = await count_signups(db, event.id)
    return EventStats(
        event=event,
        signup_count=count,
        remaining_seats=remaining_seats(event, count),
        is_full=is_full(event, count),
        viewer_signed_up=await is_signed_up(db, viewer.id, event.id),
        attendees=await list_attendees(db, event.id) if with_attendees else None,
    )


# ── Admin mutations ───────────────────────────────────────────

async def create_event(db: AsyncSession, actor: User, data: dict) -> Event:
    ensure_admin(actor, "create_event")
    event = Event(**{k: v for k, v in data.items() if k in EVENT_FIELDS})
    db.add(event)
    await db.commit()
    await db.refresh(event)
    logger.info("Event %s created by %s", event.id, actor.id)
    return event


async def update_event(db: AsyncSession, actor: User, event_id: UUID, updates: dict) -> Event:
    """Partial update. Lowering max_capacity never evicts existing signups."""
    ensure_admin(actor, "update_event")
    event = await _get_event_or_404(db, event_id)
    for field, value in updates.items():
        if field not in EVENT_FIELDS:
            continue
        if value is None and field not in NULLABLE_EVENT_FIELDS:
            continue
        setattr(event, field, value)
    await db.commit()
    await db.refresh(event)
    return event


async def delete_event(db: AsyncSession, actor: User, event_id: UUID) -> int:
    """
    Delete an event. Signups cascade; notifications that referenced it
    keep existing with event_id NULL. Returns the signup count at deletion.
    """
    ensure_admin(actor, "delete_event")
    event = await _get_event_or_404(db, event_id)
    signup_count = await count_signups(db, event.id)
    await db.delete(event)
    await db.commit()
    logger.info(
        "Event %s deleted by %s (%d signups removed)", event_id, actor.id, signup_count
    )
    return signup_count


# ── Reads ─────────────────────────────────────────────────────

async def get_event(db: AsyncSession, viewer: User, event_id: UUID) -> EventStats:
    """Event detail. Administrators also get the attendee list."""
    event = await _get_event_or_404(db, event_id)
    return await _stats(db, event, viewer, with_attendees=is_admin(viewer))


async def list_events(
    db: AsyncSession,
    viewer: User,
    clock: Clock,
    status: Optional[str] = None,
    period: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = "asc",
    page: int = 1,
    page_size: int = 10,
) -> Page:
    """
    status: "active" | "inactive"
    period: "upcoming" | "past" (relative to the injected clock)
    search: case-insensitive match on title, description or location
    """
    query = select(Event)

    if status == "active":
        query = query.where(Event.is_active.is_(True))
    elif status == "inactive":
        query = query.where(Event.is_active.is_(False))

    now = clock.now()
    if period == "upcoming":
        query = query.where(Event.starts_at > now)
    elif period == "past":
        query = query.where(Event.starts_at < now)

    if search:
        pattern = contains_pattern(search)
        query = query.where(
            or_(
                func.lower(Event.title).like(pattern, escape=LIKE_ESCAPE),
                func.lower(Event.description).like(pattern, escape=LIKE_ESCAPE),
                func.lower(Event.location).like(pattern, escape=LIKE_ESCAPE),
            )
        )

    order = Event.starts_at.desc() if sort == "desc" else Event.starts_at.asc()
    query = query.order_by(order, Event.id)

    result = await paginate(db, query, page, page_size)
    event_ids = [event.id for event in result.items]
    counts = await _signup_counts(db, event_ids)
    mine = await _viewer_event_ids(db, viewer.id, event_ids)
    result.items = [
        EventStats(
            event=event,
            signup_count=counts.get(event.id, 0),
            remaining_seats=remaining_seats(event, counts.get(event.id, 0)),
            is_full=is_full(event, counts.get(event.id, 0)),
            viewer_signed_up=event.id in mine,
        )
        for event in result.items
    ]
    return result


async def _signup_counts(db: AsyncSession, event_ids: List[UUID]) -> dict:
    if not event_ids:
        return {}
    rows = await db.execute(
        select(Signup.event_id, func.count(Signup.id))
        .where(Signup.event_id.in_(event_ids))
        .group_by(Signup.event_id)
    )
    return dict(rows.all())


async def _viewer_event_ids(db: AsyncSession, user_id: UUID, event_ids: List[UUID]) -> set:
    if not event_ids:
        return set()
    rows = await db.scalars(
        select(Signup.event_id).where(
            Signup.user_id == user_id, Signup.event_id.in_(event_ids)
        )
    )
    return set(rows)
