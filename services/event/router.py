"""
services/event/router.py
Event catalog endpoints: browsing for everyone signed in, CRUD for admins.
"""

from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from services.event import service
from shared.middleware.auth import get_current_user
from shared.models.models import User
from shared.schemas.schemas import (
    AttendeeResponse,
    EventCreateRequest,
    EventDeletedResponse,
    EventResponse,
    EventUpdateRequest,
    PaginatedResponse,
)
from shared.utils.clock import Clock, get_clock

router = APIRouter(prefix="/events", tags=["Events"])


def _event_response(stats: service.EventStats) -> EventResponse:
    attendees = None
    if stats.attendees is not None:
        attendees = [
            AttendeeResponse(
                user_id=a.user.id,
                first_name=a.user.first_name,
                last_name=a.user.last_name,
                email=a.user.email,
                signed_up_at=a.signed_up_at,
            )
            for a in stats.attendees
        ]
    return EventResponse(
        **{
            col.name: getattr(stats.event, col.name)
            for col in stats.event.__table__.columns
        },
        signup_count=stats.signup_count,
        remaining_seats=stats.remaining_seats,
        is_full=stats.is_full,
        viewer_signed_up=stats.viewer_signed_up,
        attendees=attendees,
    )


@router.get("", response_model=PaginatedResponse)
async def list_events(
    status_filter: Optional[Literal["active", "inactive"]] = Query(None, alias="status"),
    period: Optional[Literal["upcoming", "past"]] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    sort: Literal["asc", "desc"] = Query("asc"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Browse events, soonest first by default."""
    result = await service.list_events(
        db, current_user, clock,
        status=status_filter, period=period, search=search, sort=sort,
        page=page, page_size=page_size,
    )
    return PaginatedResponse(
        items=[_event_response(s) for s in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    data: EventCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create an event (admin)."""
    event = await service.create_event(db, current_user, data.model_dump())
    return _event_response(
        service.EventStats(
            event=event,
            signup_count=0,
            remaining_seats=event.max_capacity,
            is_full=False,
            viewer_signed_up=False,
        )
    )


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Event detail with seat counts. Admins also see the attendee list."""
    return _event_response(await service.get_event(db, current_user, event_id))


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: UUID,
    data: EventUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Partially update an event (admin).
    Lowering max_capacity below the current signup count keeps every
    existing signup; the event simply reports itself full.
    """
    await service.update_event(db, current_user, event_id, data.model_dump(exclude_unset=True))
    return _event_response(await service.get_event(db, current_user, event_id))


@router.delete("/{event_id}", response_model=EventDeletedResponse)
async def delete_event(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    signups_deleted = await service.delete_event(db, current_user, event_id)
    return EventDeletedResponse(
        message="Event deleted",
        event_id=event_id,
        signups_deleted=signups_deleted,
    )
