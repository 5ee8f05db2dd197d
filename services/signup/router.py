"""
services/signup/router.py
Event signup endpoints. All rules live in services/signup/service.py.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.signup import service
from shared.middleware.auth import get_current_user
from shared.models.models import User
from shared.schemas.schemas import (
    EventSummary,
    SignupResponse,
    UserSignupItem,
    UserSignupListResponse,
)
from shared.utils.clock import Clock, get_clock

router = APIRouter(tags=["Signups"])


def _signup_response(record: service.SignupRecord) -> SignupResponse:
    return SignupResponse(
        event=EventSummary.model_validate(record.event),
        signed_up_at=record.signed_up_at,
        remaining_seats=record.remaining_seats,
    )


@router.post(
    "/events/{event_id}/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
)
async def sign_up(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Sign up for an event.
    409 with reason `already_signed_up` or `event_full`; 400 for inactive
    or past events.
    """
    record = await service.sign_up(db, current_user, event_id, clock)
    return _signup_response(record)


@router.delete("/events/{event_id}/signup", response_model=SignupResponse)
async def cancel_sign_up(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Cancel a signup. Refused within 24 hours of the event start."""
    record = await service.cancel_sign_up(db, current_user, event_id, clock)
    return _signup_response(record)


@router.get("/users/me/signups", response_model=UserSignupListResponse)
async def my_signups(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    signups = await service.list_signups_for_user(db, current_user, clock)
    items = [
        UserSignupItem(
            event_id=s.event.id,
            title=s.event.title,
            description=s.event.description,
            starts_at=s.event.starts_at,
            location=s.event.location,
            image_url=s.event.image_url,
            signed_up_at=s.signed_up_at,
            status=s.status,
        )
        for s in signups
    ]
    return UserSignupListResponse(items=items, total=len(items))
