"""
services/signup/service.py
Membership ledger for event signups.

Capacity is a soft constraint validated at the instant of signup; there is
no seat reservation phase. The count-check-insert runs in one transaction
that holds a lock on the event row (SELECT ... FOR UPDATE on PostgreSQL,
BEGIN IMMEDIATE on SQLite, see config/database.py). Concurrent signups for
the same event therefore serialize and the last seat goes to exactly one
caller. The unique (user_id, event_id) constraint backs up the duplicate
check.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from shared.exceptions import Conflict, InvalidState, NotFound
from shared.models.models import Event, Signup, User
from shared.utils.clock import Clock

logger = logging.getLogger(__name__)


@dataclass
class SignupRecord:
    event: Event
    signed_up_at: Optional[datetime]
    remaining_seats: Optional[int]


@dataclass
class UserSignup:
    event: Event
    signed_up_at: datetime
    status: str  # "past" | "upcoming", derived at read time


@dataclass
class Attendee:
    user: User
    signed_up_at: datetime


# ── Helpers ───────────────────────────────────────────────────

def remaining_seats(event: Event, signup_count: int) -> Optional[int]:
    """None for unlimited events."""
    if event.max_capacity is None:
        return None
    return max(0, event.max_capacity - signup_count)


def is_full(event: Event, signup_count: int) -> bool:
    return event.max_capacity is not None and signup_count >= event.max_capacity


async def count_signups(db: AsyncSession, event_id: UUID) -> int:
    count = await db.scalar(
        select(func.count(Signup.id)).where(Signup.event_id == event_id)
    )
    return count or 0


async def is_signed_up(db: AsyncSession, user_id: UUID, event_id: UUID) -> bool:
    existing = await db.scalar(
        select(Signup.id).where(Signup.user_id == user_id, Signup.event_id == event_id)
    )
    return existing is not None


async def _lock_event(db: AsyncSession, event_id: UUID) -> Event:
    result = await db.execute(
        select(Event).where(Event.id == event_id).with_for_update()
    )
    event = result.scalar_one_or_none()
    if not event:
        raise NotFound("Event not found.", reason="event_not_found")
    return event


# ── Operations ────────────────────────────────────────────────

async def sign_up(db: AsyncSession, user: User, event_id: UUID, clock: Clock) -> SignupRecord:
    """
    Register `user` for an event. Checks, first failure wins:
    exists → active → not started → not already signed up → seat left.
    """
    now = clock.now()
    event = await _lock_event(db, event_id)

    if not event.is_active:
        raise InvalidState(
            "This event is not open for signups.", reason="event_inactive"
        )
    if event.starts_at <= now:
        raise InvalidState("Cannot sign up for a past event.", reason="event_past")
    if await is_signed_up(db, user.id, event.id):
        raise Conflict(
            "You are already signed up for this event.", reason="already_signed_up"
        )

    taken = await count_signups(db, event.id)
    if is_full(event, taken):
        raise Conflict("This event is full. No seats left.", reason="event_full")

    db.add(Signup(user_id=user.id, event_id=event.id, signed_up_at=now))
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise Conflict(
            "You are already signed up for this event.", reason="already_signed_up"
        )
    await db.commit()

    left = remaining_seats(event, taken + 1)
    logger.info(
        "User %s signed up for event %s (remaining seats: %s)",
        user.id, event.id, "unlimited" if left is None else left,
    )
    return SignupRecord(event=event, signed_up_at=now, remaining_seats=left)


async def cancel_sign_up(
    db: AsyncSession, user: User, event_id: UUID, clock: Clock
) -> SignupRecord:
    """
    Remove the user's signup. Refused once the event starts within the
    lockout window (24 hours by default), judged at call time.
    """
    now = clock.now()
    event = await _lock_event(db, event_id)

    signup = await db.scalar(
        select(Signup).where(Signup.user_id == user.id, Signup.event_id == event.id)
    )
    if not signup:
        raise NotFound("You are not signed up for this event.", reason="not_signed_up")

    lockout = timedelta(hours=settings.SIGNUP_CANCEL_LOCKOUT_HOURS)
    if event.starts_at - now <= lockout:
        raise InvalidState(
            f"Cannot cancel a signup less than {settings.SIGNUP_CANCEL_LOCKOUT_HOURS} "
            "hours before the event starts.",
            reason="cancellation_locked",
        )

    await db.delete(signup)
    await db.flush()
    left = remaining_seats(event, await count_signups(db, event.id))
    await db.commit()

    logger.info("User %s cancelled signup for event %s", user.id, event.id)
    return SignupRecord(event=event, signed_up_at=None, remaining_seats=left)


async def list_signups_for_user(
    db: AsyncSession, user: User, clock: Clock
) -> List[UserSignup]:
    """The user's events, soonest first, each tagged past/upcoming."""
    now = clock.now()
    result = await db.execute(
        select(Event, Signup.signed_up_at)
        .join(Signup, Signup.event_id == Event.id)
        .where(Signup.user_id == user.id)
        .order_by(Event.starts_at.asc())
    )
    return [
        UserSignup(
            event=event,
            signed_up_at=signed_up_at,
            status="past" if event.starts_at < now else "upcoming",
        )
        for event, signed_up_at in result.all()
    ]


async def list_attendees(db: AsyncSession, event_id: UUID) -> List[Attendee]:
    result = await db.execute(
        select(User, Signup.signed_up_at)
        .join(Signup, Signup.user_id == User.id)
        .where(Signup.event_id == event_id)
        .order_by(Signup.signed_up_at.asc())
    )
    return [Attendee(user=u, signed_up_at=at) for u, at in result.all()]
