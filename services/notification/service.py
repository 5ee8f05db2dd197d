"""
services/notification/service.py
Broadcast fan-out and per-user read tracking.

A broadcast writes the Notification and one NotificationRecipient row per
target user in a single transaction, the recipient rows as one batched
INSERT. The recipient set is a snapshot: users registered later never see
older notifications.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, case, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shared.exceptions import InvalidState, NotFound
from shared.middleware.policy import ensure_admin
from shared.models.models import (
    Event,
    Notification,
    NotificationRecipient,
    Signup,
    User,
    UserRole,
)
from shared.utils.clock import Clock
from shared.utils.pagination import Page, paginate

logger = logging.getLogger(__name__)


@dataclass
class Broadcast:
    notification: Notification
    recipient_count: int


@dataclass
class ReadReceipt:
    notification_id: UUID
    read_at: datetime
    already_read: bool


@dataclass
class InboxEntry:
    notification: Notification
    event_title: Optional[str]
    is_read: bool
    read_at: Optional[datetime]


@dataclass
class SentEntry:
    notification: Notification
    event_title: Optional[str]
    recipient_count: int
    read_count: int

    @property
    def read_rate(self) -> float:
        if not self.recipient_count:
            return 0.0
        return round(self.read_count * 100 / self.recipient_count, 1)


async def _fan_out(
    db: AsyncSession,
    title: str,
    message: str,
    user_ids: List[UUID],
    clock: Clock,
    event_id: Optional[UUID] = None,
) -> Broadcast:
    notification = Notification(
        id=uuid4(), title=title, message=message, event_id=event_id, sent_at=clock.now()
    )
    db.add(notification)
    await db.flush()
    if user_ids:
        await db.execute(
            insert(NotificationRecipient),
            [
                {"id": uuid4(), "notification_id": notification.id, "user_id": uid, "is_read": False}
                for uid in user_ids
            ],
        )
    await db.commit()
    return Broadcast(notification=notification, recipient_count=len(user_ids))


# ── Sending (admin) ───────────────────────────────────────────

async def broadcast_to_all(
    db: AsyncSession, actor: User, title: str, message: str, clock: Clock
) -> Broadcast:
    """Send to every pilgrim. Zero pilgrims still records the notification."""
    ensure_admin(actor, "broadcast_to_all")
    user_ids = list(await db.scalars(select(User.id).where(User.role == UserRole.PILGRIM)))
    broadcast = await _fan_out(db, title, message, user_ids, clock)
    logger.info(
        "Broadcast %s sent by %s to %d pilgrims",
        broadcast.notification.id, actor.id, broadcast.recipient_count,
    )
    return broadcast


async def broadcast_to_event_attendees(
    db: AsyncSession,
    actor: User,
    title: str,
    message: str,
    event_id: UUID,
    clock: Clock,
) -> Broadcast:
    """Send to everyone signed up for `event_id`. Refused when nobody is."""
    ensure_admin(actor, "broadcast_to_event_attendees")
    event = await db.get(Event, event_id)
    if not event:
        raise NotFound("Event not found.", reason="event_not_found")

    user_ids = list(await db.scalars(select(Signup.user_id).where(Signup.event_id == event.id)))
    if not user_ids:
        raise InvalidState(
            "Nobody is signed up for this event.", reason="no_recipients"
        )

    broadcast = await _fan_out(db, title, message, user_ids, clock, event_id=event.id)
    logger.info(
        "Event broadcast %s for event %s sent by %s to %d attendees",
        broadcast.notification.id, event.id, actor.id, broadcast.recipient_count,
    )
    return broadcast


async def delete_notification(db: AsyncSession, actor: User, notification_id: UUID) -> int:
    """Delete a notification with all its recipient rows. Returns how many there were."""
    ensure_admin(actor, "delete_notification")
    notification = await db.get(Notification, notification_id)
    if not notification:
        raise NotFound("Notification not found.", reason="notification_not_found")

    recipient_count = await db.scalar(
        select(func.count(NotificationRecipient.id)).where(
            NotificationRecipient.notification_id == notification.id
        )
    ) or 0
    await db.delete(notification)
    await db.commit()
    logger.info(
        "Notification %s deleted by %s (%d recipient rows removed)",
        notification_id, actor.id, recipient_count,
    )
    return recipient_count


async def list_sent(
    db: AsyncSession,
    actor: User,
    event_id: Optional[UUID] = None,
    page: int = 1,
    page_size: int = 10,
) -> Page:
    """Every notification, newest first, with delivery and read statistics."""
    ensure_admin(actor, "list_sent_notifications")
    recipients = (
        select(
            NotificationRecipient.notification_id.label("notification_id"),
            func.count(NotificationRecipient.id).label("recipient_count"),
            func.sum(case((NotificationRecipient.is_read.is_(True), 1), else_=0)).label("read_count"),
        )
        .group_by(NotificationRecipient.notification_id)
        .subquery()
    )
    query = (
        select(
            Notification,
            Event.title.label("event_title"),
            func.coalesce(recipients.c.recipient_count, 0),
            func.coalesce(recipients.c.read_count, 0),
        )
        .outerjoin(Event, Event.id == Notification.event_id)
        .outerjoin(recipients, recipients.c.notification_id == Notification.id)
    )
    if event_id is not None:
        query = query.where(Notification.event_id == event_id)
    query = query.order_by(Notification.sent_at.desc(), Notification.id)

    result = await paginate(db, query, page, page_size, scalars=False)
    result.items = [
        SentEntry(
            notification=n,
            event_title=event_title,
            recipient_count=int(total),
            read_count=int(read),
        )
        for n, event_title, total, read in result.items
    ]
    return result


# ── Receiving ─────────────────────────────────────────────────

async def list_inbox(
    db: AsyncSession,
    user: User,
    read_filter: Optional[bool] = None,
    page: int = 1,
    page_size: int = 10,
) -> Page:
    """
    The user's notifications, newest first.
    read_filter: True → only read, False → only unread, None → all.
    """
    query = (
        select(
            Notification,
            Event.title.label("event_title"),
            NotificationRecipient.is_read,
            NotificationRecipient.read_at,
        )
        .join(NotificationRecipient, NotificationRecipient.notification_id == Notification.id)
        .outerjoin(Event, Event.id == Notification.event_id)
        .where(NotificationRecipient.user_id == user.id)
    )
    if read_filter is not None:
        query = query.where(NotificationRecipient.is_read.is_(read_filter))
    query = query.order_by(Notification.sent_at.desc(), Notification.id)

    result = await paginate(db, query, page, page_size, scalars=False)
    result.items = [
        InboxEntry(notification=n, event_title=event_title, is_read=is_read, read_at=read_at)
        for n, event_title, is_read, read_at in result.items
    ]
    return result


async def mark_read(
    db: AsyncSession, user: User, notification_id: UUID, clock: Clock
) -> ReadReceipt:
    """Idempotent: a second call returns the original read_at.

    The unread check and the write are one conditional UPDATE, so of two
    overlapping calls only the first stamps read_at.
    """
    now = clock.now()
    result = await db.execute(
        update(NotificationRecipient)
        .where(
            NotificationRecipient.notification_id == notification_id,
            NotificationRecipient.user_id == user.id,
            NotificationRecipient.is_read.is_(False),
        )
        .values(is_read=True, read_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount:
        return ReadReceipt(notification_id=notification_id, read_at=now, already_read=False)

    read_at = await db.scalar(
        select(NotificationRecipient.read_at).where(
            NotificationRecipient.notification_id == notification_id,
            NotificationRecipient.user_id == user.id,
        )
    )
    if read_at is None:
        raise NotFound("Notification not found.", reason="notification_not_found")
    return ReadReceipt(notification_id=notification_id, read_at=read_at, already_read=True)


async def mark_all_read(db: AsyncSession, user: User, clock: Clock) -> int:
    result = await db.execute(
        update(NotificationRecipient)
        .where(
            and_(
                NotificationRecipient.user_id == user.id,
                NotificationRecipient.is_read.is_(False),
            )
        )
        .values(is_read=True, read_at=clock.now())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount or 0


async def unread_count(db: AsyncSession, user: User) -> int:
    count = await db.scalar(
        select(func.count(NotificationRecipient.id)).where(
            NotificationRecipient.user_id == user.id,
            NotificationRecipient.is_read.is_(False),
        )
    )
    return count or 0
