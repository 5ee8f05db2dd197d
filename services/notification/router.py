"""
services/notification/router.py
Broadcasts from administrators and the pilgrim inbox with read tracking.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from services.notification import service
from shared.middleware.auth import get_current_user
from shared.middleware.policy import is_admin
from shared.models.models import User
from shared.schemas.schemas import (
    BroadcastRequest,
    BroadcastResponse,
    EventBroadcastRequest,
    InboxItem,
    InboxResponse,
    MarkAllReadResponse,
    NotificationDeletedResponse,
    PaginatedResponse,
    ReadReceiptResponse,
    SentNotificationItem,
    UnreadCountResponse,
)
from shared.utils.clock import Clock, get_clock

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _broadcast_response(broadcast: service.Broadcast) -> BroadcastResponse:
    n = broadcast.notification
    return BroadcastResponse(
        notification_id=n.id,
        title=n.title,
        message=n.message,
        event_id=n.event_id,
        sent_at=n.sent_at,
        recipient_count=broadcast.recipient_count,
    )


# ── Listing ───────────────────────────────────────────────────

@router.get("")
async def list_notifications(
    read: Optional[bool] = Query(None, description="Inbox only: true = read, false = unread"),
    event_id: Optional[UUID] = Query(None, description="Sent list only: filter by event"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Pilgrims get their inbox with the unread count.
    Administrators get every sent notification with read statistics.
    """
    if is_admin(current_user):
        result = await service.list_sent(
            db, current_user, event_id=event_id, page=page, page_size=page_size
        )
        return PaginatedResponse(
            items=[
                SentNotificationItem(
                    notification_id=e.notification.id,
                    title=e.notification.title,
                    message=e.notification.message,
                    event_id=e.notification.event_id,
                    event_title=e.event_title,
                    sent_at=e.notification.sent_at,
                    recipient_count=e.recipient_count,
                    read_count=e.read_count,
                    read_rate=e.read_rate,
                )
                for e in result.items
            ],
            total=result.total,
            page=result.page,
            page_size=result.page_size,
            pages=result.pages,
        )

    result = await service.list_inbox(
        db, current_user, read_filter=read, page=page, page_size=page_size
    )
    return InboxResponse(
        items=[
            InboxItem(
                notification_id=e.notification.id,
                title=e.notification.title,
                message=e.notification.message,
                event_id=e.notification.event_id,
                event_title=e.event_title,
                sent_at=e.notification.sent_at,
                is_read=e.is_read,
                read_at=e.read_at,
            )
            for e in result.items
        ],
        total=result.total,
        unread=await service.unread_count(db, current_user),
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await service.unread_count(db, current_user)
    return UnreadCountResponse(unread_count=count, has_unread=count > 0)


# ── Broadcasts (admin) ────────────────────────────────────────

@router.post("/broadcast", response_model=BroadcastResponse, status_code=status.HTTP_201_CREATED)
async def broadcast_to_all(
    data: BroadcastRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Send a notification to every pilgrim account."""
    broadcast = await service.broadcast_to_all(db, current_user, data.title, data.message, clock)
    return _broadcast_response(broadcast)


@router.post(
    "/broadcast/event", response_model=BroadcastResponse, status_code=status.HTTP_201_CREATED
)
async def broadcast_to_event(
    data: EventBroadcastRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Send a notification to everyone signed up for an event. 400 if nobody is."""
    broadcast = await service.broadcast_to_event_attendees(
        db, current_user, data.title, data.message, data.event_id, clock
    )
    return _broadcast_response(broadcast)


# ── Read tracking ─────────────────────────────────────────────

@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return MarkAllReadResponse(marked=await service.mark_all_read(db, current_user, clock))


@router.post("/{notification_id}/read", response_model=ReadReceiptResponse)
async def mark_read(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Mark one notification read. Calling it again keeps the first read_at."""
    receipt = await service.mark_read(db, current_user, notification_id, clock)
    return ReadReceiptResponse(
        notification_id=receipt.notification_id,
        is_read=True,
        read_at=receipt.read_at,
        already_read=receipt.already_read,
    )


@router.delete("/{notification_id}", response_model=NotificationDeletedResponse)
async def delete_notification(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    recipients_deleted = await service.delete_notification(db, current_user, notification_id)
    return NotificationDeletedResponse(
        message="Notification deleted",
        notification_id=notification_id,
        recipients_deleted=recipients_deleted,
    )
