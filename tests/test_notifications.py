"""
tests/test_notifications.py
Broadcast fan-out, the pilgrim inbox and read tracking.
"""

import asyncio
import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from services.notification import service
from shared.models.models import Event, Notification, NotificationRecipient, User
from tests.conftest import FrozenClock, auth_headers, make_user

BROADCAST = {"title": "Welcome to Touba", "message": "The festival programme is now online."}


async def _broadcast(client: AsyncClient, admin: User, **overrides) -> dict:
    response = await client.post(
        "/notifications/broadcast", headers=auth_headers(admin), json={**BROADCAST, **overrides}
    )
    assert response.status_code == 201
    return response.json()


# ── Broadcasting ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_broadcast_reaches_every_pilgrim(
    client: AsyncClient, db: AsyncSession, admin_user: User, user: User, other_user: User
):
    data = await _broadcast(client, admin_user)
    assert data["recipient_count"] == 2
    assert data["event_id"] is None

    rows = await db.scalar(
        select(func.count(NotificationRecipient.id)).where(
            NotificationRecipient.notification_id == uuid.UUID(data["notification_id"])
        )
    )
    await db.commit()
    assert rows == 2

    for pilgrim in (user, other_user):
        inbox = (await client.get("/notifications", headers=auth_headers(pilgrim))).json()
        assert inbox["total"] == 1
        assert inbox["unread"] == 1
        assert inbox["items"][0]["title"] == BROADCAST["title"]


@pytest.mark.asyncio
async def test_broadcast_with_no_pilgrims_records_zero_recipients(
    client: AsyncClient, admin_user: User
):
    data = await _broadcast(client, admin_user)
    assert data["recipient_count"] == 0

    sent = (await client.get("/notifications", headers=auth_headers(admin_user))).json()
    assert sent["total"] == 1
    assert sent["items"][0]["recipient_count"] == 0
    assert sent["items"][0]["read_rate"] == 0.0


@pytest.mark.asyncio
async def test_recipients_are_a_snapshot(
    client: AsyncClient, db: AsyncSession, admin_user: User, user: User
):
    await _broadcast(client, admin_user)
    latecomer = await make_user(db, "late.arrival@example.sn")

    inbox = (await client.get("/notifications", headers=auth_headers(latecomer))).json()
    assert inbox["total"] == 0


@pytest.mark.asyncio
async def test_broadcast_validation(client: AsyncClient, admin_user: User):
    response = await client.post(
        "/notifications/broadcast",
        headers=auth_headers(admin_user),
        json={"title": "Hi", "message": "too short"},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_event_broadcast_targets_attendees_only(
    client: AsyncClient, admin_user: User, user: User, other_user: User, event: Event
):
    await client.post(f"/events/{event.id}/signup", headers=auth_headers(user))
    response = await client.post(
        "/notifications/broadcast/event",
        headers=auth_headers(admin_user),
        json={**BROADCAST, "event_id": str(event.id)},
    )
    assert response.status_code == 201
    assert response.json()["recipient_count"] == 1

    attendee_inbox = (await client.get("/notifications", headers=auth_headers(user))).json()
    assert attendee_inbox["items"][0]["event_title"] == event.title
    bystander_inbox = (await client.get("/notifications", headers=auth_headers(other_user))).json()
    assert bystander_inbox["total"] == 0


@pytest.mark.asyncio
async def test_event_broadcast_without_signups(client: AsyncClient, admin_user: User, event: Event):
    response = await client.post(
        "/notifications/broadcast/event",
        headers=auth_headers(admin_user),
        json={**BROADCAST, "event_id": str(event.id)},
    )
    assert response.status_code == 400
    assert response.json()["reason"] == "no_recipients"

    sent = (await client.get("/notifications", headers=auth_headers(admin_user))).json()
    assert sent["total"] == 0


@pytest.mark.asyncio
async def test_event_broadcast_unknown_event(client: AsyncClient, admin_user: User):
    response = await client.post(
        "/notifications/broadcast/event",
        headers=auth_headers(admin_user),
        json={**BROADCAST, "event_id": str(uuid.uuid4())},
    )
    assert response.status_code == 404


# ── Read tracking ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_mark_read_is_idempotent(client: AsyncClient, admin_user: User, user: User, clock):
    notification_id = (await _broadcast(client, admin_user))["notification_id"]
    headers = auth_headers(user)

    first = await client.post(f"/notifications/{notification_id}/read", headers=headers)
    assert first.status_code == 200
    assert first.json()["already_read"] is False

    clock.advance(hours=1)
    second = await client.post(f"/notifications/{notification_id}/read", headers=headers)
    assert second.status_code == 200
    assert second.json()["already_read"] is True
    assert second.json()["read_at"] == first.json()["read_at"]

    count = (await client.get("/notifications/unread-count", headers=headers)).json()
    assert count == {"unread_count": 0, "has_unread": False}


@pytest.mark.asyncio
async def test_mark_read_someone_elses_notification(
    client: AsyncClient, db: AsyncSession, admin_user: User, user: User
):
    notification_id = (await _broadcast(client, admin_user))["notification_id"]
    latecomer = await make_user(db, "late.arrival@example.sn")
    response = await client.post(
        f"/notifications/{notification_id}/read", headers=auth_headers(latecomer)
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_mark_all_read(client: AsyncClient, admin_user: User, user: User):
    for i in range(3):
        await _broadcast(client, admin_user, title=f"Announcement {i}")
    headers = auth_headers(user)

    assert (await client.get("/notifications/unread-count", headers=headers)).json()["unread_count"] == 3

    marked = await client.post("/notifications/read-all", headers=headers)
    assert marked.json() == {"marked": 3}
    again = await client.post("/notifications/read-all", headers=headers)
    assert again.json() == {"marked": 0}

    unread = (await client.get("/notifications?read=false", headers=headers)).json()
    assert unread["total"] == 0
    read = (await client.get("/notifications?read=true", headers=headers)).json()
    assert read["total"] == 3


@pytest.mark.asyncio
async def test_inbox_newest_first(client: AsyncClient, admin_user: User, user: User, clock):
    await _broadcast(client, admin_user, title="First notice")
    clock.advance(minutes=10)
    await _broadcast(client, admin_user, title="Second notice")

    inbox = (await client.get("/notifications", headers=auth_headers(user))).json()
    assert [i["title"] for i in inbox["items"]] == ["Second notice", "First notice"]


# ── Admin views ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_sent_list_read_rate(
    client: AsyncClient, db: AsyncSession, admin_user: User, user: User, other_user: User
):
    await make_user(db, "third.pilgrim@example.sn")
    notification_id = (await _broadcast(client, admin_user))["notification_id"]
    await client.post(f"/notifications/{notification_id}/read", headers=auth_headers(user))

    sent = (await client.get("/notifications", headers=auth_headers(admin_user))).json()
    item = sent["items"][0]
    assert item["recipient_count"] == 3
    assert item["read_count"] == 1
    assert item["read_rate"] == 33.3


@pytest.mark.asyncio
async def test_sent_list_filtered_by_event(
    client: AsyncClient, admin_user: User, user: User, event: Event
):
    await _broadcast(client, admin_user)
    await client.post(f"/events/{event.id}/signup", headers=auth_headers(user))
    await client.post(
        "/notifications/broadcast/event",
        headers=auth_headers(admin_user),
        json={**BROADCAST, "event_id": str(event.id)},
    )

    everything = (await client.get("/notifications", headers=auth_headers(admin_user))).json()
    assert everything["total"] == 2
    filtered = (
        await client.get(f"/notifications?event_id={event.id}", headers=auth_headers(admin_user))
    ).json()
    assert filtered["total"] == 1
    assert filtered["items"][0]["event_title"] == event.title


@pytest.mark.asyncio
async def test_delete_notification_reports_recipients(
    client: AsyncClient, admin_user: User, user: User, other_user: User
):
    notification_id = (await _broadcast(client, admin_user))["notification_id"]

    response = await client.delete(
        f"/notifications/{notification_id}", headers=auth_headers(admin_user)
    )
    assert response.status_code == 200
    assert response.json()["recipients_deleted"] == 2

    inbox = (await client.get("/notifications", headers=auth_headers(user))).json()
    assert inbox["total"] == 0


@pytest.mark.asyncio
async def test_pilgrim_cannot_broadcast_or_delete(
    client: AsyncClient, admin_user: User, user: User
):
    denied = await client.post(
        "/notifications/broadcast", headers=auth_headers(user), json=BROADCAST
    )
    assert denied.status_code == 403
    assert denied.json()["reason"] == "broadcast_to_all"

    notification_id = (await _broadcast(client, admin_user))["notification_id"]
    response = await client.delete(f"/notifications/{notification_id}", headers=auth_headers(user))
    assert response.status_code == 403


# ── Service layer ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_service_broadcast_read_and_delete(
    db: AsyncSession, admin_user: User, user: User, other_user: User, clock
):
    broadcast = await service.broadcast_to_all(
        db, admin_user, BROADCAST["title"], BROADCAST["message"], clock
    )
    assert broadcast.recipient_count == 2
    assert broadcast.notification.sent_at == clock.now()

    clock.advance(minutes=1)
    receipt = await service.mark_read(db, user, broadcast.notification.id, clock)
    assert receipt.already_read is False
    assert await service.unread_count(db, user) == 0
    assert await service.unread_count(db, other_user) == 1
    await db.commit()

    page = await service.list_sent(db, admin_user)
    assert page.items[0].read_rate == 50.0
    await db.commit()

    assert await service.delete_notification(db, admin_user, broadcast.notification.id) == 2


@pytest.mark.asyncio
async def test_failed_fan_out_leaves_nothing_behind(db: AsyncSession, user: User, clock):
    # The same pilgrim twice trips the (notification, user) unique constraint
    with pytest.raises(IntegrityError):
        await service._fan_out(db, "Duplicate", "Sent twice to one pilgrim.", [user.id, user.id], clock)
    await db.rollback()

    notifications = await db.scalar(select(func.count(Notification.id)))
    recipients = await db.scalar(select(func.count(NotificationRecipient.id)))
    await db.commit()
    assert (notifications, recipients) == (0, 0)


@pytest.mark.asyncio
async def test_overlapping_mark_read_keeps_first_read_at(
    session_factory, admin_user: User, user: User, clock
):
    async with session_factory() as session:
        broadcast = await service.broadcast_to_all(
            session, admin_user, BROADCAST["title"], BROADCAST["message"], clock
        )
    notification_id = broadcast.notification.id
    later = FrozenClock(clock.now() + timedelta(minutes=5))

    async def read(at):
        async with session_factory() as session:
            return await service.mark_read(session, user, notification_id, at)

    first, second = await asyncio.gather(read(clock), read(later))
    assert sorted([first.already_read, second.already_read]) == [False, True]
    assert first.read_at == second.read_at
