"""
tests/test_policy.py
Role checks: every shared-data mutation is refused to pilgrims before any
state is read or written.
"""

import uuid

import pytest
from httpx import AsyncClient

from shared.exceptions import PolicyDenied
from shared.middleware.policy import ensure_admin, is_admin
from shared.models.models import Event, PointOfInterest, User, UserRole
from tests.conftest import auth_headers


def test_ensure_admin():
    admin = User(email="a@example.sn", role=UserRole.ADMIN)
    pilgrim = User(email="p@example.sn", role=UserRole.PILGRIM)
    assert is_admin(admin)
    ensure_admin(admin, "delete_event")

    with pytest.raises(PolicyDenied) as exc:
        ensure_admin(pilgrim, "delete_event")
    assert exc.value.reason == "delete_event"
    assert exc.value.status_code == 403


@pytest.mark.asyncio
async def test_pilgrim_is_denied_every_admin_route(
    client: AsyncClient, user: User, event: Event, point: PointOfInterest
):
    headers = auth_headers(user)
    calls = [
        ("POST", "/events", {"title": "x" * 5, "description": "d", "starts_at": "2026-08-01T10:00:00Z", "location": "Touba"}),
        ("PATCH", f"/events/{event.id}", {"title": "Renamed event"}),
        ("DELETE", f"/events/{event.id}", None),
        ("POST", "/points", {"name": "Tent 12", "type": "LODGING"}),
        ("PATCH", f"/points/{point.id}", {"name": "Renamed point"}),
        ("DELETE", f"/points/{point.id}", None),
        ("POST", "/notifications/broadcast/event", {"title": "Hello all", "message": "A message for you.", "event_id": str(event.id)}),
        ("DELETE", f"/notifications/{uuid.uuid4()}", None),
        ("DELETE", f"/users/{uuid.uuid4()}", None),
    ]
    for method, url, body in calls:
        response = await client.request(method, url, headers=headers, json=body)
        assert response.status_code == 403, (method, url, response.text)
        assert response.json()["error"] == "policy_denied"

    # Nothing changed
    detail = (await client.get(f"/events/{event.id}", headers=headers)).json()
    assert detail["title"] == event.title
    assert (await client.get(f"/points/{point.id}", headers=headers)).status_code == 200
