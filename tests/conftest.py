"""
tests/conftest.py
Shared fixtures: a fresh SQLite database per test, a frozen clock, an
httpx client bound to the app, and user/event/point factories.

Every fixture session commits before the test talks to the app. SQLite
transactions start with BEGIN IMMEDIATE, so a test session left holding
an open transaction would block the app's writes.
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.database import Base, build_engine, get_db
from main import app
from shared.models.models import Event, PointOfInterest, PointType, User, UserRole
from shared.utils.clock import Clock, get_clock
from shared.utils.security import create_access_token, hash_password

FROZEN_NOW = datetime(2026, 7, 1, 12, 0, tzinfo=timezone.utc)


class FrozenClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, now: datetime = FROZEN_NOW):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)

    def set(self, moment: datetime) -> None:
        self.current = moment


def auth_headers(user: User) -> dict:
    token, _ = create_access_token(str(user.id), user.role.value, user.email)
    return {"Authorization": f"Bearer {token}"}


# ── Database ───────────────────────────────────────────────────

@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest_asyncio.fixture
async def client(session_factory, clock) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ── Factories ──────────────────────────────────────────────────

async def make_user(
    db: AsyncSession,
    email: str,
    role: UserRole = UserRole.PILGRIM,
    first_name: str = "Awa",
    last_name: str = "Ndiaye",
) -> User:
    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        password_hash=hash_password("correct-horse-battery"),
        role=role,
    )
    db.add(user)
    await db.commit()
    return user


async def make_event(
    db: AsyncSession,
    starts_at: datetime,
    max_capacity: Optional[int] = 10,
    is_active: bool = True,
    title: str = "Grand Magal opening prayer",
    location: str = "Great Mosque of Touba",
) -> Event:
    event = Event(
        title=title,
        description="Collective recitation of the Quran before the festival opens.",
        starts_at=starts_at,
        location=location,
        max_capacity=max_capacity,
        is_active=is_active,
    )
    db.add(event)
    await db.commit()
    return event


async def make_point(
    db: AsyncSession,
    name: str = "Darou Marnane Health Post",
    point_type: PointType = PointType.HEALTH,
    address: Optional[str] = "Darou Marnane",
) -> PointOfInterest:
    point = PointOfInterest(name=name, type=point_type, address=address, emergency_number="15")
    db.add(point)
    await db.commit()
    return point


@pytest_asyncio.fixture
async def user(db) -> User:
    return await make_user(db, "awa.ndiaye@example.sn")


@pytest_asyncio.fixture
async def other_user(db) -> User:
    return await make_user(db, "moussa.fall@example.sn", first_name="Moussa", last_name="Fall")


@pytest_asyncio.fixture
async def admin_user(db) -> User:
    return await make_user(
        db, "admin@magaltouba.sn", role=UserRole.ADMIN, first_name="Cheikh", last_name="Mbacke"
    )


@pytest_asyncio.fixture
async def event(db, clock) -> Event:
    return await make_event(db, starts_at=clock.now() + timedelta(days=3))


@pytest_asyncio.fixture
async def point(db) -> PointOfInterest:
    return await make_point(db)
