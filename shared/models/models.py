"""
shared/models/models.py
All SQLAlchemy ORM models for the Magal pilgrim events platform.
UUID primary keys throughout; timestamps are timezone-aware UTC.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from config.database import Base


class UTCDateTime(TypeDecorator):
    """
    DateTime(timezone=True) that always loads as an aware UTC datetime.
    SQLite drops tzinfo on the way out; PostgreSQL keeps it.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
            if dialect.name == "sqlite":
                value = value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Enumerations ──────────────────────────────────────────────

class UserRole(str, PyEnum):
    PILGRIM = "PILGRIM"
    ADMIN = "ADMIN"


class PointType(str, PyEnum):
    MOSQUE = "MOSQUE"
    HEALTH = "HEALTH"
    LODGING = "LODGING"
    FOOD = "FOOD"
    TRANSPORT = "TRANSPORT"
    OTHER = "OTHER"


POINT_TYPE_LABELS = {
    PointType.MOSQUE: "Mosque",
    PointType.HEALTH: "Health centre",
    PointType.LODGING: "Lodging",
    PointType.FOOD: "Food",
    PointType.TRANSPORT: "Transport",
    PointType.OTHER: "Other",
}


# ── Mixins ────────────────────────────────────────────────────

class TimestampMixin:
    """Adds created_at and updated_at to any model."""
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=_utcnow, onupdate=_utcnow, nullable=False
    )


# ── Models ────────────────────────────────────────────────────

class User(TimestampMixin, Base):
    """A pilgrim or an administrator."""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole), nullable=False, default=UserRole.PILGRIM
    )

    signups: Mapped[List["Signup"]] = relationship(
        back_populates="user", passive_deletes=True
    )
    favorites: Mapped[List["Favorite"]] = relationship(
        back_populates="user", passive_deletes=True
    )

    __table_args__ = (Index("ix_users_role", "role"),)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


class Event(TimestampMixin, Base):
    """
    A festival event. max_capacity=None means unlimited seats.
    Capacity is checked at signup time only; lowering it later does not
    evict anyone.
    """
    __tablename__ = "events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    starts_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    max_capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    signups: Mapped[List["Signup"]] = relationship(
        back_populates="event", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint(
            "max_capacity IS NULL OR max_capacity > 0", name="ck_event_capacity_positive"
        ),
        Index("ix_events_starts_at", "starts_at"),
        Index("ix_events_active_starts_at", "is_active", "starts_at"),
    )

    def __repr__(self) -> str:
        return f"<Event {self.title} @ {self.starts_at}>"


class Signup(Base):
    """A user's registration for an event. Hard-deleted on cancel."""
    __tablename__ = "signups"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    signed_up_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    user: Mapped["User"] = relationship(back_populates="signups")
    event: Mapped["Event"] = relationship(back_populates="signups")

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_signup_user_event"),
        Index("ix_signups_event_id", "event_id"),
    )


class PointOfInterest(TimestampMixin, Base):
    """Mosques, health centres, lodging etc. shown on the pilgrim map."""
    __tablename__ = "points_of_interest"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[PointType] = mapped_column(Enum(PointType), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    emergency_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    favorites: Mapped[List["Favorite"]] = relationship(
        back_populates="point", passive_deletes=True
    )

    __table_args__ = (Index("ix_points_type_name", "type", "name"),)

    @property
    def type_label(self) -> str:
        return POINT_TYPE_LABELS.get(self.type, "Unknown")


class Favorite(Base):
    """A user's bookmark on a point of interest. Hard-deleted on remove."""
    __tablename__ = "favorites"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    point_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("points_of_interest.id", ondelete="CASCADE"), nullable=False
    )
    added_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    user: Mapped["User"] = relationship(back_populates="favorites")
    point: Mapped["PointOfInterest"] = relationship(back_populates="favorites")

    __table_args__ = (
        UniqueConstraint("user_id", "point_id", name="uq_favorite_user_point"),
        Index("ix_favorites_point_id", "point_id"),
    )


class Notification(Base):
    """
    A broadcast message. Immutable once sent; recipients are materialized
    in NotificationRecipient at send time.
    """
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    event_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="SET NULL"), nullable=True
    )
    sent_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    event: Mapped[Optional["Event"]] = relationship()
    recipients: Mapped[List["NotificationRecipient"]] = relationship(
        back_populates="notification", passive_deletes=True
    )

    __table_args__ = (Index("ix_notifications_sent_at", "sent_at"),)


class NotificationRecipient(Base):
    """Per-user delivery and read state for a notification."""
    __tablename__ = "notification_recipients"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    notification_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    notification: Mapped["Notification"] = relationship(back_populates="recipients")

    __table_args__ = (
        UniqueConstraint("notification_id", "user_id", name="uq_recipient_notification_user"),
        Index("ix_recipients_user_unread", "user_id", "is_read"),
    )
