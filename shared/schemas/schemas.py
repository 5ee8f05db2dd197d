"""
shared/schemas/schemas.py
All Pydantic v2 request/response schemas for the platform.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


# ── Base ──────────────────────────────────────────────────────

class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class PaginatedResponse(BaseSchema):
    items: List[Any]
    total: int
    page: int
    page_size: int
    pages: int


# ── User ──────────────────────────────────────────────────────

class UserRegisterRequest(BaseSchema):
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    phone: Optional[str] = Field(None, pattern=r"^\+?[0-9]{7,15}$")


class AdminUserCreateRequest(UserRegisterRequest):
    role: Literal["PILGRIM", "ADMIN"] = "PILGRIM"


class UserResponse(BaseSchema):
    id: uuid.UUID
    first_name: str
    last_name: str
    email: EmailStr
    phone: Optional[str]
    role: str
    created_at: datetime


# ── Event ─────────────────────────────────────────────────────

def _assume_utc(v: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes from clients are taken as UTC."""
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


class EventCreateRequest(BaseSchema):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=1)
    starts_at: datetime
    location: str = Field(..., min_length=2, max_length=255)
    max_capacity: Optional[int] = Field(None, ge=1)
    is_active: bool = True
    image_url: Optional[str] = Field(None, max_length=500)

    @field_validator("starts_at")
    @classmethod
    def validate_starts_at(cls, v: datetime) -> datetime:
        return _assume_utc(v)


class EventUpdateRequest(BaseSchema):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    starts_at: Optional[datetime] = None
    location: Optional[str] = Field(None, min_length=2, max_length=255)
    max_capacity: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None
    image_url: Optional[str] = Field(None, max_length=500)

    @field_validator("starts_at")
    @classmethod
    def validate_starts_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _assume_utc(v)


class AttendeeResponse(BaseSchema):
    user_id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    signed_up_at: datetime


class EventResponse(BaseSchema):
    id: uuid.UUID
    title: str
    description: str
    starts_at: datetime
    location: str
    max_capacity: Optional[int]
    is_active: bool
    image_url: Optional[str]
    created_at: datetime
    updated_at: datetime
    # Derived
    signup_count: int = 0
    remaining_seats: Optional[int] = None
    is_full: bool = False
    viewer_signed_up: bool = False
    attendees: Optional[List[AttendeeResponse]] = None


class EventDeletedResponse(BaseSchema):
    message: str
    event_id: uuid.UUID
    signups_deleted: int


# ── Signup ────────────────────────────────────────────────────

class EventSummary(BaseSchema):
    id: uuid.UUID
    title: str
    starts_at: datetime
    location: str


class SignupResponse(BaseSchema):
    event: EventSummary
    signed_up_at: Optional[datetime]
    remaining_seats: Optional[int]


class UserSignupItem(BaseSchema):
    event_id: uuid.UUID
    title: str
    description: str
    starts_at: datetime
    location: str
    image_url: Optional[str]
    signed_up_at: datetime
    status: Literal["past", "upcoming"]


class UserSignupListResponse(BaseSchema):
    items: List[UserSignupItem]
    total: int


# ── Point of interest ─────────────────────────────────────────

PointTypeLiteral = Literal["MOSQUE", "HEALTH", "LODGING", "FOOD", "TRANSPORT", "OTHER"]


class PointCreateRequest(BaseSchema):
    name: str = Field(..., min_length=3, max_length=200)
    type: PointTypeLiteral
    address: Optional[str] = Field(None, max_length=300)
    description: Optional[str] = Field(None, max_length=1000)
    emergency_number: Optional[str] = Field(None, pattern=r"^\+?[0-9 ]{3,20}$")
    image_url: Optional[str] = Field(None, max_length=500)


class PointUpdateRequest(BaseSchema):
    name: Optional[str] = Field(None, min_length=3, max_length=200)
    type: Optional[PointTypeLiteral] = None
    address: Optional[str] = Field(None, max_length=300)
    description: Optional[str] = Field(None, max_length=1000)
    emergency_number: Optional[str] = Field(None, pattern=r"^\+?[0-9 ]{3,20}$")
    image_url: Optional[str] = Field(None, max_length=500)


class FavoritedByResponse(BaseSchema):
    user_id: uuid.UUID
    first_name: str
    last_name: str
    added_at: datetime


class PointResponse(BaseSchema):
    id: uuid.UUID
    name: str
    type: str
    type_label: str
    address: Optional[str]
    description: Optional[str]
    emergency_number: Optional[str]
    image_url: Optional[str]
    created_at: datetime
    # Derived
    favorite_count: int = 0
    viewer_favorited: bool = False
    favorited_by: Optional[List[FavoritedByResponse]] = None


class PointTypeResponse(BaseSchema):
    value: str
    label: str


class PointDeletedResponse(BaseSchema):
    message: str
    point_id: uuid.UUID
    favorites_deleted: int


# ── Favorite ──────────────────────────────────────────────────

class FavoriteResponse(BaseSchema):
    point_id: uuid.UUID
    name: str
    type: str
    type_label: str
    added_at: Optional[datetime] = None


class FavoriteItem(BaseSchema):
    point_id: uuid.UUID
    name: str
    type: str
    type_label: str
    address: Optional[str]
    description: Optional[str]
    emergency_number: Optional[str]
    image_url: Optional[str]
    added_at: datetime


class FavoriteListResponse(BaseSchema):
    items: List[FavoriteItem]
    total: int
    available_types: Dict[str, str]


# ── Notification ──────────────────────────────────────────────

class BroadcastRequest(BaseSchema):
    title: str = Field(..., min_length=5, max_length=200)
    message: str = Field(..., min_length=10, max_length=1000)


class EventBroadcastRequest(BroadcastRequest):
    event_id: uuid.UUID


class BroadcastResponse(BaseSchema):
    notification_id: uuid.UUID
    title: str
    message: str
    event_id: Optional[uuid.UUID]
    sent_at: datetime
    recipient_count: int


class InboxItem(BaseSchema):
    notification_id: uuid.UUID
    title: str
    message: str
    event_id: Optional[uuid.UUID]
    event_title: Optional[str]
    sent_at: datetime
    is_read: bool
    read_at: Optional[datetime]


class InboxResponse(BaseSchema):
    items: List[InboxItem]
    total: int
    unread: int
    page: int
    page_size: int
    pages: int


class SentNotificationItem(BaseSchema):
    notification_id: uuid.UUID
    title: str
    message: str
    event_id: Optional[uuid.UUID]
    event_title: Optional[str]
    sent_at: datetime
    recipient_count: int
    read_count: int
    read_rate: float


class ReadReceiptResponse(BaseSchema):
    notification_id: uuid.UUID
    is_read: bool
    read_at: datetime
    already_read: bool


class MarkAllReadResponse(BaseSchema):
    marked: int


class UnreadCountResponse(BaseSchema):
    unread_count: int
    has_unread: bool


class NotificationDeletedResponse(BaseSchema):
    message: str
    notification_id: uuid.UUID
    recipients_deleted: int


# ── Generic ───────────────────────────────────────────────────

class MessageResponse(BaseSchema):
    message: str
    success: bool = True


class ErrorResponse(BaseSchema):
    detail: str
    error: str
    reason: Optional[str] = None
    request_id: Optional[str] = None
