"""
services/user/router.py
Registration, the current profile and admin account management.
"""

from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from services.user import service
from shared.middleware.auth import get_current_user
from shared.models.models import User, UserRole
from shared.schemas.schemas import (
    AdminUserCreateRequest,
    MessageResponse,
    PaginatedResponse,
    UserRegisterRequest,
    UserResponse,
)

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(data: UserRegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a pilgrim account. 409 with reason `email_taken` on duplicates."""
    user = await service.register_user(db, data.model_dump())
    return UserResponse.model_validate(user)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Return the currently authenticated user's profile."""
    return UserResponse.model_validate(current_user)


@router.get("", response_model=PaginatedResponse)
async def list_users(
    role: Optional[Literal["PILGRIM", "ADMIN"]] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await service.list_users(
        db, current_user,
        role=UserRole(role) if role else None,
        page=page, page_size=page_size,
    )
    return PaginatedResponse(
        items=[UserResponse.model_validate(u) for u in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


@router.post("/admin", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: AdminUserCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create an account with any role (admin)."""
    user = await service.create_user(db, current_user, data.model_dump(), UserRole(data.role))
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await service.delete_user(db, current_user, user_id)
    return MessageResponse(message="User deleted")
