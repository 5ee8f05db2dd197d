"""
services/user/service.py
Account records for pilgrims and administrators. Tokens are issued by the
identity provider; this module only stores the accounts they refer to.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.exceptions import Conflict, InvalidState, NotFound
from shared.middleware.policy import ensure_admin
from shared.models.models import User, UserRole
from shared.utils.pagination import Page, paginate
from shared.utils.security import hash_password

logger = logging.getLogger(__name__)


async def _create(db: AsyncSession, data: dict, role: UserRole) -> User:
    email = data["email"].lower()
    taken = await db.scalar(select(User.id).where(func.lower(User.email) == email))
    if taken:
        raise Conflict("An account with this email already exists.", reason="email_taken")

    user = User(
        first_name=data["first_name"],
        last_name=data["last_name"],
        email=email,
        phone=data.get("phone"),
        password_hash=hash_password(data["password"]),
        role=role,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("An account with this email already exists.", reason="email_taken")
    await db.refresh(user)
    return user


async def register_user(db: AsyncSession, data: dict) -> User:
    """Self-service registration. Always creates a pilgrim."""
    user = await _create(db, data, UserRole.PILGRIM)
    logger.info("Pilgrim registered: %s", user.id)
    return user


async def create_user(db: AsyncSession, actor: User, data: dict, role: UserRole) -> User:
    ensure_admin(actor, "create_user")
    user = await _create(db, data, role)
    logger.info("User %s (%s) created by %s", user.id, role.value, actor.id)
    return user


async def get_user(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFound("User not found.", reason="user_not_found")
    return user


async def list_users(
    db: AsyncSession,
    actor: User,
    role: Optional[UserRole] = None,
    page: int = 1,
    page_size: int = 10,
) -> Page:
    ensure_admin(actor, "list_users")
    query = select(User)
    if role is not None:
        query = query.where(User.role == role)
    query = query.order_by(User.last_name, User.first_name, User.id)
    return await paginate(db, query, page, page_size)


async def delete_user(db: AsyncSession, actor: User, user_id: UUID) -> None:
    """
    Remove an account. Signups, favorites and notification receipts go
    with it through the foreign-key cascades.
    """
    ensure_admin(actor, "delete_user")
    if user_id == actor.id:
        raise InvalidState("You cannot delete your own account.", reason="self_delete")
    user = await get_user(db, user_id)
    await db.delete(user)
    await db.commit()
    logger.info("User %s deleted by %s", user_id, actor.id)
