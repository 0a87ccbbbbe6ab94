"""User accounts: registration, credential checks and admin role management."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tourney.database import atomic
from tourney.errors import Conflict, Forbidden, NotFound, Unauthenticated, ValidationError
from tourney.models.team import Player
from tourney.models.tournament import Registration
from tourney.models.user import User
from tourney.roles import ADMINS, Role
from tourney.security import hash_password, verify_password
from tourney.sessions import get_session_store

logger = logging.getLogger(__name__)


async def register_user(
    db: AsyncSession,
    *,
    username: str,
    email: str,
    password: str,
    role: Role = Role.user,
) -> User:
    exists = await db.scalar(select(User.id).where(User.email == email))
    if exists:
        raise Conflict("Email already in use. Try logging in.")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role.value,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        raise Unauthenticated("Invalid email or password. Please retry.")
    return user


async def create_user(
    db: AsyncSession,
    actor_role: Role,
    *,
    username: str,
    email: str,
    password: str,
    role: str,
) -> User:
    """Admin-side account creation with an explicit role."""
    new_role = Role.parse(role)
    if new_role is None:
        raise ValidationError("Invalid role")
    if actor_role is Role.admin and new_role in ADMINS:
        raise Forbidden("Admin cannot create admin users")
    if new_role is Role.super_admin:
        raise Forbidden("Cannot create SuperAdmin users")
    return await register_user(db, username=username, email=email, password=password, role=new_role)


async def list_users(db: AsyncSession, search: Optional[str] = None) -> List[User]:
    stmt = select(User).order_by(User.id)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(User.username.ilike(pattern), User.email.ilike(pattern)))
    return list((await db.execute(stmt)).scalars().all())


def check_role_change(
    *,
    actor_id: int,
    actor_role: Role,
    target_id: int,
    target_role: Role,
    new_role: Role,
) -> None:
    """Raise ``Forbidden`` for the first rule the requested change breaks.

    SuperAdmin and self-modification checks come before the escalation
    checks so callers always get the same message for the same request.
    """
    if target_role is Role.super_admin:
        raise Forbidden("Cannot modify SuperAdmin users")
    if actor_role is Role.admin and target_role is Role.admin:
        if actor_id == target_id:
            raise Forbidden("Cannot change your own role")
        raise Forbidden("Admins cannot modify other Admins")
    if new_role is Role.super_admin:
        raise Forbidden("Cannot assign SuperAdmin role")
    if actor_role is Role.admin and new_role in ADMINS:
        raise Forbidden("Admin cannot assign admin roles")
    if actor_id == target_id:
        raise Forbidden("Cannot change your own role")


def check_deletion(*, actor_id: int, actor_role: Role, target_id: int, target_role: Role) -> None:
    if target_role is Role.super_admin:
        raise Forbidden("Cannot delete SuperAdmin users")
    if actor_role is Role.admin and target_role is Role.admin:
        if actor_id == target_id:
            raise Forbidden("Cannot delete yourself")
        raise Forbidden("Admins cannot delete other Admins")
    if actor_id == target_id:
        raise Forbidden("Cannot delete yourself")


async def change_role(
    db: AsyncSession,
    *,
    actor_id: int,
    actor_role: Role,
    target_id: int,
    role: str,
) -> User:
    new_role = Role.parse(role)
    if new_role is None:
        raise ValidationError("Invalid role")

    target = await db.get(User, target_id)
    if target is None:
        raise NotFound("User not found")

    previous = target.role_enum
    try:
        check_role_change(
            actor_id=actor_id,
            actor_role=actor_role,
            target_id=target_id,
            target_role=previous,
            new_role=new_role,
        )
    except Forbidden as exc:
        logger.warning("Role change refused for user %s by user %s: %s", target_id, actor_id, exc.message)
        raise

    detached_from = target.team_id
    async with atomic(db):
        target.role = new_role.value
        # A plain User holds no team; otherwise they could neither leave nor join.
        if new_role is Role.user:
            await db.execute(delete(Player).where(Player.user_id == target_id))
            target.team_id = None
    await get_session_store().update_role(target_id, new_role)

    if new_role is Role.user and detached_from is not None:
        logger.info("User %s detached from team %s by role change", target_id, detached_from)

    logger.info("User %s changed role of user %s from %s to %s", actor_id, target_id, previous.value, new_role.value)
    return target


async def delete_user(db: AsyncSession, *, actor_id: int, actor_role: Role, target_id: int) -> None:
    target = await db.get(User, target_id)
    if target is None:
        raise NotFound("User not found")

    try:
        check_deletion(
            actor_id=actor_id,
            actor_role=actor_role,
            target_id=target_id,
            target_role=target.role_enum,
        )
    except Forbidden as exc:
        logger.warning("Deletion refused for user %s by user %s: %s", target_id, actor_id, exc.message)
        raise

    async with atomic(db):
        await db.execute(delete(Player).where(Player.user_id == target_id))
        await db.execute(delete(Registration).where(Registration.user_id == target_id))
        await db.execute(delete(User).where(User.id == target_id))
    await get_session_store().revoke_user(target_id)

    logger.info("User %s deleted user %s", actor_id, target_id)


async def refresh_session_roles(db: AsyncSession, user_ids: Iterable[int]) -> None:
    """Copy stored roles into the live sessions of ``user_ids``."""
    ids = sorted(set(user_ids))
    if not ids:
        return
    store = get_session_store()
    rows = await db.execute(select(User.id, User.role).where(User.id.in_(ids)))
    for user_id, role in rows.all():
        await store.update_role(user_id, Role(role))


__all__ = [
    "refresh_session_roles",
    "register_user",
    "authenticate",
    "create_user",
    "list_users",
    "check_role_change",
    "check_deletion",
    "change_role",
    "delete_user",
]
