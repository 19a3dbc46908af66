from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

import sqlalchemy as sa
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import hash_password, verify_password
from app.models.user import Role, User
from app.models.user_session import UserSession

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    return (await db.execute(select(User).where(User.username == username))).scalar_one_or_none()


async def register(
    db: AsyncSession,
    *,
    username: str,
    password: str,
    first_name: str | None,
    last_name: str | None,
    phone: str | None,
) -> bool:
    if await get_user_by_username(db, username) is not None:
        logger.warning("Registration refused, username %s already taken", username)
        return False

    db.add(
        User(
            username=username,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            role=Role.USER,
        )
    )
    await db.commit()
    logger.info("User %s registered", username)
    return True


async def authenticate(db: AsyncSession, username: str, password: str) -> User | None:
    user = await get_user_by_username(db, username)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


async def open_session(db: AsyncSession, user: User, previous_session_id: str | None = None) -> UserSession:
    """Start a fresh session for ``user``.

    Drops the session the request arrived with (whoever it belonged to) and
    any other session of this user, so a user has at most one live session.
    """
    conditions = [UserSession.user_id == user.id]
    if previous_session_id:
        conditions.append(UserSession.id == previous_session_id)
    await db.execute(sa.delete(UserSession).where(sa.or_(*conditions)))

    now = _now_utc()
    session = UserSession(
        id=secrets.token_urlsafe(32),
        user_id=user.id,
        created_at=now,
        expires_at=now + timedelta(minutes=settings.session_expire_minutes),
    )
    db.add(session)
    await db.commit()
    logger.info("User %s logged in", user.username)
    return session


async def resolve_session(db: AsyncSession, session_id: str) -> tuple[UserSession, User] | None:
    row = (
        await db.execute(
            select(UserSession, User)
            .join(User, User.id == UserSession.user_id)
            .where(UserSession.id == session_id)
        )
    ).one_or_none()
    if row is None:
        return None

    session, user = row
    now = _now_utc()
    if _as_aware(session.expires_at) <= now:
        await db.delete(session)
        await db.commit()
        logger.info("Session for %s expired", user.username)
        return None

    # Idle timeout: every authenticated request pushes the deadline forward.
    session.expires_at = now + timedelta(minutes=settings.session_expire_minutes)
    await db.commit()
    return session, user


async def close_session(db: AsyncSession, session_id: str) -> None:
    await db.execute(sa.delete(UserSession).where(UserSession.id == session_id))
    await db.commit()


async def change_password(db: AsyncSession, username: str, current_password: str, new_password: str) -> bool:
    user = await authenticate(db, username, current_password)
    if user is None:
        logger.warning("Password change refused for %s", username)
        return False

    user.password_hash = hash_password(new_password)
    await db.commit()
    logger.info("Password changed for %s", username)
    return True
