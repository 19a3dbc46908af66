from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.avatar import Avatar
from app.models.user import User
from app.services.auth import get_user_by_username
from app.services.media import MediaStore
from app.services.permissions import Identity

logger = logging.getLogger(__name__)


async def _require_user(db: AsyncSession, username: str) -> User:
    user = await get_user_by_username(db, username)
    if user is None:
        logger.warning("User %s not found", username)
        raise ValueError("user_not_found")
    return user


async def find_avatar(db: AsyncSession, user_id: int) -> Avatar | None:
    return (await db.execute(select(Avatar).where(Avatar.user_id == user_id))).scalar_one_or_none()


async def get_profile(db: AsyncSession, actor: Identity) -> tuple[User, Avatar | None]:
    user = await _require_user(db, actor.username)
    return user, await find_avatar(db, user.id)


async def update_profile(
    db: AsyncSession,
    actor: Identity,
    *,
    first_name: str | None,
    last_name: str | None,
    phone: str | None,
) -> tuple[User, Avatar | None]:
    user = await _require_user(db, actor.username)

    user.first_name = first_name
    user.last_name = last_name
    user.phone = phone
    await db.commit()

    logger.info("Profile of %s updated", user.username)
    return user, await find_avatar(db, user.id)


async def upload_avatar(
    db: AsyncSession,
    media: MediaStore,
    actor: Identity,
    *,
    data: bytes,
    filename: str,
    content_type: str | None,
) -> Avatar:
    # Rejected before any disk or database work.
    if len(data) >= settings.avatar_max_bytes:
        logger.warning("Avatar from %s rejected: %d bytes", actor.username, len(data))
        raise ValueError("file_too_large")

    user = await _require_user(db, actor.username)
    avatar = await find_avatar(db, user.id)
    old_path = avatar.file_path if avatar is not None else None

    async with media.store(user.username, data, filename, content_type, old_path=old_path) as stored:
        if avatar is None:
            avatar = Avatar(user_id=user.id)
            db.add(avatar)
        avatar.file_path = stored.path
        avatar.file_size = stored.size
        avatar.media_type = stored.media_type
        avatar.preview = stored.preview
        await db.commit()

    logger.info("Avatar uploaded for %s", user.username)
    return avatar


async def get_avatar_for_user_id(db: AsyncSession, user_id: int) -> Avatar:
    avatar = await find_avatar(db, user_id)
    if avatar is None:
        raise ValueError("avatar_not_found")
    return avatar
