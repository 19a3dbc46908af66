from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import decode_session_token
from app.db.session import get_db_session
from app.services.auth import authenticate, resolve_session
from app.services.media import MediaStore
from app.services.permissions import Identity

COOKIE_NAME = "SESSION"

_basic_auth = HTTPBasic(auto_error=False)


async def get_db(session: AsyncSession = Depends(get_db_session)) -> AsyncGenerator[AsyncSession, None]:
    yield session


def get_ad_media() -> MediaStore:
    return MediaStore(settings.ads_dir, preview_width=settings.preview_width)


def get_avatar_media() -> MediaStore:
    return MediaStore(settings.avatars_dir, preview_width=settings.preview_width)


def get_session_id(session_cookie: str | None = Cookie(default=None, alias=COOKIE_NAME)) -> str | None:
    if not session_cookie:
        return None
    session_id, _ = decode_session_token(session_cookie)
    return session_id


async def get_optional_identity(
    db: AsyncSession = Depends(get_db),
    session_id: str | None = Depends(get_session_id),
    credentials: HTTPBasicCredentials | None = Depends(_basic_auth),
) -> Identity | None:
    if session_id:
        resolved = await resolve_session(db, session_id)
        if resolved is not None:
            _, user = resolved
            return Identity.from_user(user)

    # Stateless fallback: Basic credentials authenticate this request only.
    if credentials is not None:
        user = await authenticate(db, credentials.username, credentials.password)
        if user is not None:
            return Identity.from_user(user)

    return None


async def get_current_identity(identity: Identity | None = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return identity
