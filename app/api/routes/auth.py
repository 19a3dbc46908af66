from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import COOKIE_NAME, get_db, get_session_id
from app.core.config import settings
from app.core.security import create_session_token
from app.schemas.auth import (
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    RegisterRequest,
)
from app.schemas.base import OkResponse
from app.services.auth import authenticate, close_session, open_session, register

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

NO_CACHE_HEADERS = {"Cache-Control": "no-cache, no-store, must-revalidate"}


def _auth_cookie_options() -> dict[str, object]:
    return {
        "httponly": True,
        "secure": settings.session_cookie_secure_value(),
        "samesite": settings.auth_cookie_samesite,
        "path": "/",
    }


def _set_session_cookie(response: Response, session_id: str, username: str) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value=create_session_token(session_id, username),
        **_auth_cookie_options(),
    )


def _clear_session_cookie(response: Response) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value="",
        max_age=0,
        expires=0,
        **_auth_cookie_options(),
    )


@router.post("/register", response_model=OkResponse, status_code=201)
async def register_route(payload: RegisterRequest, response: Response, db: AsyncSession = Depends(get_db)):
    response.headers.update(NO_CACHE_HEADERS)
    created = await register(
        db,
        username=payload.username,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
    )
    if not created:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already in use",
            headers=NO_CACHE_HEADERS,
        )
    return OkResponse(ok=True)


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    session_id: str | None = Depends(get_session_id),
):
    user = await authenticate(db, payload.username, payload.password)
    if user is None:
        logger.warning("Failed authentication attempt for user %s", payload.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers=NO_CACHE_HEADERS,
        )

    session = await open_session(db, user, previous_session_id=session_id)
    _set_session_cookie(response, session.id, user.username)
    response.headers.update(NO_CACHE_HEADERS)
    return LoginResponse(ok=True, username=user.username)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    response: Response,
    db: AsyncSession = Depends(get_db),
    session_id: str | None = Depends(get_session_id),
):
    if session_id:
        await close_session(db, session_id)
        logger.info("Session closed")
    _clear_session_cookie(response)
    response.headers.update(NO_CACHE_HEADERS)
    return LogoutResponse(ok=True)
