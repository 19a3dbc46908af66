from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_avatar_media, get_current_identity, get_db
from app.api.http_errors import service_error
from app.api.presenters.users import build_profile_out
from app.core.config import settings
from app.schemas.auth import PasswordChangeRequest
from app.schemas.base import OkResponse
from app.schemas.users import UserProfileResponse, UserProfileUpdateRequest
from app.services.auth import change_password
from app.services.media import MediaStore
from app.services.permissions import Identity
from app.services.users import get_profile, update_profile, upload_avatar

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserProfileResponse)
async def me(
    db: AsyncSession = Depends(get_db),
    actor: Identity = Depends(get_current_identity),
):
    try:
        user, avatar = await get_profile(db, actor)
    except ValueError as e:
        raise service_error(e) from e
    return build_profile_out(user, avatar)


@router.patch("/me", response_model=UserProfileResponse)
async def update_me(
    payload: UserProfileUpdateRequest,
    db: AsyncSession = Depends(get_db),
    actor: Identity = Depends(get_current_identity),
):
    try:
        user, avatar = await update_profile(
            db,
            actor,
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone=payload.phone,
        )
    except ValueError as e:
        raise service_error(e) from e
    return build_profile_out(user, avatar)


@router.patch("/me/image", response_model=OkResponse)
async def upload_my_avatar(
    image: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    media: MediaStore = Depends(get_avatar_media),
    actor: Identity = Depends(get_current_identity),
):
    if image.size is not None and image.size >= settings.avatar_max_bytes:
        raise service_error(ValueError("file_too_large"))
    try:
        await upload_avatar(
            db,
            media,
            actor,
            # Enough to tell an oversized upload apart; the service rejects it.
            data=await image.read(settings.avatar_max_bytes),
            filename=image.filename or "",
            content_type=image.content_type,
        )
    except ValueError as e:
        await db.rollback()
        raise service_error(e) from e
    return OkResponse(ok=True)


@router.post("/set_password", response_model=OkResponse)
async def set_password(
    payload: PasswordChangeRequest,
    db: AsyncSession = Depends(get_db),
    actor: Identity = Depends(get_current_identity),
):
    changed = await change_password(db, actor.username, payload.current_password, payload.new_password)
    if not changed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Current password is incorrect")
    return OkResponse(ok=True)
