from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_ad_media, get_avatar_media, get_db
from app.api.http_errors import service_error
from app.services.ads import get_ad
from app.services.media import MediaStore
from app.services.users import get_avatar_for_user_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["images"])


async def _image_response(
    media: MediaStore,
    *,
    file_path: str | None,
    media_type: str | None,
    preview: bytes | None,
    want_preview: bool,
) -> Response:
    if want_preview:
        content = preview
    else:
        content = await media.read_async(file_path)
    if content is None:
        raise HTTPException(status_code=404, detail="Image not found")
    return Response(content=content, media_type=media_type or "application/octet-stream")


@router.get("/ads/{ad_id}/image")
async def ad_image(
    ad_id: int,
    preview: bool = False,
    db: AsyncSession = Depends(get_db),
    media: MediaStore = Depends(get_ad_media),
):
    try:
        ad = await get_ad(db, ad_id)
    except ValueError as e:
        raise service_error(e) from e
    logger.debug("Serving image for ad %s", ad_id)
    return await _image_response(
        media,
        file_path=ad.file_path,
        media_type=ad.media_type,
        preview=ad.preview,
        want_preview=preview,
    )


@router.get("/users/{user_id}/avatar")
async def user_avatar(
    user_id: int,
    preview: bool = False,
    db: AsyncSession = Depends(get_db),
    media: MediaStore = Depends(get_avatar_media),
):
    try:
        avatar = await get_avatar_for_user_id(db, user_id)
    except ValueError as e:
        raise service_error(e) from e
    logger.debug("Serving avatar for user %s", user_id)
    return await _image_response(
        media,
        file_path=avatar.file_path,
        media_type=avatar.media_type,
        preview=avatar.preview,
        want_preview=preview,
    )
