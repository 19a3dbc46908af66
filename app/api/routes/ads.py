from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_ad_media, get_current_identity, get_db
from app.api.http_errors import permission_error, service_error
from app.api.presenters.ads import build_ad_full_out, build_ads_out
from app.schemas.ads import AdCreateRequest, AdFullResponse, AdsResponse, AdUpdateRequest
from app.schemas.base import OkResponse
from app.services.ads import (
    create_ad,
    delete_ad,
    get_ad,
    list_ads,
    list_ads_for_owner,
    replace_ad_image,
    update_ad,
)
from app.services.media import MediaStore
from app.services.permissions import Identity

router = APIRouter(prefix="/ads", tags=["ads"])


def _is_upload_file(obj: object) -> bool:
    return hasattr(obj, "read") and callable(getattr(obj, "read", None)) and hasattr(obj, "filename")


async def _read_properties(request: Request) -> AdCreateRequest:
    """Parse the ``properties`` JSON part of a multipart ad submission.

    Browsers send it either as a plain form field or as a JSON blob with a
    filename, so both shapes are accepted.
    """
    form = await request.form()
    raw = form.get("properties")
    if raw is None:
        raise HTTPException(status_code=422, detail="Missing 'properties' part")
    if _is_upload_file(raw):
        raw = await raw.read()
    try:
        return AdCreateRequest.model_validate_json(raw)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False)) from e


@router.get("", response_model=AdsResponse)
async def list_ads_route(db: AsyncSession = Depends(get_db)):
    return build_ads_out(await list_ads(db))


@router.post("", response_model=AdFullResponse, status_code=201)
async def create_ad_route(
    request: Request,
    image: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    media: MediaStore = Depends(get_ad_media),
    actor: Identity = Depends(get_current_identity),
):
    properties = await _read_properties(request)
    try:
        ad = await create_ad(
            db,
            media,
            actor,
            title=properties.title,
            price=properties.price,
            description=properties.description,
            image=await image.read(),
            filename=image.filename or "",
            content_type=image.content_type,
        )
    except ValueError as e:
        await db.rollback()
        raise service_error(e) from e
    return build_ad_full_out(ad)


@router.get("/me", response_model=AdsResponse)
async def my_ads_route(
    db: AsyncSession = Depends(get_db),
    actor: Identity = Depends(get_current_identity),
):
    return build_ads_out(await list_ads_for_owner(db, actor.username))


@router.get("/{ad_id}", response_model=AdFullResponse)
async def ad_detail_route(ad_id: int, db: AsyncSession = Depends(get_db)):
    try:
        ad = await get_ad(db, ad_id)
    except ValueError as e:
        raise service_error(e) from e
    return build_ad_full_out(ad)


@router.patch("/{ad_id}", response_model=AdFullResponse)
async def update_ad_route(
    ad_id: int,
    payload: AdUpdateRequest,
    db: AsyncSession = Depends(get_db),
    actor: Identity = Depends(get_current_identity),
):
    try:
        ad = await update_ad(
            db,
            ad_id,
            actor,
            title=payload.title,
            price=payload.price,
            description=payload.description,
        )
    except PermissionError as e:
        raise permission_error(e) from e
    except ValueError as e:
        raise service_error(e) from e
    return build_ad_full_out(ad)


@router.delete("/{ad_id}", status_code=204)
async def delete_ad_route(
    ad_id: int,
    db: AsyncSession = Depends(get_db),
    media: MediaStore = Depends(get_ad_media),
    actor: Identity = Depends(get_current_identity),
):
    try:
        await delete_ad(db, media, ad_id, actor)
    except PermissionError as e:
        raise permission_error(e) from e
    except ValueError as e:
        raise service_error(e) from e
    return Response(status_code=204)


@router.patch("/{ad_id}/image", response_model=OkResponse)
async def update_ad_image_route(
    ad_id: int,
    image: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    media: MediaStore = Depends(get_ad_media),
    actor: Identity = Depends(get_current_identity),
):
    try:
        await replace_ad_image(
            db,
            media,
            ad_id,
            actor,
            image=await image.read(),
            filename=image.filename or "",
            content_type=image.content_type,
        )
    except PermissionError as e:
        raise permission_error(e) from e
    except ValueError as e:
        await db.rollback()
        raise service_error(e) from e
    return OkResponse(ok=True)
