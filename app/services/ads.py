from __future__ import annotations

import logging

import sqlalchemy as sa
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.models.ad import Ad
from app.models.comment import Comment
from app.models.user import User
from app.services.auth import get_user_by_username
from app.services.media import MediaStore
from app.services.permissions import Identity, can_mutate_ad

logger = logging.getLogger(__name__)


def _ads_query():
    return select(Ad).options(joinedload(Ad.owner))


async def _load_ad(db: AsyncSession, ad_id: int) -> Ad:
    ad = (await db.execute(_ads_query().where(Ad.id == ad_id))).scalar_one_or_none()
    if ad is None:
        logger.warning("Ad %s not found", ad_id)
        raise ValueError("ad_not_found")
    return ad


async def _load_ad_for_mutation(db: AsyncSession, ad_id: int, actor: Identity, action: str) -> Ad:
    ad = await _load_ad(db, ad_id)
    if not can_mutate_ad(ad, actor):
        logger.warning("User %s attempted to %s ad %s without permission", actor.username, action, ad_id)
        raise PermissionError("Only the owner or an admin can change this ad")
    return ad


async def create_ad(
    db: AsyncSession,
    media: MediaStore,
    actor: Identity,
    *,
    title: str,
    price: int,
    description: str,
    image: bytes,
    filename: str,
    content_type: str | None,
) -> Ad:
    logger.debug("Creating ad for user %s", actor.username)
    owner: User | None = await get_user_by_username(db, actor.username)
    if owner is None:
        raise ValueError("user_not_found")

    async with media.store(owner.username, image, filename, content_type) as stored:
        ad = Ad(
            owner=owner,
            title=title,
            price=price,
            description=description,
            file_path=stored.path,
            file_size=stored.size,
            media_type=stored.media_type,
            preview=stored.preview,
        )
        db.add(ad)
        await db.commit()

    logger.info("Ad %s created by %s", ad.id, owner.username)
    return ad


async def list_ads(db: AsyncSession) -> list[Ad]:
    return list((await db.execute(_ads_query().order_by(Ad.id.asc()))).scalars().all())


async def list_ads_for_owner(db: AsyncSession, username: str) -> list[Ad]:
    q = _ads_query().join(User, User.id == Ad.owner_id).where(User.username == username).order_by(Ad.id.asc())
    return list((await db.execute(q)).scalars().all())


async def get_ad(db: AsyncSession, ad_id: int) -> Ad:
    return await _load_ad(db, ad_id)


async def update_ad(
    db: AsyncSession,
    ad_id: int,
    actor: Identity,
    *,
    title: str,
    price: int,
    description: str,
) -> Ad:
    logger.debug("Updating ad %s by %s", ad_id, actor.username)
    ad = await _load_ad_for_mutation(db, ad_id, actor, "update")

    ad.title = title
    ad.price = price
    ad.description = description
    await db.commit()

    logger.info("Ad %s updated by %s", ad_id, actor.username)
    return ad


async def delete_ad(db: AsyncSession, media: MediaStore, ad_id: int, actor: Identity) -> None:
    logger.debug("Deleting ad %s by %s", ad_id, actor.username)
    ad = await _load_ad_for_mutation(db, ad_id, actor, "delete")
    file_path = ad.file_path

    await db.execute(sa.delete(Comment).where(Comment.ad_id == ad.id))
    await db.delete(ad)
    await db.commit()

    await media.discard_async(file_path)
    logger.info("Ad %s deleted by %s", ad_id, actor.username)


async def replace_ad_image(
    db: AsyncSession,
    media: MediaStore,
    ad_id: int,
    actor: Identity,
    *,
    image: bytes,
    filename: str,
    content_type: str | None,
) -> Ad:
    logger.debug("Replacing image of ad %s by %s", ad_id, actor.username)
    ad = await _load_ad_for_mutation(db, ad_id, actor, "replace the image of")

    # Files are named after the owner even when an admin uploads.
    async with media.store(ad.owner.username, image, filename, content_type, old_path=ad.file_path) as stored:
        ad.file_path = stored.path
        ad.file_size = stored.size
        ad.media_type = stored.media_type
        ad.preview = stored.preview
        await db.commit()

    logger.info("Image of ad %s replaced", ad_id)
    return ad
