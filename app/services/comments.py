from __future__ import annotations

import logging

import sqlalchemy as sa
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.models.ad import Ad
from app.models.comment import Comment
from app.services.auth import get_user_by_username
from app.services.permissions import Identity, can_delete_comment, can_update_comment

logger = logging.getLogger(__name__)


def _comments_query():
    return select(Comment).options(
        joinedload(Comment.author),
        joinedload(Comment.ad).joinedload(Ad.owner),
    )


async def _ensure_ad_exists(db: AsyncSession, ad_id: int) -> None:
    if (await db.execute(select(Ad.id).where(Ad.id == ad_id))).scalar_one_or_none() is None:
        raise ValueError("ad_not_found")


async def _load_comment(db: AsyncSession, ad_id: int, comment_number: int) -> Comment:
    q = _comments_query().where(Comment.ad_id == ad_id, Comment.comment_number == comment_number)
    comment = (await db.execute(q)).scalar_one_or_none()
    if comment is None:
        logger.warning("Comment %s not found in ad %s", comment_number, ad_id)
        raise ValueError("comment_not_found")
    return comment


async def _next_comment_number(db: AsyncSession, ad_id: int) -> int | None:
    """Reserve the next comment number of an ad in a single statement.

    Returns ``None`` when the ad does not exist. Concurrent callers serialize
    on the ad row, so two comments never share a number, and numbers freed by
    deletions are not handed out again.
    """
    q = (
        sa.update(Ad)
        .where(Ad.id == ad_id)
        .values(comment_seq=Ad.comment_seq + 1)
        .returning(Ad.comment_seq)
        .execution_options(synchronize_session=False)
    )
    return (await db.execute(q)).scalar_one_or_none()


async def list_comments(db: AsyncSession, ad_id: int) -> list[Comment]:
    await _ensure_ad_exists(db, ad_id)
    q = (
        _comments_query()
        .where(Comment.ad_id == ad_id)
        .order_by(Comment.created_at.desc(), Comment.comment_number.desc())
    )
    return list((await db.execute(q)).scalars().all())


async def add_comment(db: AsyncSession, ad_id: int, actor: Identity, text: str) -> Comment:
    logger.debug("Adding comment to ad %s by %s", ad_id, actor.username)
    author = await get_user_by_username(db, actor.username)
    if author is None:
        raise ValueError("user_not_found")

    number = await _next_comment_number(db, ad_id)
    if number is None:
        logger.warning("Cannot comment on missing ad %s", ad_id)
        raise ValueError("ad_not_found")

    comment = Comment(ad_id=ad_id, author_id=author.id, comment_number=number, text=text)
    db.add(comment)
    await db.commit()

    logger.info("Comment %s added to ad %s", number, ad_id)
    return await _load_comment(db, ad_id, number)


async def update_comment(
    db: AsyncSession,
    ad_id: int,
    comment_number: int,
    actor: Identity,
    text: str,
) -> Comment:
    logger.debug("Updating comment %s of ad %s by %s", comment_number, ad_id, actor.username)
    comment = await _load_comment(db, ad_id, comment_number)
    if not can_update_comment(comment, actor):
        logger.warning(
            "User %s attempted to update comment %s of ad %s without permission",
            actor.username,
            comment_number,
            ad_id,
        )
        raise PermissionError("Only the author can edit this comment")

    comment.text = text
    await db.commit()

    logger.info("Comment %s of ad %s updated by %s", comment_number, ad_id, actor.username)
    return comment


async def delete_comment(db: AsyncSession, ad_id: int, comment_number: int, actor: Identity) -> None:
    logger.debug("Deleting comment %s of ad %s by %s", comment_number, ad_id, actor.username)
    comment = await _load_comment(db, ad_id, comment_number)
    if not can_delete_comment(comment, actor):
        logger.warning(
            "User %s attempted to delete comment %s of ad %s without permission",
            actor.username,
            comment_number,
            ad_id,
        )
        raise PermissionError("Only the author, the ad owner or an admin can delete this comment")

    await db.delete(comment)
    await db.commit()
    logger.info("Comment %s of ad %s deleted by %s", comment_number, ad_id, actor.username)
