from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_identity, get_db
from app.api.http_errors import permission_error, service_error
from app.api.presenters.comments import build_comment_out, build_comments_out
from app.schemas.comments import CommentResponse, CommentsResponse, CommentWriteRequest
from app.services.comments import add_comment, delete_comment, list_comments, update_comment
from app.services.permissions import Identity

router = APIRouter(prefix="/ads/{ad_id}/comments", tags=["comments"])


@router.get("", response_model=CommentsResponse)
async def list_comments_route(
    ad_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Identity = Depends(get_current_identity),
):
    try:
        comments = await list_comments(db, ad_id)
    except ValueError as e:
        raise service_error(e) from e
    return build_comments_out(comments)


@router.post("", response_model=CommentResponse, status_code=201)
async def add_comment_route(
    ad_id: int,
    payload: CommentWriteRequest,
    db: AsyncSession = Depends(get_db),
    actor: Identity = Depends(get_current_identity),
):
    try:
        comment = await add_comment(db, ad_id, actor, payload.text)
    except ValueError as e:
        await db.rollback()
        raise service_error(e) from e
    return build_comment_out(comment)


@router.patch("/{comment_id}", response_model=CommentResponse)
async def update_comment_route(
    ad_id: int,
    comment_id: int,
    payload: CommentWriteRequest,
    db: AsyncSession = Depends(get_db),
    actor: Identity = Depends(get_current_identity),
):
    try:
        comment = await update_comment(db, ad_id, comment_id, actor, payload.text)
    except PermissionError as e:
        raise permission_error(e) from e
    except ValueError as e:
        raise service_error(e) from e
    return build_comment_out(comment)


@router.delete("/{comment_id}", status_code=204)
async def delete_comment_route(
    ad_id: int,
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Identity = Depends(get_current_identity),
):
    try:
        await delete_comment(db, ad_id, comment_id, actor)
    except PermissionError as e:
        raise permission_error(e) from e
    except ValueError as e:
        raise service_error(e) from e
    return Response(status_code=204)
