from __future__ import annotations

from datetime import datetime, timezone

from app.api.presenters.users import avatar_url
from app.models.comment import Comment
from app.schemas.comments import CommentResponse, CommentsResponse


def _epoch_millis(value: datetime) -> int:
    # SQLite returns naive datetimes; they are stored as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def build_comment_out(comment: Comment) -> CommentResponse:
    return CommentResponse(
        pk=comment.comment_number,
        text=comment.text,
        author=comment.author_id,
        author_first_name=comment.author.first_name,
        author_image=avatar_url(comment.author_id),
        created_at=_epoch_millis(comment.created_at),
    )


def build_comments_out(comments: list[Comment]) -> CommentsResponse:
    results = [build_comment_out(c) for c in comments]
    return CommentsResponse(count=len(results), results=results)
