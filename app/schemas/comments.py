from __future__ import annotations

from typing import List

from pydantic import Field, field_validator

from app.schemas.base import CamelModel


class CommentWriteRequest(CamelModel):
    text: str = Field(min_length=1, max_length=1000)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must not be blank")
        return v


class CommentResponse(CamelModel):
    pk: int
    text: str
    author: int
    author_first_name: str | None = None
    author_image: str
    created_at: int  # epoch milliseconds


class CommentsResponse(CamelModel):
    count: int
    results: List[CommentResponse]
