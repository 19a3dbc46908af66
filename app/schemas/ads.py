from __future__ import annotations

from typing import List

from pydantic import Field

from app.schemas.base import CamelModel


class AdWriteRequest(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    price: int = Field(ge=0, le=2_147_483_647)
    description: str = Field(min_length=1, max_length=5000)


class AdCreateRequest(AdWriteRequest):
    pass


class AdUpdateRequest(AdWriteRequest):
    pass


class AdShortResponse(CamelModel):
    pk: int
    author: int
    image: str
    price: int
    title: str


class AdFullResponse(CamelModel):
    pk: int
    author_first_name: str | None = None
    author_last_name: str | None = None
    email: str
    phone: str | None = None
    image: str
    price: int
    title: str
    description: str


class AdsResponse(CamelModel):
    count: int
    results: List[AdShortResponse]
