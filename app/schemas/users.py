from __future__ import annotations

from pydantic import Field

from app.schemas.base import CamelModel


class UserProfileResponse(CamelModel):
    id: int
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    role: str
    image: str | None = None


class UserProfileUpdateRequest(CamelModel):
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=32)
