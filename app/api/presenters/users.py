from __future__ import annotations

from app.models.avatar import Avatar
from app.models.user import User
from app.schemas.users import UserProfileResponse


def avatar_url(user_id: int) -> str:
    return f"/users/{user_id}/avatar"


def build_profile_out(user: User, avatar: Avatar | None) -> UserProfileResponse:
    return UserProfileResponse(
        id=user.id,
        email=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        phone=user.phone,
        role=user.role.value,
        image=avatar_url(user.id) if avatar is not None else None,
    )
