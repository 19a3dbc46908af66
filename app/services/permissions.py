from __future__ import annotations

from dataclasses import dataclass

from app.models.ad import Ad
from app.models.comment import Comment
from app.models.user import Role, User


@dataclass(frozen=True)
class Identity:
    """The authenticated principal of a single request."""

    user_id: int
    username: str
    role: Role

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(user_id=user.id, username=user.username, role=user.role)


def is_admin(actor: Identity) -> bool:
    if actor.role is Role.ADMIN:
        return True
    if actor.role is Role.USER:
        return False
    raise ValueError(f"unknown role: {actor.role!r}")


def can_mutate_ad(ad: Ad, actor: Identity) -> bool:
    return is_admin(actor) or ad.owner.username == actor.username


def can_update_comment(comment: Comment, actor: Identity) -> bool:
    # Author only; admins do not get edit rights.
    return comment.author.username == actor.username


def can_delete_comment(comment: Comment, actor: Identity) -> bool:
    if is_admin(actor):
        return True
    return actor.username in (comment.author.username, comment.ad.owner.username)
