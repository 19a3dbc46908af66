from app.models.user import Role, User
from app.models.user_session import UserSession
from app.models.avatar import Avatar
from app.models.ad import Ad
from app.models.comment import Comment

__all__ = ["Ad", "Avatar", "Comment", "Role", "User", "UserSession"]
