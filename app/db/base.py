from app.db.base_class import Base

# Import ALL models so SQLAlchemy registers them
from app.models.user import User  # noqa: F401
from app.models.user_session import UserSession  # noqa: F401
from app.models.avatar import Avatar  # noqa: F401
from app.models.ad import Ad  # noqa: F401
from app.models.comment import Comment  # noqa: F401
