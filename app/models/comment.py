from __future__ import annotations

from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    ad_id: Mapped[int] = mapped_column(sa.ForeignKey("ads.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id: Mapped[int] = mapped_column(sa.ForeignKey("users.id"), nullable=False, index=True)

    # Per-ad sequence number; this is the id clients see.
    comment_number: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    text: Mapped[str] = mapped_column(sa.String(1000), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=_now_utc,
        server_default=sa.func.now(),
        nullable=False,
    )

    __table_args__ = (
        sa.UniqueConstraint("ad_id", "comment_number", name="uq_comments_ad_number"),
    )

    ad = relationship("Ad")
    author = relationship("User")
