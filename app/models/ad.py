from __future__ import annotations

from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Ad(Base):
    __tablename__ = "ads"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    title: Mapped[str] = mapped_column(sa.Text, nullable=False)
    price: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    description: Mapped[str] = mapped_column(sa.Text, nullable=False)

    owner_id: Mapped[int] = mapped_column(sa.ForeignKey("users.id"), nullable=False, index=True)

    file_path: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    file_size: Mapped[int | None] = mapped_column(sa.BigInteger, nullable=True)
    media_type: Mapped[str | None] = mapped_column(sa.String(100), nullable=True)
    preview: Mapped[bytes | None] = mapped_column(sa.LargeBinary, nullable=True)

    # Last comment number handed out for this ad; bumped atomically on insert.
    comment_seq: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0, server_default="0")

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_now_utc, server_default=sa.func.now(), nullable=False
    )

    __table_args__ = (
        sa.CheckConstraint("price >= 0", name="ck_ads_price_non_negative"),
    )

    owner = relationship("User")
