from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from retos.db.models.base import Base


class GrantOutboxRow(Base):
    __tablename__ = "grant_outbox"
    __table_args__ = (
        CheckConstraint("status IN ('pending','ok','error')", name="ck_grant_outbox_status"),
        CheckConstraint("product = 'agenda'", name="ck_grant_outbox_product"),
        CheckConstraint("tries >= 0", name="ck_grant_outbox_tries_non_negative"),
        Index(
            "idx_grant_outbox_pending_created",
            "created_at",
            "id",
            postgresql_where=text("status = 'pending'"),
        ),
        Index("idx_grant_outbox_email", "email"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    product: Mapped[str] = mapped_column(String(16), nullable=False, server_default=text("'agenda'"))
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default=text("'pending'"))
    tries: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    last_try: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
