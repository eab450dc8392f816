from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Index, String, Text, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("plan IN ('free','pro')", name="ck_accounts_plan"),
        CheckConstraint("credits_used >= 0", name="ck_accounts_credits_used_non_negative"),
        CheckConstraint(
            "credits_remaining >= -1000000",
            name="ck_accounts_credits_remaining_floor",
        ),
        CheckConstraint(
            "blocked = (credits_remaining <= 0)",
            name="ck_accounts_blocked_matches_balance",
        ),
        Index("uq_accounts_email_lower", text("lower(email)"), unique=True),
        Index("idx_accounts_updated_at", "updated_at"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    external_identity_id: Mapped[str | None] = mapped_column(
        String(128),
        unique=True,
        nullable=True,
    )
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    plan: Mapped[str] = mapped_column(String(8), nullable=False, server_default=text("'free'"))
    credits_remaining: Mapped[int] = mapped_column(BigInteger, nullable=False)
    credits_used: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default=text("0"))
    blocked: Mapped[bool] = mapped_column(Boolean, nullable=False)
    initial_credits: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
