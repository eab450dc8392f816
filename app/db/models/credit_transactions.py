from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    event,
    inspect,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, Session, mapped_column

from app.db.models.base import Base

MUTABLE_COLUMNS = frozenset({"archived"})


class CreditTransaction(Base):
    __tablename__ = "credit_transactions"
    __table_args__ = (
        CheckConstraint(
            "after_balance = GREATEST(-1000000, before_balance + change_amount)",
            name="ck_credit_transactions_balance_chain",
        ),
        Index("idx_credit_transactions_account_created", "account_id", "created_at", "id"),
        Index(
            "uq_credit_transactions_correlation",
            "account_id",
            "correlation_token",
            "action",
            unique=True,
            postgresql_where=text("correlation_token IS NOT NULL"),
        ),
        Index("idx_credit_transactions_archived_created", "archived", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    account_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("accounts.id"),
        nullable=False,
    )
    change_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    before_balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    after_balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    actor: Mapped[str | None] = mapped_column(String(64), nullable=True)
    correlation_token: Mapped[str | None] = mapped_column(String(128), nullable=True)
    recharge_request_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("recharge_requests.id"),
        unique=True,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))


@event.listens_for(Session, "before_flush")
def _reject_transaction_rewrites(session: Session, flush_context: object, instances: object) -> None:
    for obj in session.deleted:
        if isinstance(obj, CreditTransaction):
            raise ValueError("credit_transactions is append-only")

    for obj in session.dirty:
        if not isinstance(obj, CreditTransaction):
            continue
        state = inspect(obj)
        changed = {attr.key for attr in state.attrs if attr.history.has_changes()}
        if changed - MUTABLE_COLUMNS:
            raise ValueError("credit_transactions is append-only")
