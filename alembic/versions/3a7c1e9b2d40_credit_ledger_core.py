"""credit_ledger_core

Revision ID: 3a7c1e9b2d40
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "3a7c1e9b2d40"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("external_identity_id", sa.String(128), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("plan", sa.String(8), nullable=False, server_default=sa.text("'free'")),
        sa.Column("credits_remaining", sa.BigInteger(), nullable=False),
        sa.Column("credits_used", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("blocked", sa.Boolean(), nullable=False),
        sa.Column("initial_credits", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("plan IN ('free','pro')", name="ck_accounts_plan"),
        sa.CheckConstraint("credits_used >= 0", name="ck_accounts_credits_used_non_negative"),
        sa.CheckConstraint("credits_remaining >= -1000000", name="ck_accounts_credits_remaining_floor"),
        sa.CheckConstraint("blocked = (credits_remaining <= 0)", name="ck_accounts_blocked_matches_balance"),
        sa.UniqueConstraint("external_identity_id", name="uq_accounts_external_identity_id"),
    )
    op.create_index("uq_accounts_email_lower", "accounts", [sa.text("lower(email)")], unique=True)
    op.create_index("idx_accounts_updated_at", "accounts", ["updated_at"])

    op.create_table(
        "recharge_requests",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("requested_credits", sa.Integer(), nullable=False),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_reference", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("admin_note", sa.Text(), nullable=True),
        sa.Column("resolved_by", sa.String(64), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("fulfilled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('pending','fulfilled','rejected')", name="ck_recharge_requests_status"),
        sa.CheckConstraint("requested_credits > 0", name="ck_recharge_requests_requested_credits_positive"),
        sa.CheckConstraint("amount_paid >= 0", name="ck_recharge_requests_amount_paid_non_negative"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
    )
    op.create_index(
        "idx_recharge_requests_email_requested",
        "recharge_requests",
        [sa.text("lower(email)"), "requested_at"],
    )
    op.create_index("idx_recharge_requests_status_requested", "recharge_requests", ["status", "requested_at"])
    op.create_index("idx_recharge_requests_account", "recharge_requests", ["account_id"])

    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.BigInteger(), sa.Identity(always=False), primary_key=True),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("change_amount", sa.BigInteger(), nullable=False),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("before_balance", sa.BigInteger(), nullable=False),
        sa.Column("after_balance", sa.BigInteger(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("actor", sa.String(64), nullable=True),
        sa.Column("correlation_token", sa.String(128), nullable=True),
        sa.Column("recharge_request_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.CheckConstraint(
            "after_balance = GREATEST(-1000000, before_balance + change_amount)",
            name="ck_credit_transactions_balance_chain",
        ),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.ForeignKeyConstraint(["recharge_request_id"], ["recharge_requests.id"]),
        sa.UniqueConstraint("recharge_request_id", name="uq_credit_transactions_recharge_request_id"),
    )
    op.create_index(
        "idx_credit_transactions_account_created",
        "credit_transactions",
        ["account_id", "created_at", "id"],
    )
    op.create_index(
        "uq_credit_transactions_correlation",
        "credit_transactions",
        ["account_id", "correlation_token", "action"],
        unique=True,
        postgresql_where=sa.text("correlation_token IS NOT NULL"),
    )
    op.create_index(
        "idx_credit_transactions_archived_created",
        "credit_transactions",
        ["archived", "created_at"],
    )

    op.execute(
        """
        CREATE OR REPLACE FUNCTION fn_credit_transactions_append_only()
        RETURNS trigger
        LANGUAGE plpgsql
        AS $$
        BEGIN
            IF TG_OP = 'UPDATE'
               AND (to_jsonb(NEW) - 'archived') = (to_jsonb(OLD) - 'archived') THEN
                RETURN NEW;
            END IF;
            RAISE EXCEPTION 'credit_transactions is append-only';
        END;
        $$;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_credit_transactions_append_only
        BEFORE UPDATE OR DELETE ON credit_transactions
        FOR EACH ROW
        EXECUTE FUNCTION fn_credit_transactions_append_only();
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_credit_transactions_append_only ON credit_transactions;")
    op.execute("DROP FUNCTION IF EXISTS fn_credit_transactions_append_only();")

    op.drop_index("idx_credit_transactions_archived_created", table_name="credit_transactions")
    op.drop_index("uq_credit_transactions_correlation", table_name="credit_transactions")
    op.drop_index("idx_credit_transactions_account_created", table_name="credit_transactions")
    op.drop_table("credit_transactions")

    op.drop_index("idx_recharge_requests_account", table_name="recharge_requests")
    op.drop_index("idx_recharge_requests_status_requested", table_name="recharge_requests")
    op.drop_index("idx_recharge_requests_email_requested", table_name="recharge_requests")
    op.drop_table("recharge_requests")

    op.drop_index("idx_accounts_updated_at", table_name="accounts")
    op.drop_index("uq_accounts_email_lower", table_name="accounts")
    op.drop_table("accounts")
