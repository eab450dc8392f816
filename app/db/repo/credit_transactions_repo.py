from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.credit_transactions import CreditTransaction
from app.db.models.recharge_requests import RechargeRequest


class CreditTransactionsRepo:
    @staticmethod
    async def create(session: AsyncSession, *, record: CreditTransaction) -> CreditTransaction:
        session.add(record)
        await session.flush()
        return record

    @staticmethod
    async def get_by_correlation(
        session: AsyncSession,
        *,
        account_id: UUID,
        correlation_token: str,
        action: str,
    ) -> CreditTransaction | None:
        stmt = select(CreditTransaction).where(
            CreditTransaction.account_id == account_id,
            CreditTransaction.correlation_token == correlation_token,
            CreditTransaction.action == action,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_recharge_request_id(
        session: AsyncSession,
        recharge_request_id: UUID,
    ) -> CreditTransaction | None:
        stmt = select(CreditTransaction).where(
            CreditTransaction.recharge_request_id == recharge_request_id
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_account(
        session: AsyncSession,
        *,
        account_id: UUID,
        limit: int | None = None,
    ) -> list[CreditTransaction]:
        stmt = (
            select(CreditTransaction)
            .where(CreditTransaction.account_id == account_id)
            .order_by(CreditTransaction.created_at.asc(), CreditTransaction.id.asc())
        )
        if limit is not None:
            stmt = stmt.limit(max(1, int(limit)))
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_unfulfilled_recharge_credits(
        session: AsyncSession,
        *,
        older_than_utc: datetime,
        limit: int,
    ) -> list[CreditTransaction]:
        stmt = (
            select(CreditTransaction)
            .join(RechargeRequest, RechargeRequest.id == CreditTransaction.recharge_request_id)
            .where(
                RechargeRequest.status == "pending",
                CreditTransaction.created_at <= older_than_utc,
            )
            .order_by(CreditTransaction.created_at.asc())
            .limit(max(1, int(limit)))
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def archive_older_than(session: AsyncSession, *, older_than_utc: datetime) -> int:
        stmt = (
            update(CreditTransaction)
            .where(
                CreditTransaction.archived.is_(False),
                CreditTransaction.created_at < older_than_utc,
            )
            .values(archived=True)
        )
        result = await session.execute(stmt)
        return result.rowcount or 0
