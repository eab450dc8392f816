from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.accounts import Account


class AccountsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, account_id: UUID) -> Account | None:
        return await session.get(Account, account_id)

    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, account_id: UUID) -> Account | None:
        stmt = (
            select(Account)
            .where(Account.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_external_identity_id(
        session: AsyncSession,
        external_identity_id: str,
    ) -> Account | None:
        stmt = select(Account).where(Account.external_identity_id == external_identity_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(session: AsyncSession, email: str) -> Account | None:
        stmt = select(Account).where(func.lower(Account.email) == email.strip().lower())
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        external_identity_id: str | None,
        email: str | None,
        starting_credits: int,
        now_utc: datetime,
        plan: str = "free",
    ) -> Account:
        account = Account(
            external_identity_id=external_identity_id,
            email=email,
            plan=plan,
            credits_remaining=starting_credits,
            credits_used=0,
            blocked=starting_credits <= 0,
            initial_credits=starting_credits,
            created_at=now_utc,
            updated_at=now_utc,
        )
        session.add(account)
        await session.flush()
        return account

    @staticmethod
    async def list_updated_since(
        session: AsyncSession,
        *,
        since_utc: datetime,
        limit: int,
    ) -> list[Account]:
        resolved_limit = max(1, min(5000, int(limit)))
        stmt = (
            select(Account)
            .where(Account.updated_at >= since_utc)
            .order_by(Account.updated_at.asc())
            .limit(resolved_limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
