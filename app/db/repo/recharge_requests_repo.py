from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.recharge_requests import RechargeRequest


class RechargeRequestsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, request_id: UUID) -> RechargeRequest | None:
        return await session.get(RechargeRequest, request_id)

    @staticmethod
    async def get_by_id_for_update(
        session: AsyncSession,
        request_id: UUID,
    ) -> RechargeRequest | None:
        stmt = (
            select(RechargeRequest)
            .where(RechargeRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_latest_for_email(session: AsyncSession, email: str) -> RechargeRequest | None:
        stmt = (
            select(RechargeRequest)
            .where(func.lower(RechargeRequest.email) == email.strip().lower())
            .order_by(RechargeRequest.requested_at.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, request: RechargeRequest) -> RechargeRequest:
        session.add(request)
        await session.flush()
        return request

    @staticmethod
    async def list_by_status(
        session: AsyncSession,
        *,
        status: str | None,
        limit: int,
    ) -> list[RechargeRequest]:
        resolved_limit = max(1, min(500, int(limit)))
        stmt = select(RechargeRequest).order_by(RechargeRequest.requested_at.asc()).limit(resolved_limit)
        if status is not None:
            stmt = stmt.where(RechargeRequest.status == status)
        result = await session.execute(stmt)
        return list(result.scalars().all())
