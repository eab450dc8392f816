from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.recharge_requests import RechargeRequest
from app.db.repo.accounts_repo import AccountsRepo
from app.db.repo.credit_transactions_repo import CreditTransactionsRepo
from app.db.repo.recharge_requests_repo import RechargeRequestsRepo
from app.economy.recharge.constants import STATUS_FULFILLED, STATUS_PENDING, STATUS_REJECTED
from app.economy.recharge.errors import (
    DuplicatePendingRequestError,
    RechargeRequestAlreadyCreditedError,
    RechargeRequestNotFoundError,
    RechargeRequestNotPendingError,
)
from app.economy.recharge.rules import append_admin_note, can_transition, is_duplicate_pending
from app.economy.recharge.types import FulfillmentResult, RechargeSubmission

logger = structlog.get_logger(__name__)


class RechargeService:
    @staticmethod
    async def submit(
        session: AsyncSession,
        *,
        submission: RechargeSubmission,
        now_utc: datetime,
        duplicate_window: timedelta,
    ) -> RechargeRequest:
        latest = await RechargeRequestsRepo.get_latest_for_email(session, submission.email)
        if latest is not None and is_duplicate_pending(
            latest_status=latest.status,
            latest_requested_at=latest.requested_at,
            now_utc=now_utc,
            window=duplicate_window,
        ):
            raise DuplicatePendingRequestError

        if submission.account_id is not None:
            account = await AccountsRepo.get_by_id(session, submission.account_id)
            if account is None:
                submission = replace(
                    submission,
                    account_id=None,
                    admin_note=append_admin_note(
                        submission.admin_note,
                        f"provided_user_id_unknown: {submission.account_id}",
                    ),
                )

        request = await RechargeRequestsRepo.create(
            session,
            request=RechargeRequest(
                account_id=submission.account_id,
                email=submission.email,
                name=submission.name,
                phone=submission.phone,
                requested_credits=submission.requested_credits,
                amount_paid=submission.amount_paid,
                payment_reference=submission.payment_reference,
                status=STATUS_PENDING,
                admin_note=submission.admin_note,
                requested_at=now_utc,
            ),
        )
        logger.info(
            "recharge_request_submitted",
            recharge_request_id=str(request.id),
            requested_credits=submission.requested_credits,
            linked_account=submission.account_id is not None,
        )
        return request

    @staticmethod
    async def lock_pending(session: AsyncSession, request_id: UUID) -> RechargeRequest:
        request = await RechargeRequestsRepo.get_by_id_for_update(session, request_id)
        if request is None:
            raise RechargeRequestNotFoundError
        if request.status != STATUS_PENDING:
            raise RechargeRequestNotPendingError(request.status)
        return request

    @staticmethod
    async def mark_fulfilled(
        session: AsyncSession,
        *,
        request_id: UUID,
        account_id: UUID,
        admin_id: str,
        now_utc: datetime,
    ) -> FulfillmentResult:
        """Transition a credited request to fulfilled; a second call is a no-op."""
        request = await RechargeRequestsRepo.get_by_id_for_update(session, request_id)
        if request is None:
            raise RechargeRequestNotFoundError
        if request.status == STATUS_FULFILLED:
            return FulfillmentResult(request_id=request.id, transitioned=False, status=request.status)
        if not can_transition(request.status, STATUS_FULFILLED):
            raise RechargeRequestNotPendingError(request.status)

        request.status = STATUS_FULFILLED
        request.fulfilled_at = now_utc
        request.resolved_by = admin_id
        request.admin_note = append_admin_note(
            request.admin_note,
            f"fulfilled by admin:{admin_id} at {now_utc.isoformat()}",
        )
        if request.account_id is None:
            request.account_id = account_id
        await session.flush()

        logger.info(
            "recharge_request_fulfilled",
            recharge_request_id=str(request.id),
            account_id=str(account_id),
            admin_id=admin_id,
        )
        return FulfillmentResult(request_id=request.id, transitioned=True, status=request.status)

    @staticmethod
    async def reject(
        session: AsyncSession,
        *,
        request_id: UUID,
        admin_id: str,
        reason: str | None,
        now_utc: datetime,
    ) -> RechargeRequest:
        request = await RechargeService.lock_pending(session, request_id)
        # A credited request can only move to fulfilled; reconcile finishes it.
        credit = await CreditTransactionsRepo.get_by_recharge_request_id(session, request.id)
        if credit is not None:
            raise RechargeRequestAlreadyCreditedError(credit.id)

        request.status = STATUS_REJECTED
        request.rejected_at = now_utc
        request.resolved_by = admin_id
        addition = f"rejected by admin:{admin_id} at {now_utc.isoformat()}"
        if reason:
            addition = f"{addition}: {reason}"
        request.admin_note = append_admin_note(request.admin_note, addition)
        await session.flush()

        logger.info(
            "recharge_request_rejected",
            recharge_request_id=str(request.id),
            admin_id=admin_id,
        )
        return request

    @staticmethod
    async def list_requests(
        session: AsyncSession,
        *,
        status: str | None,
        limit: int,
    ) -> list[RechargeRequest]:
        return await RechargeRequestsRepo.list_by_status(session, status=status, limit=limit)
