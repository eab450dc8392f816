from __future__ import annotations

import structlog
from fastapi import HTTPException, Request

from app.api.routes.credits_models import (
    BalanceResponse,
    ChainBreakResponse,
    ChainReportResponse,
    LedgerRecordResponse,
    RechargeRequestResponse,
)
from app.core.config import get_settings
from app.db.models.credit_transactions import CreditTransaction
from app.db.models.recharge_requests import RechargeRequest
from app.economy.identity.types import CallerIdentity
from app.economy.ledger.types import BalanceProjection, ChainReport
from app.services.admin_auth import AdminPrincipal, authenticate_admin
from app.services.caller_identity import extract_caller_identity

logger = structlog.get_logger("app.api.routes.credits")


def require_caller(request: Request) -> CallerIdentity:
    identity = extract_caller_identity(request.headers, expected_token=get_settings().gateway_token)
    if identity is None:
        logger.warning("caller_auth_failed", path=request.url.path)
        raise HTTPException(status_code=401, detail={"code": "unauthenticated"})
    return identity


def require_admin(request: Request, *, capability: str, admin_by: str | None = None) -> AdminPrincipal:
    settings = get_settings()
    principal = authenticate_admin(
        request.headers,
        credentials_raw=settings.admin_credentials,
        shared_secret=settings.admin_shared_secret,
        admin_by=admin_by,
    )
    if principal is None:
        logger.warning("admin_auth_failed", reason="invalid_credentials", path=request.url.path)
        raise HTTPException(status_code=401, detail={"code": "unauthorized"})
    if not principal.can(capability):
        logger.warning(
            "admin_auth_failed",
            reason="missing_capability",
            admin_id=principal.admin_id,
            capability=capability,
        )
        raise HTTPException(status_code=403, detail={"code": "forbidden"})
    return principal


def balance_as_response(projection: BalanceProjection) -> BalanceResponse:
    return BalanceResponse(
        user_id=projection.user_id,
        credits_remaining=projection.credits_remaining,
        credits_used=projection.credits_used,
        plan=projection.plan,
        blocked=projection.blocked,
        plan_allowance=projection.plan_allowance,
    )


def recharge_request_as_response(request: RechargeRequest) -> RechargeRequestResponse:
    return RechargeRequestResponse(
        id=request.id,
        account_id=request.account_id,
        email=request.email,
        name=request.name,
        phone=request.phone,
        requested_credits=request.requested_credits,
        amount_paid=request.amount_paid,
        payment_reference=request.payment_reference,
        status=request.status,
        admin_note=request.admin_note,
        resolved_by=request.resolved_by,
        requested_at=request.requested_at,
        fulfilled_at=request.fulfilled_at,
        rejected_at=request.rejected_at,
    )


def ledger_record_as_response(record: CreditTransaction) -> LedgerRecordResponse:
    return LedgerRecordResponse(
        id=record.id,
        change_amount=record.change_amount,
        action=record.action,
        before_balance=record.before_balance,
        after_balance=record.after_balance,
        note=record.note,
        actor=record.actor,
        correlation_token=record.correlation_token,
        recharge_request_id=record.recharge_request_id,
        created_at=record.created_at,
        archived=record.archived,
    )


def chain_report_as_response(report: ChainReport) -> ChainReportResponse:
    return ChainReportResponse(
        records_checked=report.records_checked,
        initial_balance=report.initial_balance,
        ending_balance=report.ending_balance,
        account_balance=report.account_balance,
        consistent=report.is_consistent,
        breaks=[
            ChainBreakResponse(
                transaction_id=item.transaction_id,
                expected_before_balance=item.expected_before_balance,
                actual_before_balance=item.actual_before_balance,
            )
            for item in report.breaks
        ],
    )
