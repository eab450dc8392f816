from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from sqlalchemy.exc import SQLAlchemyError

from app.api.routes.credits_helpers import (
    balance_as_response,
    chain_report_as_response,
    ledger_record_as_response,
    recharge_request_as_response,
    require_admin,
)
from app.api.routes.credits_models import (
    AccountLedgerResponse,
    AdjustCreditsRequest,
    AdjustCreditsResponse,
    RechargeRequestListResponse,
    RechargeRequestResponse,
    RejectRechargeRequest,
)
from app.db.repo.accounts_repo import AccountsRepo
from app.db.repo.credit_transactions_repo import CreditTransactionsRepo
from app.db.session import SessionLocal
from app.economy.adjustments.errors import (
    InvalidChangeAmountError,
    MissingUserIdentifierError,
    RechargeFulfillmentFailedError,
    UserNotFoundError,
)
from app.economy.adjustments.service import AdjustmentService
from app.economy.adjustments.types import AdjustmentOutcome
from app.economy.adjustments.workflow import run_admin_adjustment
from app.economy.ledger.audit import build_chain_report, links_from_records
from app.economy.ledger.errors import AccountNotFoundError
from app.economy.ledger.projection import project_balance
from app.economy.recharge.constants import RECHARGE_STATUSES, STATUS_PENDING
from app.economy.recharge.errors import (
    RechargeRequestAlreadyCreditedError,
    RechargeRequestCreditedToOtherAccountError,
    RechargeRequestNotFoundError,
    RechargeRequestNotPendingError,
)
from app.economy.recharge.rules import parse_account_id
from app.economy.recharge.service import RechargeService
from app.services.admin_auth import CAPABILITY_APPROVE, CAPABILITY_READ_PENDING, CAPABILITY_REJECT

router = APIRouter(tags=["admin", "credits"])
logger = structlog.get_logger(__name__)


def _adjustment_as_response(outcome: AdjustmentOutcome) -> AdjustCreditsResponse:
    return AdjustCreditsResponse(
        user=balance_as_response(outcome.account),
        transaction_id=outcome.transaction_id,
        recharge_request_updated=outcome.recharge_request_updated,
        idempotent_replay=outcome.idempotent_replay,
    )


def _parse_path_id(raw_id: str, *, not_found_code: str) -> UUID:
    parsed = parse_account_id(raw_id)
    if parsed is None:
        raise HTTPException(status_code=404, detail={"code": not_found_code})
    return parsed


@router.patch("/admin/credits/adjust", response_model=AdjustCreditsResponse)
async def adjust_credits(payload: AdjustCreditsRequest, request: Request) -> AdjustCreditsResponse:
    principal = require_admin(request, capability=CAPABILITY_APPROVE, admin_by=payload.admin_by)

    try:
        command = AdjustmentService.parse_command(
            user_id=payload.user_id,
            email=payload.email,
            change_amount=payload.change_amount,
            admin_id=principal.admin_id,
            reason=payload.reason,
            adjust_used=payload.adjust_used,
            recharge_request_id=payload.recharge_request_id,
        )
    except InvalidChangeAmountError as exc:
        raise HTTPException(status_code=400, detail={"code": "invalid_change_amount"}) from exc
    except MissingUserIdentifierError as exc:
        raise HTTPException(status_code=400, detail={"code": "missing_user_identifier"}) from exc
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "user_not_found"}) from exc
    except RechargeRequestNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "recharge_request_not_found"}) from exc

    try:
        outcome = await run_admin_adjustment(command, now_utc=datetime.now(timezone.utc))
    except (UserNotFoundError, AccountNotFoundError) as exc:
        raise HTTPException(status_code=404, detail={"code": "user_not_found"}) from exc
    except RechargeRequestNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "recharge_request_not_found"}) from exc
    except RechargeRequestNotPendingError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "recharge_request_not_pending", "status": exc.status},
        ) from exc
    except RechargeRequestCreditedToOtherAccountError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "recharge_request_credited_to_other_account", "transaction_id": exc.transaction_id},
        ) from exc
    except RechargeFulfillmentFailedError as exc:
        committed = _adjustment_as_response(exc.outcome)
        raise HTTPException(
            status_code=500,
            detail={
                "code": "recharge_fulfillment_failed",
                "user": committed.user.model_dump(mode="json"),
                "transaction_id": committed.transaction_id,
            },
        ) from exc
    except SQLAlchemyError as exc:
        logger.exception("admin_adjust_failed", admin_id=principal.admin_id)
        raise HTTPException(status_code=500, detail={"code": "internal_error"}) from exc

    return _adjustment_as_response(outcome)


@router.get("/admin/recharge-requests", response_model=RechargeRequestListResponse)
async def list_recharge_requests(
    request: Request,
    status: str | None = Query(default=STATUS_PENDING, max_length=16),
    limit: int = Query(default=100, ge=1, le=500),
) -> RechargeRequestListResponse:
    require_admin(request, capability=CAPABILITY_READ_PENDING)
    if status is not None and status not in RECHARGE_STATUSES:
        raise HTTPException(status_code=400, detail={"code": "invalid_input", "field": "status"})

    try:
        async with SessionLocal.begin() as session:
            requests = await RechargeService.list_requests(session, status=status, limit=limit)
            items = [recharge_request_as_response(item) for item in requests]
    except SQLAlchemyError as exc:
        logger.exception("recharge_requests_list_failed")
        raise HTTPException(status_code=500, detail={"code": "internal_error"}) from exc

    return RechargeRequestListResponse(requests=items)


@router.post("/admin/recharge-requests/{request_id}/reject", response_model=RechargeRequestResponse)
async def reject_recharge_request(
    request_id: str,
    request: Request,
    payload: RejectRechargeRequest | None = None,
) -> RechargeRequestResponse:
    body = payload or RejectRechargeRequest()
    principal = require_admin(request, capability=CAPABILITY_REJECT, admin_by=body.admin_by)
    parsed_id = _parse_path_id(request_id, not_found_code="recharge_request_not_found")

    try:
        async with SessionLocal.begin() as session:
            rejected = await RechargeService.reject(
                session,
                request_id=parsed_id,
                admin_id=principal.admin_id,
                reason=body.reason,
                now_utc=datetime.now(timezone.utc),
            )
            response = recharge_request_as_response(rejected)
    except RechargeRequestNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "recharge_request_not_found"}) from exc
    except RechargeRequestNotPendingError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "recharge_request_not_pending", "status": exc.status},
        ) from exc
    except RechargeRequestAlreadyCreditedError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "recharge_request_already_credited", "transaction_id": exc.transaction_id},
        ) from exc
    except SQLAlchemyError as exc:
        logger.exception("recharge_request_reject_failed", admin_id=principal.admin_id)
        raise HTTPException(status_code=500, detail={"code": "internal_error"}) from exc

    return response


@router.get("/admin/accounts/{account_id}/ledger", response_model=AccountLedgerResponse)
async def get_account_ledger(
    account_id: str,
    request: Request,
    limit: int = Query(default=500, ge=1, le=5000),
) -> AccountLedgerResponse:
    require_admin(request, capability=CAPABILITY_READ_PENDING)
    parsed_id = _parse_path_id(account_id, not_found_code="user_not_found")

    try:
        async with SessionLocal.begin() as session:
            account = await AccountsRepo.get_by_id(session, parsed_id)
            if account is None:
                raise HTTPException(status_code=404, detail={"code": "user_not_found"})
            records = await CreditTransactionsRepo.list_for_account(session, account_id=account.id)
            report = build_chain_report(
                account_id=account.id,
                initial_balance=account.initial_credits,
                account_balance=account.credits_remaining,
                links=links_from_records(records),
            )
            response = AccountLedgerResponse(
                user=balance_as_response(project_balance(account)),
                records=[ledger_record_as_response(record) for record in records[-limit:]],
                chain=chain_report_as_response(report),
            )
    except SQLAlchemyError as exc:
        logger.exception("account_ledger_read_failed", account_id=str(parsed_id))
        raise HTTPException(status_code=500, detail={"code": "internal_error"}) from exc

    return response
