from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError

from app.api.routes.credits_helpers import balance_as_response, require_caller
from app.api.routes.credits_models import BalanceResponse, ChargeRequest, ChargeResponse
from app.core.config import get_settings
from app.db.session import SessionLocal
from app.economy.charge.errors import InsufficientCreditsError, InvalidChargeAmountError
from app.economy.charge.service import ChargeService
from app.economy.identity.errors import IdentityError
from app.economy.identity.service import IdentityResolver
from app.economy.ledger.errors import LedgerError
from app.economy.ledger.projection import project_balance

router = APIRouter(tags=["credits"])
logger = structlog.get_logger(__name__)


@router.post("/credits/charge", response_model=ChargeResponse)
async def charge_credits(payload: ChargeRequest, request: Request) -> ChargeResponse:
    identity = require_caller(request)
    try:
        amount = ChargeService.parse_amount(payload.amount)
    except InvalidChargeAmountError as exc:
        raise HTTPException(status_code=400, detail={"code": "invalid_amount"}) from exc

    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            resolved = await IdentityResolver.resolve(
                session,
                identity,
                now_utc=now_utc,
                starting_credits=get_settings().free_plan_starting_credits,
            )
            result = await ChargeService.charge(
                session,
                account_id=resolved.account_id,
                raw_amount=amount,
                action=payload.action,
                note=payload.note,
                correlation_token=payload.correlation_token,
                now_utc=now_utc,
            )
    except InsufficientCreditsError as exc:
        logger.info("credits_charge_rejected_blocked", credits_remaining=exc.credits_remaining)
        raise HTTPException(
            status_code=402,
            detail={
                "code": "insufficient_credits",
                "blocked": exc.blocked,
                "credits_remaining": exc.credits_remaining,
            },
        ) from exc
    except (IdentityError, LedgerError, SQLAlchemyError) as exc:
        logger.exception("credits_charge_failed")
        raise HTTPException(status_code=500, detail={"code": "internal_error"}) from exc

    logger.info(
        "credits_charge_applied",
        account_id=str(result.account_id),
        amount=amount,
        credits_remaining=result.credits_remaining,
        blocked=result.blocked,
        idempotent_replay=result.idempotent_replay,
    )
    return ChargeResponse(
        user_id=result.account_id,
        credits_remaining=result.credits_remaining,
        credits_used=result.credits_used,
        blocked=result.blocked,
        transaction_id=result.transaction_id,
        idempotent_replay=result.idempotent_replay,
    )


@router.get("/credits/me", response_model=BalanceResponse)
async def get_my_balance(request: Request) -> BalanceResponse:
    identity = require_caller(request)
    try:
        async with SessionLocal.begin() as session:
            account = await IdentityResolver.lookup(session, identity)
            projection = project_balance(account) if account is not None else None
    except SQLAlchemyError as exc:
        logger.exception("credits_balance_read_failed")
        raise HTTPException(status_code=500, detail={"code": "internal_error"}) from exc

    if projection is None:
        raise HTTPException(status_code=404, detail={"code": "account_not_found"})
    return balance_as_response(projection)
