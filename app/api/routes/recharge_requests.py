from __future__ import annotations

from datetime import datetime, timedelta, timezone

import structlog
from fastapi import APIRouter, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from app.api.routes.credits_models import RechargeSubmissionRequest, RechargeSubmissionResponse
from app.core.config import get_settings
from app.db.session import SessionLocal
from app.economy.recharge.errors import DuplicatePendingRequestError, InvalidRechargeInputError
from app.economy.recharge.rules import build_submission
from app.economy.recharge.service import RechargeService

router = APIRouter(tags=["credits", "recharge"])
logger = structlog.get_logger(__name__)


@router.post("/credits/recharge-requests", response_model=RechargeSubmissionResponse)
async def submit_recharge_request(payload: RechargeSubmissionRequest) -> RechargeSubmissionResponse:
    try:
        submission = build_submission(
            email=payload.email,
            name=payload.name,
            phone=payload.phone,
            user_id=payload.user_id,
            username=payload.username,
            requested_credits=payload.requested_credits,
            amount_paid=payload.amount_paid,
            payment_reference=payload.payment_reference,
            receipt_filename=payload.receipt_filename,
            note=payload.note,
        )
    except InvalidRechargeInputError as exc:
        raise HTTPException(status_code=400, detail={"code": "invalid_input", "field": exc.field}) from exc

    settings = get_settings()
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            created = await RechargeService.submit(
                session,
                submission=submission,
                now_utc=now_utc,
                duplicate_window=timedelta(hours=settings.recharge_duplicate_window_hours),
            )
            response = RechargeSubmissionResponse(id=created.id, status=created.status)
    except DuplicatePendingRequestError as exc:
        logger.info("recharge_request_duplicate_pending")
        raise HTTPException(status_code=429, detail={"code": "duplicate_pending"}) from exc
    except SQLAlchemyError as exc:
        logger.exception("recharge_request_submit_failed")
        raise HTTPException(status_code=500, detail={"code": "internal_error"}) from exc

    return response
