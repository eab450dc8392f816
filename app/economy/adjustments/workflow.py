from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.exc import SQLAlchemyError

from app.db.session import SessionLocal
from app.economy.adjustments.errors import RechargeFulfillmentFailedError
from app.economy.adjustments.service import AdjustmentService
from app.economy.adjustments.types import AdjustmentCommand, AdjustmentOutcome
from app.economy.recharge.errors import RechargeError
from app.economy.recharge.service import RechargeService
from app.services.alerts import send_ops_alert

logger = structlog.get_logger(__name__)


async def run_admin_adjustment(command: AdjustmentCommand, *, now_utc: datetime) -> AdjustmentOutcome:
    """Commit the balance change, then fulfil the cited recharge request.

    The two writes commit separately. A failure of the second leaves the
    credit in place and raises RechargeFulfillmentFailedError; replaying the
    same command, or the reconcile job, completes the request without a
    second credit.
    """
    async with SessionLocal.begin() as session:
        outcome = await AdjustmentService.apply(session, command=command, now_utc=now_utc)

    if command.recharge_request_id is None:
        return outcome

    try:
        async with SessionLocal.begin() as session:
            fulfillment = await RechargeService.mark_fulfilled(
                session,
                request_id=command.recharge_request_id,
                account_id=outcome.account.user_id,
                admin_id=command.admin_id,
                now_utc=now_utc,
            )
    except (SQLAlchemyError, RechargeError) as exc:
        logger.exception(
            "recharge_fulfillment_failed",
            account_id=str(outcome.account.user_id),
            recharge_request_id=str(command.recharge_request_id),
            transaction_id=outcome.transaction_id,
        )
        await send_ops_alert(
            event="recharge_fulfillment_failed",
            payload={
                "account_id": str(outcome.account.user_id),
                "recharge_request_id": str(command.recharge_request_id),
                "transaction_id": outcome.transaction_id,
                "admin_id": command.admin_id,
            },
        )
        raise RechargeFulfillmentFailedError(outcome) from exc

    outcome.recharge_request_updated = fulfillment.transitioned
    return outcome
