from __future__ import annotations

from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import get_settings
from app.db.repo.accounts_repo import AccountsRepo
from app.db.repo.credit_transactions_repo import CreditTransactionsRepo
from app.db.session import SessionLocal
from app.economy.ledger.audit import audit_account
from app.economy.recharge.errors import RechargeError
from app.economy.recharge.service import RechargeService
from app.services.alerts import send_ops_alert
from app.workers.asyncio_runner import run_async_job
from app.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)
RECONCILE_GRACE_PERIOD = timedelta(minutes=2)
RECONCILE_BATCH_SIZE = 200
RECONCILE_ACTOR_FALLBACK = "reconcile"
CHAIN_AUDIT_LOOKBACK = timedelta(hours=25)
CHAIN_AUDIT_BATCH_SIZE = 2000


async def run_recharge_fulfillment_reconcile_async() -> dict[str, int]:
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        records = await CreditTransactionsRepo.list_unfulfilled_recharge_credits(
            session,
            older_than_utc=now_utc - RECONCILE_GRACE_PERIOD,
            limit=RECONCILE_BATCH_SIZE,
        )
        pending = [
            (record.recharge_request_id, record.account_id, record.actor or RECONCILE_ACTOR_FALLBACK)
            for record in records
            if record.recharge_request_id is not None
        ]

    fulfilled = 0
    failed = 0
    for request_id, account_id, admin_id in pending:
        try:
            async with SessionLocal.begin() as session:
                result = await RechargeService.mark_fulfilled(
                    session,
                    request_id=request_id,
                    account_id=account_id,
                    admin_id=admin_id,
                    now_utc=now_utc,
                )
        except (SQLAlchemyError, RechargeError):
            failed += 1
            logger.exception("recharge_fulfillment_reconcile_item_failed", recharge_request_id=str(request_id))
            continue
        if result.transitioned:
            fulfilled += 1

    result = {"candidates": len(pending), "fulfilled": fulfilled, "failed": failed}
    if failed > 0:
        await send_ops_alert(event="recharge_fulfillment_reconcile_failed", payload=result)
        logger.warning("recharge_fulfillment_reconcile_incomplete", **result)
    else:
        logger.info("recharge_fulfillment_reconcile_finished", **result)
    return result


async def run_ledger_chain_audit_async() -> dict[str, int]:
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        accounts = await AccountsRepo.list_updated_since(
            session,
            since_utc=now_utc - CHAIN_AUDIT_LOOKBACK,
            limit=CHAIN_AUDIT_BATCH_SIZE,
        )
        account_ids = [account.id for account in accounts]

    inconsistent: list[str] = []
    async with SessionLocal.begin() as session:
        for account_id in account_ids:
            report = await audit_account(session, account_id)
            if not report.is_consistent:
                inconsistent.append(str(account_id))

    result = {"accounts_checked": len(account_ids), "inconsistent_accounts": len(inconsistent)}
    if inconsistent:
        await send_ops_alert(
            event="ledger_chain_break_detected",
            payload={**result, "account_ids": inconsistent[:50]},
        )
        logger.error("ledger_chain_break_detected", **result)
    else:
        logger.info("ledger_chain_audit_finished", **result)
    return result


async def run_ledger_archive_async() -> dict[str, int]:
    now_utc = datetime.now(timezone.utc)
    cutoff_utc = now_utc - timedelta(days=get_settings().ledger_archive_after_days)
    async with SessionLocal.begin() as session:
        archived = await CreditTransactionsRepo.archive_older_than(session, older_than_utc=cutoff_utc)

    result = {"archived_records": archived}
    logger.info("ledger_archive_finished", **result)
    return result


@celery_app.task(name="app.workers.tasks.ledger_maintenance.run_recharge_fulfillment_reconcile")
def run_recharge_fulfillment_reconcile() -> dict[str, int]:
    return run_async_job(run_recharge_fulfillment_reconcile_async(), job_name="run_recharge_fulfillment_reconcile")


@celery_app.task(name="app.workers.tasks.ledger_maintenance.run_ledger_chain_audit")
def run_ledger_chain_audit() -> dict[str, int]:
    return run_async_job(run_ledger_chain_audit_async(), job_name="run_ledger_chain_audit")


@celery_app.task(name="app.workers.tasks.ledger_maintenance.run_ledger_archive")
def run_ledger_archive() -> dict[str, int]:
    return run_async_job(run_ledger_archive_async(), job_name="run_ledger_archive")


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "recharge-fulfillment-reconcile-every-5-minutes": {
            "task": "app.workers.tasks.ledger_maintenance.run_recharge_fulfillment_reconcile",
            "schedule": 300.0,
            "options": {"queue": "q_normal"},
        },
        "ledger-chain-audit-hourly": {
            "task": "app.workers.tasks.ledger_maintenance.run_ledger_chain_audit",
            "schedule": 3600.0,
            "options": {"queue": "q_normal"},
        },
        "ledger-archive-daily": {
            "task": "app.workers.tasks.ledger_maintenance.run_ledger_archive",
            "schedule": 86400.0,
            "options": {"queue": "q_normal"},
        },
    }
)
