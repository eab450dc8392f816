from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

import pytest

from app.db.repo.recharge_requests_repo import RechargeRequestsRepo
from app.db.session import SessionLocal
from app.economy.adjustments import workflow as adjustment_workflow
from app.economy.adjustments.errors import RechargeFulfillmentFailedError, UserNotFoundError
from app.economy.adjustments.service import AdjustmentService
from app.economy.adjustments.workflow import run_admin_adjustment
from app.economy.recharge.errors import (
    DuplicatePendingRequestError,
    RechargeRequestAlreadyCreditedError,
    RechargeRequestCreditedToOtherAccountError,
    RechargeRequestNotPendingError,
)
from app.economy.recharge.rules import build_submission
from app.economy.recharge.service import RechargeService
from app.workers.tasks.ledger_maintenance import run_recharge_fulfillment_reconcile_async
from tests.integration.ledger_fixtures import UTC, _create_account, _get_account, _list_records

DUPLICATE_WINDOW = timedelta(hours=72)


async def _submit(email: str, *, now_utc: datetime, user_id: str | None = None, credits: int = 120) -> UUID:
    submission = build_submission(
        email=email,
        name="Dana",
        phone=None,
        user_id=user_id,
        username=None,
        requested_credits=credits,
        amount_paid="12.00",
        payment_reference="INV-1",
        receipt_filename=None,
        note=None,
    )
    async with SessionLocal.begin() as session:
        request = await RechargeService.submit(
            session,
            submission=submission,
            now_utc=now_utc,
            duplicate_window=DUPLICATE_WINDOW,
        )
        return request.id


async def _get_request(request_id: UUID):
    async with SessionLocal.begin() as session:
        request = await RechargeRequestsRepo.get_by_id(session, request_id)
        assert request is not None
        return request


def _command(account_id: UUID, amount: int, *, request_id: UUID | None = None, adjust_used: bool = False):
    return AdjustmentService.parse_command(
        user_id=str(account_id),
        email=None,
        change_amount=amount,
        admin_id="ops-1",
        reason="bank transfer",
        adjust_used=adjust_used,
        recharge_request_id=str(request_id) if request_id is not None else None,
    )


@pytest.mark.asyncio
async def test_duplicate_pending_window_applies_per_email() -> None:
    now_utc = datetime.now(UTC)
    first_id = await _submit("payer@example.com", now_utc=now_utc)

    with pytest.raises(DuplicatePendingRequestError):
        await _submit("PAYER@example.com", now_utc=now_utc + timedelta(hours=1))

    later_id = await _submit("payer@example.com", now_utc=now_utc + timedelta(hours=73))
    assert later_id != first_id

    async with SessionLocal.begin() as session:
        await RechargeService.reject(
            session,
            request_id=later_id,
            admin_id="ops-1",
            reason="no payment found",
            now_utc=now_utc + timedelta(hours=74),
        )
    after_reject_id = await _submit("payer@example.com", now_utc=now_utc + timedelta(hours=75))

    rejected = await _get_request(later_id)
    assert rejected.status == "rejected"
    assert rejected.resolved_by == "ops-1"
    assert "no payment found" in (rejected.admin_note or "")
    assert (await _get_request(after_reject_id)).status == "pending"


@pytest.mark.asyncio
async def test_unknown_account_id_is_detached_and_noted() -> None:
    request_id = await _submit(
        "stranger@example.com",
        now_utc=datetime.now(UTC),
        user_id="7b1f4f62-2f57-4e0c-8a4d-2a0b3b1bb7a1",
    )

    request = await _get_request(request_id)
    assert request.account_id is None
    assert request.amount_paid == Decimal("12.00")
    assert "provided_user_id_unknown: 7b1f4f62-2f57-4e0c-8a4d-2a0b3b1bb7a1" in (request.admin_note or "")


@pytest.mark.asyncio
async def test_blocked_account_recharge_unblocks_without_touching_used() -> None:
    account_id = await _create_account("blocked-topup", starting_credits=0)
    before = await _get_account(account_id)
    assert before.blocked is True

    outcome = await run_admin_adjustment(_command(account_id, 120), now_utc=datetime.now(UTC))

    assert outcome.idempotent_replay is False
    assert outcome.account.credits_remaining == 120
    assert outcome.account.blocked is False
    assert outcome.account.credits_used == 0

    records = await _list_records(account_id)
    assert len(records) == 1
    assert (records[0].before_balance, records[0].after_balance) == (0, 120)
    assert records[0].action == "admin_manual_adjust"
    assert records[0].actor == "ops-1"
    assert records[0].note == "bank transfer — admin:ops-1"


@pytest.mark.asyncio
async def test_large_debit_clamps_at_floor() -> None:
    account_id = await _create_account("floor-clamp", starting_credits=10)

    outcome = await run_admin_adjustment(_command(account_id, -2_000_000, adjust_used=True), now_utc=datetime.now(UTC))

    assert outcome.account.credits_remaining == -1_000_000
    assert outcome.account.blocked is True
    assert outcome.account.credits_used == 2_000_000
    records = await _list_records(account_id)
    assert records[0].change_amount == -2_000_000
    assert records[0].after_balance == -1_000_000


@pytest.mark.asyncio
async def test_unknown_target_account_is_rejected() -> None:
    command = AdjustmentService.parse_command(
        user_id=None,
        email="nobody@example.com",
        change_amount=10,
        admin_id="ops-1",
    )
    with pytest.raises(UserNotFoundError):
        await run_admin_adjustment(command, now_utc=datetime.now(UTC))


@pytest.mark.asyncio
async def test_recharge_credit_fulfils_request() -> None:
    account_id = await _create_account("recharge-credit", starting_credits=5)
    request_id = await _submit("recharge-credit@example.com", now_utc=datetime.now(UTC), user_id=str(account_id))

    outcome = await run_admin_adjustment(_command(account_id, 120, request_id=request_id), now_utc=datetime.now(UTC))

    assert outcome.recharge_request_updated is True
    assert outcome.account.credits_remaining == 125
    request = await _get_request(request_id)
    assert request.status == "fulfilled"
    assert request.resolved_by == "ops-1"
    assert request.fulfilled_at is not None
    assert "fulfilled by admin:ops-1" in (request.admin_note or "")

    other_account = await _create_account("recharge-credit-other", starting_credits=5)
    with pytest.raises(RechargeRequestCreditedToOtherAccountError):
        await run_admin_adjustment(_command(other_account, 120, request_id=request_id), now_utc=datetime.now(UTC))


@pytest.mark.asyncio
async def test_fulfillment_failure_keeps_credit_and_replay_completes(monkeypatch) -> None:
    account_id = await _create_account("recharge-retry", starting_credits=5)
    request_id = await _submit("recharge-retry@example.com", now_utc=datetime.now(UTC))
    original_mark_fulfilled = RechargeService.mark_fulfilled
    alerts: list[str] = []
    calls = {"count": 0}

    async def _flaky_mark_fulfilled(session, **kwargs):
        calls["count"] += 1
        if calls["count"] == 1:
            raise RechargeRequestNotPendingError("pending")
        return await original_mark_fulfilled(session, **kwargs)

    async def _capture_alert(*, event: str, payload: dict[str, object]) -> None:
        alerts.append(event)

    monkeypatch.setattr(RechargeService, "mark_fulfilled", staticmethod(_flaky_mark_fulfilled))
    monkeypatch.setattr(adjustment_workflow, "send_ops_alert", _capture_alert)

    with pytest.raises(RechargeFulfillmentFailedError) as exc_info:
        await run_admin_adjustment(_command(account_id, 120, request_id=request_id), now_utc=datetime.now(UTC))

    assert exc_info.value.outcome.account.credits_remaining == 125
    assert alerts == ["recharge_fulfillment_failed"]
    assert (await _get_account(account_id)).credits_remaining == 125
    assert (await _get_request(request_id)).status == "pending"

    replay = await run_admin_adjustment(_command(account_id, 120, request_id=request_id), now_utc=datetime.now(UTC))

    assert replay.idempotent_replay is True
    assert replay.recharge_request_updated is True
    assert replay.account.credits_remaining == 125
    assert len(await _list_records(account_id)) == 1
    request = await _get_request(request_id)
    assert request.status == "fulfilled"
    assert request.account_id == account_id


@pytest.mark.asyncio
async def test_reconcile_job_fulfils_credited_pending_requests(monkeypatch) -> None:
    past_utc = datetime.now(UTC) - timedelta(minutes=10)
    account_id = await _create_account("reconcile", starting_credits=5, now_utc=past_utc)
    request_id = await _submit("reconcile@example.com", now_utc=past_utc, user_id=str(account_id))

    async def _always_fail(session, **kwargs):
        raise RechargeRequestNotPendingError("pending")

    async def _noop_alert(*, event: str, payload: dict[str, object]) -> None:
        return None

    with monkeypatch.context() as patch:
        patch.setattr(RechargeService, "mark_fulfilled", staticmethod(_always_fail))
        patch.setattr(adjustment_workflow, "send_ops_alert", _noop_alert)
        with pytest.raises(RechargeFulfillmentFailedError):
            await run_admin_adjustment(_command(account_id, 50, request_id=request_id), now_utc=past_utc)

    result = await run_recharge_fulfillment_reconcile_async()

    assert result == {"candidates": 1, "fulfilled": 1, "failed": 0}
    request = await _get_request(request_id)
    assert request.status == "fulfilled"
    assert request.resolved_by == "ops-1"
    assert (await _get_account(account_id)).credits_remaining == 55

    assert await run_recharge_fulfillment_reconcile_async() == {"candidates": 0, "fulfilled": 0, "failed": 0}


@pytest.mark.asyncio
async def test_fulfilled_request_no_longer_blocks_submissions() -> None:
    now_utc = datetime.now(UTC)
    account_id = await _create_account("repeat-buyer", starting_credits=5)
    first_id = await _submit("repeat-buyer@example.com", now_utc=now_utc, user_id=str(account_id))

    await run_admin_adjustment(_command(account_id, 120, request_id=first_id), now_utc=now_utc)
    assert (await _get_request(first_id)).status == "fulfilled"

    second_id = await _submit("repeat-buyer@example.com", now_utc=now_utc + timedelta(minutes=5))

    assert second_id != first_id
    assert (await _get_request(second_id)).status == "pending"


@pytest.mark.asyncio
async def test_credited_request_cannot_be_rejected(monkeypatch) -> None:
    account_id = await _create_account("credited-reject", starting_credits=5)
    request_id = await _submit("credited-reject@example.com", now_utc=datetime.now(UTC))

    async def _always_fail(session, **kwargs):
        raise RechargeRequestNotPendingError("pending")

    async def _noop_alert(*, event: str, payload: dict[str, object]) -> None:
        return None

    with monkeypatch.context() as patch:
        patch.setattr(RechargeService, "mark_fulfilled", staticmethod(_always_fail))
        patch.setattr(adjustment_workflow, "send_ops_alert", _noop_alert)
        with pytest.raises(RechargeFulfillmentFailedError):
            await run_admin_adjustment(_command(account_id, 120, request_id=request_id), now_utc=datetime.now(UTC))

    with pytest.raises(RechargeRequestAlreadyCreditedError) as exc_info:
        async with SessionLocal.begin() as session:
            await RechargeService.reject(
                session,
                request_id=request_id,
                admin_id="ops-2",
                reason="duplicate payment",
                now_utc=datetime.now(UTC),
            )

    records = await _list_records(account_id)
    assert exc_info.value.transaction_id == records[0].id
    assert (await _get_request(request_id)).status == "pending"
    assert (await _get_account(account_id)).credits_remaining == 125

    replay = await run_admin_adjustment(_command(account_id, 120, request_id=request_id), now_utc=datetime.now(UTC))

    assert replay.idempotent_replay is True
    assert replay.recharge_request_updated is True
    assert (await _get_request(request_id)).status == "fulfilled"
    assert len(await _list_records(account_id)) == 1
