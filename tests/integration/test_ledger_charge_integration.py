from __future__ import annotations

import asyncio

import pytest

from app.db.session import SessionLocal
from app.economy.charge.errors import InsufficientCreditsError
from app.economy.ledger.audit import audit_account
from app.workers.tasks.ledger_maintenance import run_ledger_chain_audit_async
from tests.integration.ledger_fixtures import _charge, _create_account, _get_account, _list_records


@pytest.mark.asyncio
async def test_charges_drain_balance_then_block() -> None:
    account_id = await _create_account("drain", starting_credits=20)

    balances = []
    for _ in range(4):
        result = await _charge(account_id, 5)
        balances.append((result.credits_remaining, result.blocked))

    assert balances == [(15, False), (10, False), (5, False), (0, True)]

    with pytest.raises(InsufficientCreditsError) as exc_info:
        await _charge(account_id, 5)
    assert exc_info.value.credits_remaining == 0

    account = await _get_account(account_id)
    assert account.credits_remaining == 0
    assert account.credits_used == 20
    assert account.blocked is True

    records = await _list_records(account_id)
    assert [(record.before_balance, record.after_balance) for record in records] == [
        (20, 15),
        (15, 10),
        (10, 5),
        (5, 0),
    ]
    assert all(record.action == "session_start" for record in records)


@pytest.mark.asyncio
async def test_single_large_charge_goes_negative_and_blocks() -> None:
    account_id = await _create_account("large-charge", starting_credits=1)

    result = await _charge(account_id, 1000)

    assert result.credits_remaining == -999
    assert result.blocked is True
    with pytest.raises(InsufficientCreditsError):
        await _charge(account_id, 1)
    assert len(await _list_records(account_id)) == 1


@pytest.mark.asyncio
async def test_correlation_token_replays_first_charge() -> None:
    account_id = await _create_account("charge-idempotency", starting_credits=20)

    first = await _charge(account_id, 5, correlation_token="session-42")
    replay = await _charge(account_id, 5, correlation_token="session-42")
    other_action = await _charge(account_id, 5, action="voice_minute", correlation_token="session-42")

    assert first.idempotent_replay is False
    assert replay.idempotent_replay is True
    assert replay.transaction_id == first.transaction_id
    assert replay.credits_remaining == 15
    assert other_action.idempotent_replay is False
    assert other_action.credits_remaining == 10
    assert len(await _list_records(account_id)) == 2


@pytest.mark.asyncio
async def test_replay_after_block_returns_original_result() -> None:
    account_id = await _create_account("replay-after-block", starting_credits=5)

    first = await _charge(account_id, 5, correlation_token="tok-1")
    replay = await _charge(account_id, 5, correlation_token="tok-1")

    assert first.blocked is True
    assert replay.idempotent_replay is True
    assert replay.transaction_id == first.transaction_id


@pytest.mark.asyncio
async def test_parallel_charges_serialize_on_account_lock() -> None:
    account_id = await _create_account("parallel-charges", starting_credits=5)
    barrier = asyncio.Event()

    async def _attempt() -> str:
        await barrier.wait()
        try:
            await _charge(account_id, 1)
        except InsufficientCreditsError:
            return "blocked"
        return "charged"

    tasks = [asyncio.create_task(_attempt()) for _ in range(8)]
    barrier.set()
    outcomes = await asyncio.gather(*tasks)

    assert outcomes.count("charged") == 5
    assert outcomes.count("blocked") == 3

    account = await _get_account(account_id)
    assert account.credits_remaining == 0
    assert account.blocked is True

    async with SessionLocal.begin() as session:
        report = await audit_account(session, account_id)
    assert report.records_checked == 5
    assert report.is_consistent is True


@pytest.mark.asyncio
async def test_chain_audit_job_reports_consistent_ledgers() -> None:
    first = await _create_account("audit-one", starting_credits=10)
    second = await _create_account("audit-two", starting_credits=3)
    await _charge(first, 4)
    await _charge(second, 3)

    result = await run_ledger_chain_audit_async()

    assert result == {"accounts_checked": 2, "inconsistent_accounts": 0}
