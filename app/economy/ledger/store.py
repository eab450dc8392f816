from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.accounts import Account
from app.db.models.credit_transactions import CreditTransaction
from app.db.repo.accounts_repo import AccountsRepo
from app.db.repo.credit_transactions_repo import CreditTransactionsRepo
from app.economy.ledger.errors import AccountNotFoundError, InvalidDeltaError
from app.economy.ledger.rules import apply_delta
from app.economy.ledger.types import BalanceSnapshot, MutationResult, UsedPolicy

logger = structlog.get_logger(__name__)

MutationGuard = Callable[[Account], None]


class LedgerStore:
    @staticmethod
    def _snapshot_from_model(account: Account) -> BalanceSnapshot:
        return BalanceSnapshot(
            credits_remaining=account.credits_remaining,
            credits_used=account.credits_used,
            blocked=account.blocked,
        )

    @staticmethod
    def _apply_snapshot_to_model(account: Account, snapshot: BalanceSnapshot, now_utc: datetime) -> None:
        account.credits_remaining = snapshot.credits_remaining
        account.credits_used = snapshot.credits_used
        account.blocked = snapshot.blocked
        account.updated_at = now_utc

    @staticmethod
    def _replay_result(account: Account, record: CreditTransaction) -> MutationResult:
        return MutationResult(
            account_id=account.id,
            transaction_id=record.id,
            change_amount=record.change_amount,
            before_balance=record.before_balance,
            credits_remaining=account.credits_remaining,
            credits_used=account.credits_used,
            blocked=account.blocked,
            idempotent_replay=True,
        )

    @staticmethod
    async def mutate(
        session: AsyncSession,
        *,
        account_id: UUID,
        delta: int,
        policy: UsedPolicy,
        action: str,
        now_utc: datetime,
        note: str | None = None,
        actor: str | None = None,
        correlation_token: str | None = None,
        recharge_request_id: UUID | None = None,
        guard: MutationGuard | None = None,
    ) -> MutationResult:
        """Apply a signed delta and append its audit record in the caller's transaction.

        The account row stays locked until the surrounding transaction ends, so
        the balance change and the transaction record commit or roll back together.
        A repeated correlation token for the same action returns the first outcome.
        """
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise InvalidDeltaError

        account = await AccountsRepo.get_by_id_for_update(session, account_id)
        if account is None:
            raise AccountNotFoundError

        if correlation_token is not None:
            existing = await CreditTransactionsRepo.get_by_correlation(
                session,
                account_id=account.id,
                correlation_token=correlation_token,
                action=action,
            )
            if existing is not None:
                logger.info(
                    "ledger_mutation_replayed",
                    account_id=str(account.id),
                    action=action,
                    transaction_id=existing.id,
                )
                return LedgerStore._replay_result(account, existing)

        if guard is not None:
            guard(account)

        before = LedgerStore._snapshot_from_model(account)
        after = apply_delta(before, delta=delta, policy=policy)
        # Per-account records must stay ordered even if the wall clock steps back.
        recorded_at = max(now_utc, account.updated_at)

        record = await CreditTransactionsRepo.create(
            session,
            record=CreditTransaction(
                account_id=account.id,
                change_amount=delta,
                action=action,
                before_balance=before.credits_remaining,
                after_balance=after.credits_remaining,
                note=note,
                actor=actor,
                correlation_token=correlation_token,
                recharge_request_id=recharge_request_id,
                created_at=recorded_at,
            ),
        )
        LedgerStore._apply_snapshot_to_model(account, after, recorded_at)
        await session.flush()

        logger.info(
            "ledger_mutation_applied",
            account_id=str(account.id),
            action=action,
            change_amount=delta,
            before_balance=before.credits_remaining,
            after_balance=after.credits_remaining,
            blocked=after.blocked,
            transaction_id=record.id,
        )
        return MutationResult(
            account_id=account.id,
            transaction_id=record.id,
            change_amount=delta,
            before_balance=before.credits_remaining,
            credits_remaining=after.credits_remaining,
            credits_used=after.credits_used,
            blocked=after.blocked,
        )
