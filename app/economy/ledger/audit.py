from __future__ import annotations

from collections.abc import Iterable, Sequence
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.credit_transactions import CreditTransaction
from app.db.repo.accounts_repo import AccountsRepo
from app.db.repo.credit_transactions_repo import CreditTransactionsRepo
from app.economy.ledger.errors import AccountNotFoundError
from app.economy.ledger.types import ChainBreak, ChainReport, LedgerLink

logger = structlog.get_logger(__name__)


def links_from_records(records: Iterable[CreditTransaction]) -> list[LedgerLink]:
    return [
        LedgerLink(
            transaction_id=record.id,
            before_balance=record.before_balance,
            after_balance=record.after_balance,
        )
        for record in records
    ]


def verify_chain(*, initial_balance: int, links: Sequence[LedgerLink]) -> list[ChainBreak]:
    breaks: list[ChainBreak] = []
    expected_before = initial_balance
    for link in links:
        if link.before_balance != expected_before:
            breaks.append(
                ChainBreak(
                    transaction_id=link.transaction_id,
                    expected_before_balance=expected_before,
                    actual_before_balance=link.before_balance,
                )
            )
        expected_before = link.after_balance
    return breaks


def build_chain_report(
    *,
    account_id: UUID,
    initial_balance: int,
    account_balance: int,
    links: Sequence[LedgerLink],
) -> ChainReport:
    ending_balance = links[-1].after_balance if links else initial_balance
    return ChainReport(
        account_id=account_id,
        records_checked=len(links),
        initial_balance=initial_balance,
        ending_balance=ending_balance,
        account_balance=account_balance,
        breaks=verify_chain(initial_balance=initial_balance, links=links),
    )


async def audit_account(session: AsyncSession, account_id: UUID) -> ChainReport:
    account = await AccountsRepo.get_by_id(session, account_id)
    if account is None:
        raise AccountNotFoundError

    records = await CreditTransactionsRepo.list_for_account(session, account_id=account.id)
    report = build_chain_report(
        account_id=account.id,
        initial_balance=account.initial_credits,
        account_balance=account.credits_remaining,
        links=links_from_records(records),
    )
    if not report.is_consistent:
        logger.warning(
            "ledger_chain_inconsistent",
            account_id=str(account.id),
            breaks=len(report.breaks),
            ending_balance=report.ending_balance,
            account_balance=report.account_balance,
        )
    return report
