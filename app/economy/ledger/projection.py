from __future__ import annotations

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.accounts import Account
from app.db.repo.accounts_repo import AccountsRepo
from app.economy.ledger.errors import AccountNotFoundError
from app.economy.ledger.rules import plan_allowance
from app.economy.ledger.types import BalanceProjection


def project_balance(account: Account) -> BalanceProjection:
    return BalanceProjection(
        user_id=account.id,
        credits_remaining=account.credits_remaining,
        credits_used=account.credits_used,
        plan=account.plan,
        blocked=account.blocked,
        plan_allowance=plan_allowance(account.plan),
    )


async def read_balance(session: AsyncSession, account_id: UUID) -> BalanceProjection:
    account = await AccountsRepo.get_by_id(session, account_id)
    if account is None:
        raise AccountNotFoundError
    return project_balance(account)
