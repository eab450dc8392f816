from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.accounts import Account
from app.economy.charge.errors import InsufficientCreditsError, InvalidChargeAmountError
from app.economy.ledger.constants import (
    DEFAULT_CHARGE_ACTION,
    MAX_ACTION_LENGTH,
    MAX_CHARGE_AMOUNT,
    MAX_CORRELATION_TOKEN_LENGTH,
    MAX_NOTE_LENGTH,
)
from app.economy.ledger.rules import coerce_positive_int, normalize_text
from app.economy.ledger.store import LedgerStore
from app.economy.ledger.types import MutationResult, UsedPolicy


def _reject_blocked(account: Account) -> None:
    if account.blocked:
        raise InsufficientCreditsError(credits_remaining=account.credits_remaining)


class ChargeService:
    @staticmethod
    def parse_amount(raw_amount: Any) -> int:
        amount = coerce_positive_int(raw_amount, max_value=MAX_CHARGE_AMOUNT)
        if amount is None:
            raise InvalidChargeAmountError
        return amount

    @staticmethod
    async def charge(
        session: AsyncSession,
        *,
        account_id: UUID,
        raw_amount: Any,
        action: Any,
        note: Any,
        correlation_token: Any,
        now_utc: datetime,
    ) -> MutationResult:
        """Debit a usage charge unless the account is already blocked.

        Only the blocked flag gates a charge; a balance of 1 can absorb a charge of
        1000 and lands negative, bounded by the ledger floor.
        """
        amount = ChargeService.parse_amount(raw_amount)
        resolved_action = normalize_text(action, max_length=MAX_ACTION_LENGTH) or DEFAULT_CHARGE_ACTION

        return await LedgerStore.mutate(
            session,
            account_id=account_id,
            delta=-amount,
            policy=UsedPolicy.ALWAYS_COUNT_USED,
            action=resolved_action,
            now_utc=now_utc,
            note=normalize_text(note, max_length=MAX_NOTE_LENGTH),
            correlation_token=normalize_text(correlation_token, max_length=MAX_CORRELATION_TOKEN_LENGTH),
            guard=_reject_blocked,
        )
