from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.accounts import Account
from app.db.repo.accounts_repo import AccountsRepo
from app.db.repo.credit_transactions_repo import CreditTransactionsRepo
from app.db.repo.recharge_requests_repo import RechargeRequestsRepo
from app.economy.adjustments.errors import (
    InvalidChangeAmountError,
    MissingUserIdentifierError,
    UserNotFoundError,
)
from app.economy.adjustments.types import AdjustmentCommand, AdjustmentOutcome
from app.economy.ledger.constants import ACTION_ADMIN_MANUAL_ADJUST, MAX_CHANGE_AMOUNT, MAX_NOTE_LENGTH
from app.economy.ledger.projection import project_balance
from app.economy.ledger.rules import coerce_int, normalize_text
from app.economy.ledger.store import LedgerStore
from app.economy.ledger.types import UsedPolicy
from app.economy.recharge.constants import STATUS_PENDING
from app.economy.recharge.errors import (
    RechargeRequestCreditedToOtherAccountError,
    RechargeRequestNotFoundError,
    RechargeRequestNotPendingError,
)
from app.economy.recharge.rules import parse_account_id

logger = structlog.get_logger(__name__)


def build_adjustment_note(*, reason: str | None, admin_id: str) -> str:
    return f"{reason or ACTION_ADMIN_MANUAL_ADJUST} — admin:{admin_id}"


def used_policy_for(adjust_used: bool) -> UsedPolicy:
    return UsedPolicy.COUNT_DEBITS if adjust_used else UsedPolicy.NEVER


class AdjustmentService:
    @staticmethod
    def parse_command(
        *,
        user_id: Any,
        email: Any,
        change_amount: Any,
        admin_id: str,
        reason: Any = None,
        adjust_used: Any = False,
        recharge_request_id: Any = None,
    ) -> AdjustmentCommand:
        amount = coerce_int(change_amount, max_abs=MAX_CHANGE_AMOUNT)
        if amount is None:
            raise InvalidChangeAmountError

        raw_user_id = normalize_text(user_id, max_length=64)
        resolved_email = normalize_text(email, max_length=255)
        if raw_user_id is None and resolved_email is None:
            raise MissingUserIdentifierError

        account_id = None
        if raw_user_id is not None:
            account_id = parse_account_id(raw_user_id)
            if account_id is None:
                raise UserNotFoundError

        request_id = None
        raw_request_id = normalize_text(recharge_request_id, max_length=64)
        if raw_request_id is not None:
            request_id = parse_account_id(raw_request_id)
            if request_id is None:
                raise RechargeRequestNotFoundError

        return AdjustmentCommand(
            account_id=account_id,
            email=resolved_email.lower() if resolved_email is not None else None,
            change_amount=amount,
            admin_id=admin_id,
            reason=normalize_text(reason, max_length=MAX_NOTE_LENGTH),
            adjust_used=adjust_used is True,
            recharge_request_id=request_id,
        )

    @staticmethod
    async def resolve_target(session: AsyncSession, command: AdjustmentCommand) -> Account:
        account = None
        if command.account_id is not None:
            account = await AccountsRepo.get_by_id(session, command.account_id)
        elif command.email is not None:
            account = await AccountsRepo.get_by_email(session, command.email)
        if account is None:
            raise UserNotFoundError
        return account

    @staticmethod
    async def apply(
        session: AsyncSession,
        *,
        command: AdjustmentCommand,
        now_utc: datetime,
    ) -> AdjustmentOutcome:
        """Credit or debit the target account inside the caller's transaction.

        When a recharge request is cited it is locked first. A request that
        already has a crediting transaction is treated as a replay: no second
        credit is written and the caller only retries the fulfillment.
        """
        account = await AdjustmentService.resolve_target(session, command)

        if command.recharge_request_id is not None:
            request = await RechargeRequestsRepo.get_by_id_for_update(session, command.recharge_request_id)
            if request is None:
                raise RechargeRequestNotFoundError

            prior = await CreditTransactionsRepo.get_by_recharge_request_id(session, request.id)
            if prior is not None:
                if prior.account_id != account.id:
                    raise RechargeRequestCreditedToOtherAccountError(prior.id)
                logger.info(
                    "admin_adjust_replayed",
                    account_id=str(account.id),
                    recharge_request_id=str(request.id),
                    transaction_id=prior.id,
                )
                return AdjustmentOutcome(
                    account=project_balance(account),
                    transaction_id=prior.id,
                    idempotent_replay=True,
                    recharge_request_id=request.id,
                )
            if request.status != STATUS_PENDING:
                raise RechargeRequestNotPendingError(request.status)

        mutation = await LedgerStore.mutate(
            session,
            account_id=account.id,
            delta=command.change_amount,
            policy=used_policy_for(command.adjust_used),
            action=ACTION_ADMIN_MANUAL_ADJUST,
            now_utc=now_utc,
            note=build_adjustment_note(reason=command.reason, admin_id=command.admin_id),
            actor=command.admin_id,
            recharge_request_id=command.recharge_request_id,
        )
        logger.info(
            "admin_adjust_applied",
            account_id=str(account.id),
            admin_id=command.admin_id,
            change_amount=command.change_amount,
            credits_remaining=mutation.credits_remaining,
            recharge_request_id=str(command.recharge_request_id) if command.recharge_request_id else None,
        )
        return AdjustmentOutcome(
            account=project_balance(account),
            transaction_id=mutation.transaction_id,
            idempotent_replay=False,
            recharge_request_id=command.recharge_request_id,
        )
