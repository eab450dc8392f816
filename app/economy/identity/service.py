from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.accounts import Account
from app.db.repo.accounts_repo import AccountsRepo
from app.economy.identity.errors import IdentityMissingError, IdentityResolutionError
from app.economy.identity.types import CallerIdentity, ResolvedAccount

logger = structlog.get_logger(__name__)

MAX_RESOLVE_ATTEMPTS = 3


class IdentityResolver:
    @staticmethod
    async def _link_external_id(session: AsyncSession, account: Account, external_id: str) -> None:
        async with session.begin_nested():
            account.external_identity_id = external_id
            await session.flush()
        logger.info("identity_external_id_linked", account_id=str(account.id))

    @staticmethod
    async def lookup(session: AsyncSession, identity: CallerIdentity) -> Account | None:
        normalized = identity.normalized()
        if normalized.external_id is not None:
            account = await AccountsRepo.get_by_external_identity_id(session, normalized.external_id)
            if account is not None:
                return account
        if normalized.email is not None:
            return await AccountsRepo.get_by_email(session, normalized.email)
        return None

    @staticmethod
    async def resolve(
        session: AsyncSession,
        identity: CallerIdentity,
        *,
        now_utc: datetime,
        starting_credits: int,
    ) -> ResolvedAccount:
        """Return the caller's account, provisioning it on first sight.

        Concurrent first requests for one identity converge on a single account:
        the losing insert hits a unique index and re-reads the winner's row.
        """
        normalized = identity.normalized()
        if normalized.is_empty:
            raise IdentityMissingError

        for attempt in range(1, MAX_RESOLVE_ATTEMPTS + 1):
            try:
                account = await IdentityResolver.lookup(session, normalized)
                if account is not None:
                    if normalized.external_id is not None and account.external_identity_id is None:
                        await IdentityResolver._link_external_id(session, account, normalized.external_id)
                    elif (
                        normalized.external_id is not None
                        and account.external_identity_id != normalized.external_id
                    ):
                        logger.warning(
                            "identity_email_bound_to_other_subject",
                            account_id=str(account.id),
                        )
                    return ResolvedAccount(account_id=account.id, created=False)

                async with session.begin_nested():
                    account = await AccountsRepo.create(
                        session,
                        external_identity_id=normalized.external_id,
                        email=normalized.email,
                        starting_credits=starting_credits,
                        now_utc=now_utc,
                    )
            except IntegrityError:
                logger.info("identity_resolve_conflict_retry", attempt=attempt)
                continue

            logger.info(
                "account_provisioned",
                account_id=str(account.id),
                starting_credits=starting_credits,
            )
            return ResolvedAccount(account_id=account.id, created=True)

        raise IdentityResolutionError
