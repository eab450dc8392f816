from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from app.economy.ledger.types import BalanceProjection


@dataclass(frozen=True, slots=True)
class AdjustmentCommand:
    account_id: UUID | None
    email: str | None
    change_amount: int
    admin_id: str
    reason: str | None
    adjust_used: bool
    recharge_request_id: UUID | None


@dataclass(slots=True)
class AdjustmentOutcome:
    account: BalanceProjection
    transaction_id: int
    idempotent_replay: bool
    recharge_request_id: UUID | None = None
    recharge_request_updated: bool = False
