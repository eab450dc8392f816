from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID


class UsedPolicy(str, Enum):
    ALWAYS_COUNT_USED = "always_count_used"
    COUNT_DEBITS = "count_debits"
    NEVER = "never"


@dataclass(frozen=True, slots=True)
class BalanceSnapshot:
    credits_remaining: int
    credits_used: int
    blocked: bool


@dataclass(slots=True)
class MutationResult:
    account_id: UUID
    transaction_id: int
    change_amount: int
    before_balance: int
    credits_remaining: int
    credits_used: int
    blocked: bool
    idempotent_replay: bool = False


@dataclass(slots=True)
class BalanceProjection:
    user_id: UUID
    credits_remaining: int
    credits_used: int
    plan: str
    blocked: bool
    plan_allowance: int


@dataclass(frozen=True, slots=True)
class LedgerLink:
    transaction_id: int
    before_balance: int
    after_balance: int


@dataclass(frozen=True, slots=True)
class ChainBreak:
    transaction_id: int
    expected_before_balance: int
    actual_before_balance: int


@dataclass(slots=True)
class ChainReport:
    account_id: UUID
    records_checked: int
    initial_balance: int
    ending_balance: int
    account_balance: int
    breaks: list[ChainBreak] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.breaks and self.ending_balance == self.account_balance
