from __future__ import annotations

import math
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Any

from app.economy.ledger.constants import BALANCE_FLOOR, PLAN_ALLOWANCES, PLAN_FREE
from app.economy.ledger.types import BalanceSnapshot, UsedPolicy


def is_blocked(credits_remaining: int) -> bool:
    return credits_remaining <= 0


def clamp_balance(value: int) -> int:
    return max(BALANCE_FLOOR, value)


def used_increment(delta: int, *, policy: UsedPolicy) -> int:
    if delta >= 0 or policy == UsedPolicy.NEVER:
        return 0
    return -delta


def apply_delta(snapshot: BalanceSnapshot, *, delta: int, policy: UsedPolicy) -> BalanceSnapshot:
    credits_remaining = clamp_balance(snapshot.credits_remaining + delta)
    return replace(
        snapshot,
        credits_remaining=credits_remaining,
        credits_used=snapshot.credits_used + used_increment(delta, policy=policy),
        blocked=is_blocked(credits_remaining),
    )


def plan_allowance(plan: str) -> int:
    return PLAN_ALLOWANCES.get(plan, PLAN_ALLOWANCES[PLAN_FREE])


def coerce_int(value: Any, *, max_abs: int | None = None) -> int | None:
    """Accepts JSON numbers and numeric strings that denote a whole number.

    Values whose magnitude exceeds ``max_abs`` are rejected like malformed input.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if max_abs is None or abs(value) <= max_abs else None
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        if max_abs is not None and abs(value) > max_abs:
            return None
        return int(value)
    if isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
        try:
            parsed = Decimal(candidate)
        except InvalidOperation:
            return None
        if not parsed.is_finite() or parsed != parsed.to_integral_value():
            return None
        if max_abs is not None and abs(parsed) > max_abs:
            return None
        return int(parsed)
    return None


def coerce_positive_int(value: Any, *, max_value: int | None = None) -> int | None:
    parsed = coerce_int(value, max_abs=max_value)
    if parsed is None or parsed <= 0:
        return None
    return parsed


def normalize_text(value: Any, *, max_length: int) -> str | None:
    if value is None:
        return None
    candidate = str(value).strip()
    if not candidate:
        return None
    return candidate[:max_length]
