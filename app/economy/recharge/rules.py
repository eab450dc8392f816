from __future__ import annotations

import math
import re
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from app.economy.ledger.rules import coerce_positive_int, normalize_text
from app.economy.recharge.constants import (
    ADMIN_NOTE_SEPARATOR,
    ALLOWED_TRANSITIONS,
    MAX_FIELD_LENGTH,
    MAX_PAYMENT_REFERENCE_LENGTH,
    MAX_AMOUNT_PAID,
    MAX_PHONE_LENGTH,
    MAX_REQUESTED_CREDITS,
    STATUS_PENDING,
)
from app.economy.recharge.errors import InvalidRechargeInputError
from app.economy.recharge.types import RechargeSubmission

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    candidate = value.strip().lower()
    if not candidate or len(candidate) > MAX_FIELD_LENGTH or EMAIL_PATTERN.match(candidate) is None:
        return None
    return candidate


def parse_account_id(value: Any) -> UUID | None:
    if value is None:
        return None
    try:
        return UUID(str(value).strip())
    except ValueError:
        return None


def parse_amount_paid(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount < 0 or amount > Decimal(MAX_AMOUNT_PAID):
        return None
    return amount.quantize(Decimal("0.01"))


def join_admin_note(parts: list[str]) -> str | None:
    if not parts:
        return None
    return ADMIN_NOTE_SEPARATOR.join(parts)


def build_submission(
    *,
    email: Any,
    name: Any = None,
    phone: Any = None,
    user_id: Any = None,
    username: Any = None,
    requested_credits: Any = None,
    amount_paid: Any = None,
    payment_reference: Any = None,
    receipt_filename: Any = None,
    note: Any = None,
) -> RechargeSubmission:
    normalized_email = normalize_email(email)
    if normalized_email is None:
        raise InvalidRechargeInputError("email")

    credits = coerce_positive_int(requested_credits, max_value=MAX_REQUESTED_CREDITS)
    if credits is None:
        raise InvalidRechargeInputError("requested_credits")

    paid = parse_amount_paid(amount_paid)
    if paid is None:
        raise InvalidRechargeInputError("amount_paid")

    note_parts: list[str] = []
    raw_user_id = normalize_text(user_id, max_length=MAX_FIELD_LENGTH)
    account_id = parse_account_id(raw_user_id) if raw_user_id is not None else None
    if raw_user_id is not None and account_id is None:
        note_parts.append(f"provided_user_id_not_uuid: {raw_user_id}")

    resolved_username = normalize_text(username, max_length=MAX_FIELD_LENGTH)
    if resolved_username is not None:
        note_parts.append(f"username: {resolved_username}")

    reference = (
        normalize_text(payment_reference, max_length=MAX_PAYMENT_REFERENCE_LENGTH)
        or normalize_text(receipt_filename, max_length=MAX_PAYMENT_REFERENCE_LENGTH)
        or normalize_text(note, max_length=MAX_PAYMENT_REFERENCE_LENGTH)
    )

    return RechargeSubmission(
        email=normalized_email,
        name=normalize_text(name, max_length=MAX_FIELD_LENGTH),
        phone=normalize_text(phone, max_length=MAX_PHONE_LENGTH),
        account_id=account_id,
        requested_credits=credits,
        amount_paid=paid,
        payment_reference=reference,
        admin_note=join_admin_note(note_parts),
    )


def is_duplicate_pending(
    *,
    latest_status: str | None,
    latest_requested_at: datetime | None,
    now_utc: datetime,
    window: timedelta,
) -> bool:
    if latest_status != STATUS_PENDING or latest_requested_at is None:
        return False
    return now_utc - latest_requested_at < window


def can_transition(from_status: str, to_status: str) -> bool:
    return (from_status, to_status) in ALLOWED_TRANSITIONS


def append_admin_note(existing: str | None, addition: str) -> str:
    if not existing:
        return addition
    return f"{existing}{ADMIN_NOTE_SEPARATOR}{addition}"
