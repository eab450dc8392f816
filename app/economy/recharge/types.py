from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True, slots=True)
class RechargeSubmission:
    email: str
    name: str | None
    phone: str | None
    account_id: UUID | None
    requested_credits: int
    amount_paid: Decimal
    payment_reference: str | None
    admin_note: str | None


@dataclass(slots=True)
class FulfillmentResult:
    request_id: UUID
    transitioned: bool
    status: str
