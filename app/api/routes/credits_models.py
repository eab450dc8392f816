from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class BalanceResponse(BaseModel):
    user_id: UUID
    credits_remaining: int
    credits_used: int = Field(ge=0)
    plan: str
    blocked: bool
    plan_allowance: int = Field(ge=0)


class ChargeRequest(BaseModel):
    amount: Any = None
    action: str | None = Field(default=None, max_length=256)
    note: str | None = Field(default=None, max_length=4000)
    correlation_token: str | None = Field(default=None, max_length=256)


class ChargeResponse(BaseModel):
    user_id: UUID
    credits_remaining: int
    credits_used: int = Field(ge=0)
    blocked: bool
    transaction_id: int
    idempotent_replay: bool


class RechargeSubmissionRequest(BaseModel):
    email: Any = None
    name: str | None = Field(default=None, max_length=512)
    phone: str | None = Field(default=None, max_length=64)
    user_id: Any = None
    username: str | None = Field(default=None, max_length=512)
    requested_credits: Any = None
    amount_paid: Any = None
    payment_reference: str | None = Field(default=None, max_length=4000)
    receipt_filename: str | None = Field(default=None, max_length=1024)
    note: str | None = Field(default=None, max_length=4000)


class RechargeSubmissionResponse(BaseModel):
    id: UUID
    status: str


class AdjustCreditsRequest(BaseModel):
    user_id: Any = None
    email: Any = None
    change_amount: Any = None
    reason: str | None = Field(default=None, max_length=4000)
    admin_by: str | None = Field(default=None, max_length=64)
    adjust_used: bool = False
    recharge_request_id: Any = None


class AdjustCreditsResponse(BaseModel):
    user: BalanceResponse
    transaction_id: int
    recharge_request_updated: bool
    idempotent_replay: bool


class RechargeRequestResponse(BaseModel):
    id: UUID
    account_id: UUID | None = None
    email: str
    name: str | None = None
    phone: str | None = None
    requested_credits: int
    amount_paid: Decimal
    payment_reference: str | None = None
    status: str
    admin_note: str | None = None
    resolved_by: str | None = None
    requested_at: datetime
    fulfilled_at: datetime | None = None
    rejected_at: datetime | None = None


class RechargeRequestListResponse(BaseModel):
    requests: list[RechargeRequestResponse]


class RejectRechargeRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)
    admin_by: str | None = Field(default=None, max_length=64)


class LedgerRecordResponse(BaseModel):
    id: int
    change_amount: int
    action: str
    before_balance: int
    after_balance: int
    note: str | None = None
    actor: str | None = None
    correlation_token: str | None = None
    recharge_request_id: UUID | None = None
    created_at: datetime
    archived: bool


class ChainBreakResponse(BaseModel):
    transaction_id: int
    expected_before_balance: int
    actual_before_balance: int


class ChainReportResponse(BaseModel):
    records_checked: int = Field(ge=0)
    initial_balance: int
    ending_balance: int
    account_balance: int
    consistent: bool
    breaks: list[ChainBreakResponse]


class AccountLedgerResponse(BaseModel):
    user: BalanceResponse
    records: list[LedgerRecordResponse]
    chain: ChainReportResponse
