from __future__ import annotations

from app.economy.adjustments.types import AdjustmentOutcome


class AdjustmentError(Exception):
    pass


class InvalidChangeAmountError(AdjustmentError):
    pass


class MissingUserIdentifierError(AdjustmentError):
    pass


class UserNotFoundError(AdjustmentError):
    pass


class RechargeFulfillmentFailedError(AdjustmentError):
    def __init__(self, outcome: AdjustmentOutcome) -> None:
        super().__init__("balance committed, recharge request not fulfilled")
        self.outcome = outcome
