from app.economy.adjustments import AdjustmentService
from app.economy.charge import ChargeService
from app.economy.identity import IdentityResolver
from app.economy.ledger import LedgerStore
from app.economy.recharge import RechargeService

__all__ = [
    "AdjustmentService",
    "ChargeService",
    "IdentityResolver",
    "LedgerStore",
    "RechargeService",
]
