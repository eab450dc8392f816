from app.db.models.accounts import Account
from app.db.models.base import Base
from app.db.models.credit_transactions import CreditTransaction
from app.db.models.recharge_requests import RechargeRequest

__all__ = [
    "Account",
    "Base",
    "CreditTransaction",
    "RechargeRequest",
]
