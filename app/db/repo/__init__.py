from app.db.repo.accounts_repo import AccountsRepo
from app.db.repo.credit_transactions_repo import CreditTransactionsRepo
from app.db.repo.recharge_requests_repo import RechargeRequestsRepo

__all__ = [
    "AccountsRepo",
    "CreditTransactionsRepo",
    "RechargeRequestsRepo",
]
