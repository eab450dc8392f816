from app.economy.ledger.store import LedgerStore

__all__ = ["LedgerStore"]
