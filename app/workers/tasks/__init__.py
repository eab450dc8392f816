from app.workers.tasks.ledger_maintenance import (
    run_ledger_archive,
    run_ledger_chain_audit,
    run_recharge_fulfillment_reconcile,
)

__all__ = [
    "run_ledger_archive",
    "run_ledger_chain_audit",
    "run_recharge_fulfillment_reconcile",
]
