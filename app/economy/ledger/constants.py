BALANCE_FLOOR = -1_000_000

PLAN_FREE = "free"
PLAN_PRO = "pro"
PLAN_ALLOWANCES = {
    PLAN_FREE: 50,
    PLAN_PRO: 1200,
}

ACTION_ADMIN_MANUAL_ADJUST = "admin_manual_adjust"
DEFAULT_CHARGE_ACTION = "unknown"
MAX_ACTION_LENGTH = 64
MAX_CORRELATION_TOKEN_LENGTH = 128
MAX_NOTE_LENGTH = 1000
# Column widths: change_amount is BIGINT, requested_credits is INTEGER.
MAX_CHARGE_AMOUNT = 1_000_000_000
MAX_CHANGE_AMOUNT = 1_000_000_000
