STATUS_PENDING = "pending"
STATUS_FULFILLED = "fulfilled"
STATUS_REJECTED = "rejected"
RECHARGE_STATUSES = frozenset({STATUS_PENDING, STATUS_FULFILLED, STATUS_REJECTED})

ALLOWED_TRANSITIONS = frozenset(
    {
        (STATUS_PENDING, STATUS_FULFILLED),
        (STATUS_PENDING, STATUS_REJECTED),
    }
)

ADMIN_NOTE_SEPARATOR = " | "
MAX_PAYMENT_REFERENCE_LENGTH = 1000
MAX_FIELD_LENGTH = 255
MAX_PHONE_LENGTH = 32
MAX_AMOUNT_PAID = "9999999999.99"
MAX_REQUESTED_CREDITS = 1_000_000_000
