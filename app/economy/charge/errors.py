class ChargeError(Exception):
    pass


class InvalidChargeAmountError(ChargeError):
    pass


class InsufficientCreditsError(ChargeError):
    def __init__(self, *, credits_remaining: int) -> None:
        super().__init__("account is blocked")
        self.credits_remaining = credits_remaining
        self.blocked = True
