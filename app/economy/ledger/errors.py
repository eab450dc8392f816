class LedgerError(Exception):
    pass


class AccountNotFoundError(LedgerError):
    pass


class InvalidDeltaError(LedgerError):
    pass
