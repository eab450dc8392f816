class RechargeError(Exception):
    pass


class InvalidRechargeInputError(RechargeError):
    def __init__(self, field: str) -> None:
        super().__init__(field)
        self.field = field


class DuplicatePendingRequestError(RechargeError):
    pass


class RechargeRequestNotFoundError(RechargeError):
    pass


class RechargeRequestNotPendingError(RechargeError):
    def __init__(self, status: str) -> None:
        super().__init__(status)
        self.status = status


class RechargeRequestAlreadyCreditedError(RechargeError):
    def __init__(self, transaction_id: int) -> None:
        super().__init__(transaction_id)
        self.transaction_id = transaction_id


class RechargeRequestCreditedToOtherAccountError(RechargeError):
    def __init__(self, transaction_id: int) -> None:
        super().__init__(transaction_id)
        self.transaction_id = transaction_id
