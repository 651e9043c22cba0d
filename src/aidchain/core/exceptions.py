class LedgerError(Exception):
    """Base class for ledger engine errors."""


class InvalidAmount(LedgerError):
    def __init__(self, amount: int):
        self.amount = amount
        super().__init__(f"Donation amount must be a positive integer, got {amount!r}")


class IndexOutOfBounds(LedgerError):
    def __init__(self, index: int, length: int):
        self.index = index
        self.length = length
        super().__init__(f"Donation index {index} out of bounds for ledger of {length}")


class StaleLedgerState(LedgerError):
    """Raised by a store when the ledger changed since it was loaded."""

    def __init__(self, expected_version: int):
        self.expected_version = expected_version
        super().__init__(f"Ledger state is no longer at version {expected_version}")


class StoreThrottled(LedgerError):
    """Raised by a store when the backing service throttled a call that had no effect."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Ledger store throttled the request ({code})")
