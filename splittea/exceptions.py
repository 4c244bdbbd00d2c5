class SplitteaError(Exception):
    """Base exception for the bot. `message` is safe to show to the user."""

    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class InputValidationError(SplitteaError):
    """Malformed input for the current conversation step."""

    def __init__(self, message: str = "Invalid input"):
        super().__init__(message, code="VALIDATION_ERROR")


class GroupNotFoundError(SplitteaError):
    def __init__(self, group_id: int):
        self.group_id = group_id
        super().__init__(f"There is no group with id {group_id}", code="NOT_FOUND")


class IdentityError(SplitteaError):
    """The transport could not tell us who sent the message."""

    def __init__(self, message: str = "😔 Sorry, I can't detect your username 😔"):
        super().__init__(message, code="IDENTITY_ERROR")


class LedgerStoreError(SplitteaError):
    def __init__(self, message: str = "Ledger store failure"):
        super().__init__(message, code="STORE_ERROR")


class SettlementInvariantError(SplitteaError):
    """Signed balances did not sum to zero."""

    def __init__(self, message: str = "Balances do not sum to zero"):
        super().__init__(message, code="INVARIANT_VIOLATION")


class EmptyLedgerError(SplitteaError, ValueError):
    def __init__(self, message: str = "Cannot settle a group without expenses"):
        super().__init__(message, code="EMPTY_LEDGER")
