"""
btcbridge Exceptions

Custom exception classes for the bridge ledger.

Every rejected bridge operation raises a ``BridgeError`` subclass carrying one
of the stable numeric ``ErrorCode`` values. Administrative and core operations
share the same taxonomy.
"""

from enum import IntEnum
from typing import Dict, Type


class ErrorCode(IntEnum):
    """Stable numeric identifiers surfaced to callers."""
    NOT_AUTHORIZED                = 1
    INVALID_AMOUNT                = 2
    INSUFFICIENT_BALANCE          = 3
    BRIDGE_PAUSED                 = 4
    TRANSACTION_ALREADY_PROCESSED = 5
    ORACLE_VALIDATION_FAILED      = 6
    INVALID_RECIPIENT             = 7
    MAX_DEPOSIT_EXCEEDED          = 8
    INVALID_TX_HASH               = 9


class BridgeException(Exception):
    """Base exception for btcbridge."""
    pass


class BridgeError(BridgeException):
    """A bridge operation was rejected. The whole operation is rolled back."""

    code: ErrorCode

    def __init__(self, message: str = ""):
        super().__init__(message or self.code.name.replace("_", " ").lower())
        self.message = str(self)

    def to_dict(self) -> dict:
        return {
            "code": int(self.code),
            "name": self.code.name,
            "message": self.message,
        }


class NotAuthorizedError(BridgeError):
    """Caller is not the owner, or not a registered oracle."""
    code = ErrorCode.NOT_AUTHORIZED


class InvalidAmountError(BridgeError):
    """Amount, fee rate or deposit ceiling outside its allowed range."""
    code = ErrorCode.INVALID_AMOUNT


class InsufficientBalanceError(BridgeError):
    """Holder balance is lower than the requested withdrawal."""
    code = ErrorCode.INSUFFICIENT_BALANCE


class BridgePausedError(BridgeError):
    """Bridge is paused."""
    code = ErrorCode.BRIDGE_PAUSED


class TransactionAlreadyProcessedError(BridgeError):
    """External transaction id was already consumed."""
    code = ErrorCode.TRANSACTION_ALREADY_PROCESSED


class OracleValidationFailedError(BridgeError):
    """The oracle attestation collaborator refused the deposit."""
    code = ErrorCode.ORACLE_VALIDATION_FAILED


class InvalidRecipientError(BridgeError):
    """Account is null, equals the caller, or is not whitelisted."""
    code = ErrorCode.INVALID_RECIPIENT


class MaxDepositExceededError(BridgeError):
    """Deposit amount is above the configured ceiling."""
    code = ErrorCode.MAX_DEPOSIT_EXCEEDED


class InvalidTxHashError(BridgeError):
    """External transaction id is empty, too short or too long."""
    code = ErrorCode.INVALID_TX_HASH


_ERRORS_BY_CODE: Dict[ErrorCode, Type[BridgeError]] = {
    cls.code: cls
    for cls in (
        NotAuthorizedError,
        InvalidAmountError,
        InsufficientBalanceError,
        BridgePausedError,
        TransactionAlreadyProcessedError,
        OracleValidationFailedError,
        InvalidRecipientError,
        MaxDepositExceededError,
        InvalidTxHashError,
    )
}


def error_for_code(code: int) -> Type[BridgeError]:
    """Map a numeric error code back to its exception class."""
    return _ERRORS_BY_CODE[ErrorCode(code)]


class ConfigurationError(BridgeException):
    """Configuration error."""
    pass


class StateStoreError(BridgeException):
    """Persisted bridge state could not be read or written."""
    pass
