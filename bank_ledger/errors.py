"""
Ledger Error Taxonomy

Every failure the ledger reports is a LedgerError subclass tagged with an
ErrorKind, so callers can branch on the kind instead of parsing messages.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Kinds of per-request failures"""
    NOT_FOUND = "not_found"
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INVALID_CURRENCY = "invalid_currency"
    CONFLICT = "conflict"
    EMPTY_RESULT = "empty_result"
    CONCURRENT_UPDATE = "concurrent_update"


class LedgerError(Exception):
    """Base class for all ledger errors"""

    kind: ErrorKind
    retryable: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Structured form for logging or transport layers"""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class AccountNotFoundError(LedgerError):
    kind = ErrorKind.NOT_FOUND


class UserNotFoundError(LedgerError):
    kind = ErrorKind.NOT_FOUND


class InvalidAmountError(LedgerError):
    kind = ErrorKind.INVALID_AMOUNT


class InsufficientFundsError(LedgerError):
    kind = ErrorKind.INSUFFICIENT_FUNDS


class InvalidCurrencyError(LedgerError):
    kind = ErrorKind.INVALID_CURRENCY


class ConflictError(LedgerError):
    """Account number already taken by another account"""
    kind = ErrorKind.CONFLICT


class EmptyResultError(LedgerError):
    """Holder has no accounts"""
    kind = ErrorKind.EMPTY_RESULT


class StaleAccountError(LedgerError):
    """Optimistic-lock miss: the stored version moved since it was read"""
    kind = ErrorKind.CONCURRENT_UPDATE
    retryable = True


class ConcurrentUpdateError(LedgerError):
    """Optimistic-lock retries exhausted; the caller may retry the request"""
    kind = ErrorKind.CONCURRENT_UPDATE
    retryable = True
