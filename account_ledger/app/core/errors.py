from __future__ import annotations

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base class for every error the ledger core reports to its callers."""

    detail = "ledger_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Raised when input is malformed or out of range."""

    detail = "validation_error"


class ConflictError(LedgerError):
    """Raised when an account already exists or a transfer account is missing."""

    detail = "conflict"


class InsufficientFundsError(LedgerError):
    """Raised when a transfer would drop the source balance below zero."""

    detail = "insufficient_funds"

    def __init__(self, message: str, final_balance: Optional[Decimal] = None) -> None:
        super().__init__(message)
        self.final_balance = final_balance


class NotFoundError(LedgerError):
    """Raised when an account id is missing from the store."""

    detail = "not_found"


class StorageError(LedgerError):
    """Raised when the store fails underneath an operation."""

    detail = "storage_error"

    @classmethod
    def wrap(cls, operation: str, exc: BaseException) -> "StorageError":
        return cls(f"{operation} failed: {exc.__class__.__name__}")


class AbandonedError(StorageError):
    """Raised when a unit is given up because its request was cancelled or timed out."""

    detail = "abandoned"
