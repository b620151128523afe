from .db import Account as AccountModel
from .db import Transaction as TransactionModel
from .schemas import (
    AccountResponse,
    CreateAccountRequest,
    CreateTransactionRequest,
    ErrorResponse,
)

__all__ = [
    "AccountResponse",
    "CreateAccountRequest",
    "CreateTransactionRequest",
    "ErrorResponse",
    "AccountModel",
    "TransactionModel",
]
