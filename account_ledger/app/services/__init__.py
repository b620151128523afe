from .accounts import AccountService
from .base import AccountServiceBase, TransactionServiceBase
from .memory import InMemoryAccountService, InMemoryLedger, InMemoryTransactionService
from .parsing import format_balance, parse_amount
from .repository import LedgerRepository
from .transactions import TransactionService, TransferStage

__all__ = [
    "AccountService",
    "AccountServiceBase",
    "InMemoryAccountService",
    "InMemoryLedger",
    "InMemoryTransactionService",
    "LedgerRepository",
    "TransactionService",
    "TransactionServiceBase",
    "TransferStage",
    "format_balance",
    "parse_amount",
]
