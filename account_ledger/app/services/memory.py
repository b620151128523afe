from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from ..core.cancellation import Cancellation
from ..core.errors import ConflictError, InsufficientFundsError, NotFoundError
from ..models import AccountModel, TransactionModel
from .base import (
    AccountServiceBase,
    TransactionServiceBase,
    check_account_id,
    check_id_range,
    check_transfer_ids,
)
from .parsing import parse_amount
from .transactions import check_balance_limit, parse_transfer_amount


@dataclass
class _AccountRecord:
    id: int
    balance: Decimal
    created_at: datetime
    updated_at: datetime

@dataclass
class _TransactionRecord:
    id: int
    source_account_id: int
    destination_account_id: int
    amount: Decimal
    created_at: datetime

@dataclass
class InMemoryLedger:
    """Shared state behind the in-memory services, used as a test double."""

    accounts: Dict[int, _AccountRecord] = field(default_factory=dict)
    transactions: List[_TransactionRecord] = field(default_factory=list)
    lock: threading.RLock = field(default_factory=threading.RLock)

    def account_model(self, record: _AccountRecord) -> AccountModel:
        return AccountModel(
            id=record.id,
            balance=record.balance,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def transaction_model(self, record: _TransactionRecord) -> TransactionModel:
        return TransactionModel(
            id=record.id,
            source_account_id=record.source_account_id,
            destination_account_id=record.destination_account_id,
            amount=record.amount,
            created_at=record.created_at,
            updated_at=record.created_at,
        )

    def list_transactions(self) -> List[TransactionModel]:
        with self.lock:
            return [self.transaction_model(record) for record in self.transactions]


class InMemoryAccountService(AccountServiceBase):
    def __init__(self, ledger: InMemoryLedger) -> None:
        self.ledger = ledger

    def create_account(
        self,
        account_id: int,
        initial_balance: str,
        cancellation: Optional[Cancellation] = None,
    ) -> None:
        check_account_id(account_id)
        balance = parse_amount(initial_balance, "initial balance")
        now = datetime.now(UTC)

        with self.ledger.lock:
            if account_id in self.ledger.accounts:
                raise ConflictError(f"account {account_id} already exists")
            if cancellation is not None:
                cancellation.check("account creation")
            self.ledger.accounts[account_id] = _AccountRecord(
                id=account_id,
                balance=balance,
                created_at=now,
                updated_at=now,
            )

    def get_account(self, account_id: int) -> AccountModel:
        check_id_range(account_id)
        with self.ledger.lock:
            try:
                record = self.ledger.accounts[account_id]
            except KeyError as exc:
                raise NotFoundError(f"account {account_id} not found") from exc
            return self.ledger.account_model(record)


class InMemoryTransactionService(TransactionServiceBase):
    def __init__(self, ledger: InMemoryLedger) -> None:
        self.ledger = ledger

    def create_transaction(
        self,
        source_account_id: int,
        destination_account_id: int,
        amount: str,
        cancellation: Optional[Cancellation] = None,
    ) -> TransactionModel:
        check_transfer_ids(source_account_id, destination_account_id)
        value = parse_transfer_amount(amount)

        with self.ledger.lock:
            source = self.ledger.accounts.get(source_account_id)
            dest = self.ledger.accounts.get(destination_account_id)
            found = (source is not None) + (dest is not None)
            if source is None or dest is None:
                raise ConflictError(
                    "both accounts must exist: found "
                    f"{found} of [{source_account_id}, {destination_account_id}]"
                )

            final_balance = source.balance - value
            if final_balance < 0:
                raise InsufficientFundsError(
                    f"source account {source_account_id} has insufficient funds: "
                    f"final balance would be {final_balance}",
                    final_balance=final_balance,
                )
            check_balance_limit(destination_account_id, dest.balance + value)
            if cancellation is not None:
                cancellation.check("transfer")

            # Every check has passed, so the three writes below cannot fail
            # halfway through.
            now = datetime.now(UTC)
            source.balance = final_balance
            source.updated_at = now
            dest.balance += value
            dest.updated_at = now

            record = _TransactionRecord(
                id=len(self.ledger.transactions) + 1,
                source_account_id=source_account_id,
                destination_account_id=destination_account_id,
                amount=value,
                created_at=now,
            )
            self.ledger.transactions.append(record)
            return self.ledger.transaction_model(record)
