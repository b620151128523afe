from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..core.cancellation import Cancellation
from ..core.errors import ValidationError
from ..models import AccountModel, TransactionModel
from ..models.types import INT64_MAX, INT64_MIN


class AccountServiceBase(ABC):
    """Account Ledger: owns account existence and balances."""

    @abstractmethod
    def create_account(
        self,
        account_id: int,
        initial_balance: str,
        cancellation: Optional[Cancellation] = None,
    ) -> None:
        """Create ``account_id`` holding ``initial_balance`` (a decimal literal)."""

    @abstractmethod
    def get_account(self, account_id: int) -> AccountModel:
        """Return the account or raise ``NotFoundError``."""


class TransactionServiceBase(ABC):
    """Transfer Engine: moves money between two existing accounts."""

    @abstractmethod
    def create_transaction(
        self,
        source_account_id: int,
        destination_account_id: int,
        amount: str,
        cancellation: Optional[Cancellation] = None,
    ) -> TransactionModel:
        """Debit source, credit destination and record the transfer, atomically."""


def check_id_range(account_id: int, field: str = "account id") -> None:
    if not INT64_MIN <= account_id <= INT64_MAX:
        raise ValidationError(f"{field} out of range: {account_id}")


def check_account_id(account_id: int, field: str = "account id") -> None:
    if account_id == 0:
        raise ValidationError(f"invalid {field}: {account_id}")
    check_id_range(account_id, field)


def check_transfer_ids(source_account_id: int, destination_account_id: int) -> None:
    check_account_id(source_account_id, "source account id")
    check_account_id(destination_account_id, "destination account id")
    if source_account_id == destination_account_id:
        raise ValidationError(
            "source and destination accounts cannot be the same: "
            f"{source_account_id}"
        )
