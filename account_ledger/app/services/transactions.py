from __future__ import annotations

import enum
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..core.cancellation import Cancellation
from ..core.db import atomic
from ..core.errors import (
    ConflictError,
    InsufficientFundsError,
    LedgerError,
    StorageError,
    ValidationError,
)
from ..core.locks import AccountLocks, NullLocks
from ..models import TransactionModel
from .base import TransactionServiceBase, check_transfer_ids
from .parsing import MAX_AMOUNT, parse_amount
from .repository import LedgerRepository


logger = logging.getLogger(__name__)


class TransferStage(str, enum.Enum):
    VALIDATING = "validating"
    ACCOUNTS_CHECKED = "accounts_checked"
    BALANCE_CHECKED = "balance_checked"
    DEBITED = "debited"
    CREDITED = "credited"
    RECORDED = "recorded"
    COMMITTED = "committed"


def check_balance_limit(account_id: int, balance: Decimal) -> None:
    if balance >= MAX_AMOUNT:
        raise ValidationError(
            f"transfer would push account {account_id} past the maximum balance"
        )


def parse_transfer_amount(amount: str) -> Decimal:
    value = parse_amount(amount, "amount")
    if value == 0:
        raise ValidationError("amount must be greater than zero")
    return value


class TransactionService(TransactionServiceBase):
    """Store-backed transfer engine.

    A transfer runs as a single database transaction: the existence check,
    the balance check, the debit, the credit and the insert of the
    transaction row either all land or none do. Nothing is visible to other
    readers before the commit.
    """

    def __init__(
        self,
        session: Session,
        repository: Optional[LedgerRepository] = None,
        locks: Optional[AccountLocks] = None,
    ) -> None:
        self.session = session
        self.repository = repository or LedgerRepository(session)
        self.locks = locks if locks is not None else NullLocks()

    def create_transaction(
        self,
        source_account_id: int,
        destination_account_id: int,
        amount: str,
        cancellation: Optional[Cancellation] = None,
    ) -> TransactionModel:
        check_transfer_ids(source_account_id, destination_account_id)
        value = parse_transfer_amount(amount)

        try:
            if cancellation is not None:
                cancellation.check("transfer")
            with self.locks.hold(source_account_id, destination_account_id):
                with atomic(self.session, "transfer commit", cancellation=cancellation):
                    transaction = self._transfer(
                        source_account_id, destination_account_id, value
                    )
        except LedgerError as exc:
            logger.warning(
                "transaction.failed",
                extra={
                    "source_account_id": source_account_id,
                    "destination_account_id": destination_account_id,
                    "amount": str(value),
                    "reason": exc.detail,
                },
            )
            raise

        self._advance(TransferStage.COMMITTED)
        logger.info(
            "transaction.created",
            extra={
                "transaction_id": transaction.id,
                "source_account_id": source_account_id,
                "destination_account_id": destination_account_id,
                "amount": str(value),
            },
        )
        return transaction

    def _transfer(
        self,
        source_account_id: int,
        destination_account_id: int,
        amount: Decimal,
    ) -> TransactionModel:
        stage = TransferStage.VALIDATING
        try:
            found = self.repository.count_accounts(source_account_id, destination_account_id)
            if found != 2:
                raise ConflictError(
                    "both accounts must exist: found "
                    f"{found} of [{source_account_id}, {destination_account_id}]"
                )
            stage = self._advance(TransferStage.ACCOUNTS_CHECKED)

            balances = self.repository.lock_balances(source_account_id, destination_account_id)
            if len(balances) != 2:
                raise ConflictError(
                    "both accounts must exist: found "
                    f"{len(balances)} of [{source_account_id}, {destination_account_id}]"
                )
            source_balance = balances[source_account_id]
            destination_balance = balances[destination_account_id]
            final_balance = source_balance - amount
            if final_balance < 0:
                raise InsufficientFundsError(
                    f"source account {source_account_id} has insufficient funds: "
                    f"final balance would be {final_balance}",
                    final_balance=final_balance,
                )
            check_balance_limit(destination_account_id, destination_balance + amount)
            stage = self._advance(TransferStage.BALANCE_CHECKED)

            self._set_balance(source_account_id, source_balance, final_balance)
            stage = self._advance(TransferStage.DEBITED)

            self._set_balance(
                destination_account_id, destination_balance, destination_balance + amount
            )
            stage = self._advance(TransferStage.CREDITED)

            transaction = self.repository.add_transaction(
                source_account_id=source_account_id,
                destination_account_id=destination_account_id,
                amount=amount,
            )
            self._advance(TransferStage.RECORDED)
            return transaction
        except SQLAlchemyError as exc:
            raise StorageError(
                f"transfer aborted after stage {stage.value}: {exc.__class__.__name__}"
            ) from exc

    def _set_balance(self, account_id: int, expected: Decimal, balance: Decimal) -> None:
        # Only reachable without row locks (SQLite shared by several processes).
        if not self.repository.set_balance(account_id, expected, balance):
            raise StorageError(f"account {account_id} was modified concurrently")

    @staticmethod
    def _advance(stage: TransferStage) -> TransferStage:
        logger.debug("transaction.stage", extra={"stage": stage.value})
        return stage
