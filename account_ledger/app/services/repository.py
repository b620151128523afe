from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import func, update
from sqlmodel import Session, col, select

from ..models import AccountModel, TransactionModel


class LedgerRepository:
    """Thin data access layer around the SQLModel session.

    Nothing here commits; callers own the transaction boundary.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    # Account operations -------------------------------------------------
    def count_accounts(self, *account_ids: int) -> int:
        stmt = (
            select(func.count())
            .select_from(AccountModel)
            .where(col(AccountModel.id).in_(account_ids))
        )
        return self.session.exec(stmt).one()

    def add_account(self, account_id: int, balance: Decimal) -> AccountModel:
        account = AccountModel(id=account_id, balance=balance)
        self.session.add(account)
        self.session.flush()
        return account

    def get_account(self, account_id: int) -> Optional[AccountModel]:
        return self.session.get(AccountModel, account_id, populate_existing=True)

    def lock_balances(self, *account_ids: int) -> dict[int, Decimal]:
        """Read balances with ``FOR UPDATE``, one row at a time in ascending id order.

        A fixed lock order keeps opposing transfers from deadlocking on stores
        with row locks. SQLite drops the clause and serializes writers instead.
        """
        balances: dict[int, Decimal] = {}
        for account_id in sorted(set(account_ids)):
            stmt = (
                select(AccountModel.balance)
                .where(col(AccountModel.id) == account_id)
                .with_for_update()
            )
            balance = self.session.exec(stmt).first()
            if balance is not None:
                balances[account_id] = balance
        return balances

    def set_balance(self, account_id: int, expected: Decimal, balance: Decimal) -> bool:
        """Replace ``expected`` with ``balance``; False when the row changed under us."""
        stmt = (
            update(AccountModel)
            .where(col(AccountModel.id) == account_id)
            .where(col(AccountModel.balance) == expected)
            .values(balance=balance)
            .execution_options(synchronize_session=False)
        )
        result = self.session.exec(stmt)  # type: ignore[call-overload]
        return result.rowcount == 1

    # Transactions -------------------------------------------------------
    def add_transaction(
        self,
        *,
        source_account_id: int,
        destination_account_id: int,
        amount: Decimal,
    ) -> TransactionModel:
        transaction = TransactionModel(
            source_account_id=source_account_id,
            destination_account_id=destination_account_id,
            amount=amount,
        )
        self.session.add(transaction)
        self.session.flush()
        self.session.refresh(transaction)
        return transaction
