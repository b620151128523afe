from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..core.cancellation import Cancellation
from ..core.db import atomic
from ..core.errors import ConflictError, LedgerError, NotFoundError, StorageError
from ..core.locks import AccountLocks, NullLocks
from ..models import AccountModel
from .base import AccountServiceBase, check_account_id, check_id_range
from .parsing import parse_amount
from .repository import LedgerRepository


logger = logging.getLogger(__name__)


class AccountService(AccountServiceBase):
    def __init__(
        self,
        session: Session,
        repository: Optional[LedgerRepository] = None,
        locks: Optional[AccountLocks] = None,
    ) -> None:
        self.session = session
        self.repository = repository or LedgerRepository(session)
        self.locks = locks if locks is not None else NullLocks()

    def create_account(
        self,
        account_id: int,
        initial_balance: str,
        cancellation: Optional[Cancellation] = None,
    ) -> None:
        check_account_id(account_id)
        balance = parse_amount(initial_balance, "initial balance")

        # The existence check gives a clean early exit; the primary key on
        # accounts.id is what actually stops a concurrent duplicate.
        conflict = f"account {account_id} already exists"
        try:
            if cancellation is not None:
                cancellation.check("account creation")
            with self.locks.hold(account_id):
                with atomic(
                    self.session,
                    "account creation",
                    conflict_message=conflict,
                    cancellation=cancellation,
                ):
                    if self.repository.count_accounts(account_id) > 0:
                        raise ConflictError(conflict)
                    self.repository.add_account(account_id, balance)
        except LedgerError as exc:
            logger.warning(
                "account.create_failed",
                extra={"account_id": account_id, "reason": exc.detail},
            )
            raise

        logger.info(
            "account.created",
            extra={"account_id": account_id, "balance": str(balance)},
        )

    def get_account(self, account_id: int) -> AccountModel:
        check_id_range(account_id)
        try:
            account = self.repository.get_account(account_id)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError.wrap("account lookup", exc) from exc
        if account is None:
            raise NotFoundError(f"account {account_id} not found")
        return account
