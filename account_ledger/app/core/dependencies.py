from functools import lru_cache

from fastapi import Depends
from sqlmodel import Session

from ..services import AccountService, LedgerRepository, TransactionService
from .config import get_settings
from .db import get_session
from .locks import AccountLocks, NullLocks

@lru_cache(maxsize=1)
def get_account_locks() -> AccountLocks:
    settings = get_settings()
    if not settings.account_locks:
        return NullLocks()
    return AccountLocks(timeout=settings.lock_timeout_seconds)

def get_account_service(
    session: Session = Depends(get_session),
    locks: AccountLocks = Depends(get_account_locks),
) -> AccountService:
    repository = LedgerRepository(session)
    return AccountService(session, repository, locks)

def get_transaction_service(
    session: Session = Depends(get_session),
    locks: AccountLocks = Depends(get_account_locks),
) -> TransactionService:
    repository = LedgerRepository(session)
    return TransactionService(session, repository, locks)
