import os

os.environ.setdefault("LEDGER_DATABASE_URL", "sqlite://")

from collections.abc import Callable
from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, select

from ..core import db as core_db
from ..core.db import create_engine_for_url, get_session, set_engine
from ..core.dependencies import get_account_locks
from ..core.locks import AccountLocks
from ..main import app
from ..models import TransactionModel
from ..services import (
    AccountService,
    AccountServiceBase,
    InMemoryAccountService,
    InMemoryLedger,
    InMemoryTransactionService,
    TransactionService,
    TransactionServiceBase,
)


@pytest.fixture
def engine(tmp_path) -> Engine:
    test_db = tmp_path / "test.db"
    engine = create_engine_for_url(f"sqlite:///{test_db}")
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine: Engine) -> Session:
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def locks() -> AccountLocks:
    return AccountLocks(timeout=5.0)


@dataclass
class Backend:
    accounts: AccountServiceBase
    transactions: TransactionServiceBase
    list_transactions: Callable[[], list[TransactionModel]]


@pytest.fixture(params=["sql", "memory"])
def backend(request, engine: Engine, session: Session, locks: AccountLocks) -> Backend:
    if request.param == "memory":
        ledger = InMemoryLedger()
        return Backend(
            accounts=InMemoryAccountService(ledger),
            transactions=InMemoryTransactionService(ledger),
            list_transactions=ledger.list_transactions,
        )

    def _list_transactions() -> list[TransactionModel]:
        with Session(engine) as reader:
            return list(reader.exec(select(TransactionModel).order_by(TransactionModel.id)))

    return Backend(
        accounts=AccountService(session, locks=locks),
        transactions=TransactionService(session, locks=locks),
        list_transactions=_list_transactions,
    )


@pytest.fixture
def client(engine: Engine) -> TestClient:
    original_engine = core_db.engine
    set_engine(engine)

    def _get_session_override():
        with Session(engine, expire_on_commit=False) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session_override
    test_locks = AccountLocks(timeout=5.0)
    app.dependency_overrides[get_account_locks] = lambda: test_locks

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    set_engine(original_engine)
