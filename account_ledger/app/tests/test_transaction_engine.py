import threading
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from ..core.errors import ConflictError, InsufficientFundsError, StorageError
from ..core.locks import AccountLocks
from ..models import AccountModel, TransactionModel
from ..services import AccountService, LedgerRepository, TransactionService


def _store_failure(*args, **kwargs):
    raise OperationalError("statement", {}, Exception("disk I/O error"))


def _balances(engine: Engine) -> dict[int, Decimal]:
    with Session(engine) as reader:
        return {account.id: account.balance for account in reader.exec(select(AccountModel))}


def _transaction_count(engine: Engine) -> int:
    with Session(engine) as reader:
        return len(reader.exec(select(TransactionModel)).all())


@pytest.fixture
def funded(session: Session, locks: AccountLocks) -> AccountService:
    accounts = AccountService(session, locks=locks)
    accounts.create_account(1, "100")
    accounts.create_account(2, "0")
    return accounts


def test_failed_insert_rolls_back_debit_and_credit(
    engine: Engine, session: Session, funded: AccountService, monkeypatch
) -> None:
    repository = LedgerRepository(session)
    monkeypatch.setattr(repository, "add_transaction", _store_failure)
    service = TransactionService(session, repository)

    with pytest.raises(StorageError, match="after stage credited: OperationalError"):
        service.create_transaction(1, 2, "25")

    assert _balances(engine) == {1: Decimal("100"), 2: Decimal("0")}
    assert _transaction_count(engine) == 0


def test_failed_credit_rolls_back_debit(
    engine: Engine, session: Session, funded: AccountService, monkeypatch
) -> None:
    repository = LedgerRepository(session)
    original = repository.set_balance

    def set_balance(account_id: int, expected: Decimal, balance: Decimal) -> bool:
        if balance > expected:
            _store_failure()
        return original(account_id, expected, balance)

    monkeypatch.setattr(repository, "set_balance", set_balance)
    service = TransactionService(session, repository)

    with pytest.raises(StorageError, match="after stage debited"):
        service.create_transaction(1, 2, "25")

    assert _balances(engine) == {1: Decimal("100"), 2: Decimal("0")}


def test_commit_failure_is_reported_as_storage_error(
    engine: Engine, session: Session, funded: AccountService, monkeypatch
) -> None:
    monkeypatch.setattr(session, "commit", _store_failure)
    service = TransactionService(session)

    with pytest.raises(StorageError, match="transfer commit failed"):
        service.create_transaction(1, 2, "25")

    assert _balances(engine) == {1: Decimal("100"), 2: Decimal("0")}
    assert _transaction_count(engine) == 0


def test_session_is_usable_after_a_failed_transfer(
    session: Session, funded: AccountService
) -> None:
    service = TransactionService(session)

    with pytest.raises(InsufficientFundsError):
        service.create_transaction(1, 2, "1000")

    service.create_transaction(1, 2, "30")
    assert funded.get_account(1).balance == Decimal("70")
    assert funded.get_account(2).balance == Decimal("30")


def test_primary_key_is_final_arbiter_for_duplicate_accounts(
    engine: Engine, funded: AccountService, monkeypatch
) -> None:
    # Simulate losing the race: the count sees no row, the insert collides.
    with Session(engine) as other:
        repository = LedgerRepository(other)
        monkeypatch.setattr(repository, "count_accounts", lambda *ids: 0)
        service = AccountService(other, repository)

        with pytest.raises(ConflictError, match="account 1 already exists"):
            service.create_account(1, "999")

    assert _balances(engine)[1] == Decimal("100")


def test_lookup_failure_is_wrapped(session: Session, monkeypatch) -> None:
    repository = LedgerRepository(session)
    monkeypatch.setattr(repository, "get_account", _store_failure)
    service = AccountService(session, repository)

    with pytest.raises(StorageError, match="account lookup failed: OperationalError") as excinfo:
        service.get_account(1)

    assert "disk I/O error" not in excinfo.value.message


def test_concurrent_transfers_never_overdraw(engine: Engine, locks: AccountLocks) -> None:
    with Session(engine) as setup:
        AccountService(setup, locks=locks).create_account(1, "50")
        AccountService(setup, locks=locks).create_account(2, "0")

    outcomes: list[str] = []
    outcome_lock = threading.Lock()

    def transfer() -> None:
        with Session(engine, expire_on_commit=False) as session:
            try:
                TransactionService(session, locks=locks).create_transaction(1, 2, "10")
                result = "ok"
            except InsufficientFundsError:
                result = "insufficient"
        with outcome_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=transfer) for _ in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["insufficient"] * 5 + ["ok"] * 5
    assert _balances(engine) == {1: Decimal("0"), 2: Decimal("50")}
    assert _transaction_count(engine) == 5


def test_account_locks_time_out_instead_of_waiting_forever() -> None:
    locks = AccountLocks(timeout=0.05)
    held = threading.Event()
    release = threading.Event()

    def hold() -> None:
        with locks.hold(2):
            held.set()
            release.wait(timeout=5)

    holder = threading.Thread(target=hold)
    holder.start()
    held.wait(timeout=5)
    try:
        with pytest.raises(StorageError, match="lock on account 2"):
            with locks.hold(1, 2):
                pass
        # The lock on account 1 taken before the timeout was released again.
        with locks.hold(1):
            pass
    finally:
        release.set()
        holder.join()


def test_lock_registry_is_empty_once_holders_leave() -> None:
    locks = AccountLocks(timeout=1.0)

    for account_id in range(1, 1001):
        with locks.hold(account_id, account_id + 100000):
            assert locks.active() == 2

    assert locks.active() == 0


def test_lock_registry_forgets_ids_after_a_timeout() -> None:
    locks = AccountLocks(timeout=0.05)
    held = threading.Event()
    release = threading.Event()

    def hold() -> None:
        with locks.hold(7):
            held.set()
            release.wait(timeout=5)

    holder = threading.Thread(target=hold)
    holder.start()
    held.wait(timeout=5)
    try:
        with pytest.raises(StorageError):
            with locks.hold(3, 7):
                pass
        assert locks.active() == 1
    finally:
        release.set()
        holder.join()

    assert locks.active() == 0


def test_money_is_stored_without_rounding(engine: Engine, session: Session) -> None:
    accounts = AccountService(session)
    accounts.create_account(5, "99999999999999.99999")

    assert accounts.get_account(5).balance == Decimal("99999999999999.99999")
    with Session(engine) as reader:
        stored = reader.connection().exec_driver_sql(
            "SELECT balance FROM accounts WHERE id = 5"
        ).scalar_one()
    assert Decimal(stored) == Decimal("99999999999999.99999")


def test_transfer_of_smallest_unit_conserves_funds(engine: Engine, session: Session) -> None:
    accounts = AccountService(session)
    accounts.create_account(1, "12345678901234.12345")
    accounts.create_account(2, "0")

    TransactionService(session).create_transaction(1, 2, "0.00001")

    assert _balances(engine) == {
        1: Decimal("12345678901234.12344"),
        2: Decimal("0.00001"),
    }


def test_balances_are_locked_in_ascending_id_order(
    engine: Engine, session: Session, funded: AccountService
) -> None:
    locked: list[int] = []

    def record(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().startswith("SELECT accounts.balance"):
            locked.append(parameters[0])

    event.listen(engine, "before_cursor_execute", record)
    try:
        TransactionService(session).create_transaction(1, 2, "10")
        TransactionService(session).create_transaction(2, 1, "5")
    finally:
        event.remove(engine, "before_cursor_execute", record)

    assert locked == [1, 2, 1, 2]


def test_stale_balance_is_not_overwritten(
    engine: Engine, session: Session, funded: AccountService, monkeypatch
) -> None:
    repository = LedgerRepository(session)
    original = repository.lock_balances

    def stale_balances(*account_ids: int) -> dict[int, Decimal]:
        balances = original(*account_ids)
        balances[1] += Decimal("50")
        return balances

    monkeypatch.setattr(repository, "lock_balances", stale_balances)
    service = TransactionService(session, repository)

    with pytest.raises(StorageError, match="account 1 was modified concurrently"):
        service.create_transaction(1, 2, "120")

    assert _balances(engine) == {1: Decimal("100"), 2: Decimal("0")}
    assert _transaction_count(engine) == 0


def test_ids_beyond_32_bits_round_trip(session: Session) -> None:
    accounts = AccountService(session)
    big = 2**62

    accounts.create_account(big, "10")
    accounts.create_account(-big, "0")
    TransactionService(session).create_transaction(big, -big, "4")

    assert accounts.get_account(big).balance == Decimal("6")
    assert accounts.get_account(-big).balance == Decimal("4")
