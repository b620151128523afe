from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager
from typing import Any, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from ..models import db as _db_models  # noqa: F401 - ensure models register with metadata
from .cancellation import Cancellation
from .config import get_settings
from .errors import ConflictError, LedgerError, StorageError


def create_engine_for_url(
    database_url: str,
    echo: bool = False,
    statement_timeout: Optional[float] = None,
) -> Engine:
    connect_args: dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if statement_timeout is not None:
            # Seconds to wait on a locked database before failing.
            connect_args["timeout"] = statement_timeout
    elif database_url.startswith("postgresql") and statement_timeout is not None:
        millis = int(statement_timeout * 1000)
        connect_args = {"options": f"-c statement_timeout={millis} -c lock_timeout={millis}"}
    return create_engine(
        database_url,
        echo=echo,
        connect_args=connect_args,
        pool_pre_ping=True,
    )


settings = get_settings()
engine = create_engine_for_url(
    settings.database_url,
    echo=settings.echo_sql,
    statement_timeout=settings.statement_timeout_seconds,
)


def init_db() -> None:
    SQLModel.metadata.create_all(engine)


def get_session() -> Generator[Session, None, None]:
    # Closing the session rolls back any unit that did not reach commit.
    with Session(engine, expire_on_commit=False) as session:
        yield session


def set_engine(new_engine: Engine) -> None:
    global engine
    engine = new_engine


@contextmanager
def atomic(
    session: Session,
    operation: str,
    conflict_message: Optional[str] = None,
    cancellation: Optional[Cancellation] = None,
) -> Iterator[Session]:
    """Run a block as one all-or-nothing unit against the store.

    The block's writes are committed when it exits cleanly, unless
    ``cancellation`` reports that the request was cancelled or ran out of
    time, in which case the unit is rolled back with ``AbandonedError``.
    Any exception rolls the unit back before it propagates; store exceptions
    are wrapped in ``StorageError`` so driver internals never leave the core.
    When ``conflict_message`` is given, integrity violations (duplicate
    primary key) are reported as ``ConflictError`` instead.
    """
    try:
        yield session
        if cancellation is not None:
            cancellation.check(operation)
        session.commit()
    except LedgerError:
        session.rollback()
        raise
    except IntegrityError as exc:
        session.rollback()
        if conflict_message is not None:
            raise ConflictError(conflict_message) from exc
        raise StorageError.wrap(operation, exc) from exc
    except SQLAlchemyError as exc:
        session.rollback()
        raise StorageError.wrap(operation, exc) from exc
    except BaseException:
        session.rollback()
        raise
