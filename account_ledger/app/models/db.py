from __future__ import annotations
from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional
from sqlalchemy import BigInteger, CheckConstraint
from sqlmodel import Field, SQLModel

from .types import BigIntegerKey, Money


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Account(SQLModel, table=True):
    __tablename__ = "accounts"  # type: ignore[assignment]
    # CAST keeps the check numeric on SQLite, where Money is stored as text.
    __table_args__ = (
        CheckConstraint("CAST(balance AS NUMERIC) >= 0", name="ck_accounts_balance_non_negative"),
    )

    id: int = Field(
        primary_key=True,
        sa_type=BigInteger,
        sa_column_kwargs={"autoincrement": False},
    )
    balance: Decimal = Field(default=Decimal("0"), sa_type=Money)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow, sa_column_kwargs={"onupdate": _utcnow})

class Transaction(SQLModel, table=True):
    __tablename__ = "transactions"  # type: ignore[assignment]
    __table_args__ = (
        CheckConstraint("CAST(amount AS NUMERIC) > 0", name="ck_transactions_amount_positive"),
        CheckConstraint(
            "source_account_id <> destination_account_id",
            name="ck_transactions_distinct_accounts",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True, sa_type=BigIntegerKey)
    source_account_id: int = Field(foreign_key="accounts.id", index=True, sa_type=BigInteger)
    destination_account_id: int = Field(foreign_key="accounts.id", index=True, sa_type=BigInteger)
    amount: Decimal = Field(sa_type=Money)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow, sa_column_kwargs={"onupdate": _utcnow})
