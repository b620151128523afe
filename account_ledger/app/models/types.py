"""Column types shared by the table models."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import BigInteger, Integer, Numeric, String
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator, TypeEngine

FRACTIONAL_DIGITS = 5
MONEY_PRECISION = 20
QUANTUM = Decimal(1).scaleb(-FRACTIONAL_DIGITS)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

# SQLite autoincrement only works on a plain INTEGER primary key.
BigIntegerKey = BigInteger().with_variant(Integer(), "sqlite")


class Money(TypeDecorator):
    """Fixed-point amount with five fractional digits.

    Stored as ``NUMERIC(20, 5)`` where the dialect has an exact decimal type.
    SQLite only has REAL, so there the value is kept as its fixed-scale text
    form and converted back to ``Decimal`` on load.
    """

    impl = Numeric(MONEY_PRECISION, FRACTIONAL_DIGITS)
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(MONEY_PRECISION + 2))
        return dialect.type_descriptor(Numeric(MONEY_PRECISION, FRACTIONAL_DIGITS))

    def process_bind_param(self, value: Optional[Any], dialect: Dialect) -> Optional[Any]:
        if value is None:
            return None
        amount = Decimal(value).quantize(QUANTUM) + 0
        if dialect.name == "sqlite":
            return format(amount, "f")
        return amount

    def process_result_value(self, value: Optional[Any], dialect: Dialect) -> Optional[Decimal]:
        if value is None:
            return None
        return Decimal(value).quantize(QUANTUM)
