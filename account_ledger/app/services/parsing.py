"""Mapping of request text onto domain values."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from ..core.errors import ValidationError
from ..models.types import FRACTIONAL_DIGITS, MONEY_PRECISION, QUANTUM

# Money columns hold at most MONEY_PRECISION - FRACTIONAL_DIGITS integral digits.
MAX_AMOUNT = Decimal(10) ** (MONEY_PRECISION - FRACTIONAL_DIGITS)


def parse_amount(text: str, field: str) -> Decimal:
    """Parse a decimal literal such as ``"100.12345"`` into a ``Decimal``.

    The result is quantized to the store's five fractional digits. Values that
    would need rounding to fit are rejected rather than silently rounded.
    """
    try:
        value = Decimal(text.strip())
    except (InvalidOperation, AttributeError) as exc:
        raise ValidationError(f"invalid {field} format: {text!r}") from exc

    if not value.is_finite():
        raise ValidationError(f"invalid {field} format: {text!r}")
    if value < 0:
        raise ValidationError(f"{field} cannot be negative, input: {value}")
    if value >= MAX_AMOUNT:
        raise ValidationError(f"{field} is too large, input: {value}")

    quantized = value.quantize(QUANTUM)
    if quantized != value:
        raise ValidationError(
            f"{field} supports at most {FRACTIONAL_DIGITS} fractional digits, input: {value}"
        )
    # "-0" parses to a negative zero; adding 0 drops the sign.
    return quantized + 0


def format_balance(value: Decimal) -> str:
    return f"{value:.{FRACTIONAL_DIGITS}f}"
