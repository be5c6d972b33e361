# deposit_escrow/domain/money.py
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Largest value a Numeric(12,2) column holds.
MAX_AMOUNT = Decimal("9999999999.99")


class AmountPrecisionError(ValueError):
    """A well-formed number that cannot be stored exactly as money."""


def _to_decimal(v: Any) -> Decimal:
    if isinstance(v, Decimal):
        d = v
    elif isinstance(v, bool):
        raise ValueError(f"not a money amount: {v!r}")
    elif isinstance(v, (int, str)):
        try:
            d = Decimal(str(v).strip())
        except InvalidOperation as e:
            raise ValueError(f"not a money amount: {v!r}") from e
    elif isinstance(v, float):
        d = Decimal(str(v))
    else:
        raise ValueError(f"not a money amount: {v!r}")

    if not d.is_finite():
        raise ValueError(f"not a money amount: {v!r}")
    return d


def to_money(v: Any) -> Decimal:
    """
    Coerce int / str / Decimal / float into a cent-quantized Decimal.

    Floats go through str() first so 0.1 stays 0.10 instead of picking up
    binary noise. Raises ValueError on anything that is not a finite number
    or is too large to quantize.
    """
    d = _to_decimal(v)
    try:
        return d.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise AmountPrecisionError(f"money amount out of range: {v!r}") from e


def parse_amount(v: Any) -> Decimal:
    """
    Strict parse for amounts entered by a user or read from another service.

    Unlike to_money nothing is rounded: more than two decimal places, or a
    value beyond MAX_AMOUNT, raises AmountPrecisionError.
    """
    d = _to_decimal(v)
    if abs(d) > MAX_AMOUNT:
        raise AmountPrecisionError(f"money amount out of range: {v!r}")
    try:
        q = d.quantize(CENT)
    except InvalidOperation as e:
        raise AmountPrecisionError(f"money amount out of range: {v!r}") from e
    if q != d:
        raise AmountPrecisionError(f"money amount has sub-cent precision: {v!r}")
    return q


def money_sum(values: Iterable[Any]) -> Decimal:
    total = ZERO
    for v in values:
        total += to_money(v)
    return total.quantize(CENT, rounding=ROUND_HALF_UP)
