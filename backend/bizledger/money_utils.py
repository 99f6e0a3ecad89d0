from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a storage/JSON value to Decimal.

    None and "" become 0. Floats go through str() so 0.1 stays 0.1.
    Raises ValueError for anything non-numeric (including booleans).
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, bool):
        raise ValueError("boolean is not a monetary amount")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    else:
        s = str(value).strip()
        if not s:
            return Decimal("0")
        try:
            result = Decimal(s)
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def round_money(value: Any) -> Decimal:
    """Round half-up to 2 places; the only rounding used for stored amounts."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(high, value))


def money_to_json(value: Decimal | None) -> float | None:
    if value is None:
        return None
    return float(value)


QUANTITY = Decimal("0.001")


def round_quantity(value: Any) -> Decimal:
    """Round half-up to 3 places (material and production quantities)."""
    return to_decimal(value).quantize(QUANTITY, rounding=ROUND_HALF_UP)
