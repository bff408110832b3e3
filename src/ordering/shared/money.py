"""Rounding rules for persisted money amounts.

Redeem and shipping-charge fields are stored in whole currency units.
Commission and cashback amounts keep two decimal places. Infinite and NaN
amounts are rejected as validation errors.
"""

import math
from decimal import ROUND_HALF_UP, Decimal

from protean.exceptions import ValidationError

_WHOLE = Decimal("1")
_CENTS = Decimal("0.01")


def _finite_decimal(value, field: str) -> Decimal:
    amount = Decimal(str(value))
    if not amount.is_finite():
        raise ValidationError({field: ["Must be a finite number"]})
    return amount


def whole_units(value, field: str = "amount") -> float:
    """Round to the nearest whole currency unit (half up)."""
    if value is None:
        return 0.0
    return float(_finite_decimal(value, field).quantize(_WHOLE, rounding=ROUND_HALF_UP))


def two_places(value, field: str = "amount") -> float:
    """Round to two decimal places (half up)."""
    if value is None:
        return 0.0
    return float(_finite_decimal(value, field).quantize(_CENTS, rounding=ROUND_HALF_UP))


def to_float(value, default: float = 0.0, field: str = "amount") -> float:
    """Coerce loosely typed numeric input (str, int, None) to float."""
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        raise ValidationError({field: ["Must be a finite number"]})
    return number
