"""
Helper functions for monetary arithmetic.

This module provides domain-agnostic utility functions for:
- Coercing loosely typed stored values to Decimal
- Half-up rounding to currency precision and to whole units
- Clamping percentages

All money in the project is Decimal. Every function here uses
ROUND_HALF_UP so results match the figures shown to customers, and
callers round at each intermediate step rather than only at the end.

Usage:
    from core.helpers import round_currency, to_decimal

    per_day = round_currency(Decimal("3000") / 30)   # Decimal("100.00")
    amount = to_decimal("12.5")                      # Decimal("12.5")
    amount = to_decimal("not a number")              # Decimal("0")
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any

CENT = Decimal("0.01")
UNIT = Decimal("1")
HUNDRED = Decimal("100")


def to_decimal(value: Any, default: Decimal | None = None) -> Decimal:
    """
    Convert a stored value to Decimal.

    Accepts Decimal, int, float and numeric strings. Anything else
    (None, non-numeric strings, NaN, infinities, booleans) yields the
    default, which is zero unless given.

    Args:
        value: Raw value read from a row or JSON document
        default: Value returned when conversion is not possible

    Returns:
        A finite Decimal
    """
    fallback = Decimal("0") if default is None else default
    if value is None or isinstance(value, bool):
        return fallback
    try:
        # str() keeps floats from dragging binary noise into the Decimal
        result = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        return fallback
    if not result.is_finite():
        return fallback
    return result


def round_currency(value: Decimal | int) -> Decimal:
    """
    Round to two decimal places, half-up.

    Example:
        round_currency(Decimal("666.665"))  # Decimal("666.67")
    """
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_whole(value: Decimal | int) -> Decimal:
    """
    Round to a whole unit, half-up.

    Example:
        round_whole(Decimal("49.5"))  # Decimal("50")
    """
    return Decimal(value).quantize(UNIT, rounding=ROUND_HALF_UP)


def clamp_percent(value: Decimal | int) -> Decimal:
    """Clamp a percentage into [0, 100]."""
    return max(Decimal("0"), min(HUNDRED, Decimal(value)))
