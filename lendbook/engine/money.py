"""Shared numeric helpers for money arithmetic.

All amounts are ``Decimal``. Values coming from the store or from user
input may be ``int``, ``float`` or ``str``; ``to_decimal`` normalizes them
without going through binary floating point where it can avoid it.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0")
NAN = Decimal("NaN")


def to_decimal(value: Any) -> Decimal:
    """Convert a stored or user-supplied number to ``Decimal``.

    Unparseable values become ``Decimal('NaN')`` rather than raising.
    """
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        return NAN
    if isinstance(value, float):
        # repr() gives the shortest round-tripping string
        value = repr(value)
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        return NAN


def money(value: Decimal) -> Decimal:
    """Round to whole cents (half up). NaN and infinities pass through."""
    if not value.is_finite():
        return value
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def positive_part(value: Decimal) -> Decimal:
    """Return ``value`` when it is a finite positive amount, else zero."""
    if value.is_finite() and value > ZERO:
        return value
    return ZERO


def is_positive(value: Decimal) -> bool:
    """NaN-safe ``value > 0``."""
    return not value.is_nan() and value > ZERO


def is_non_positive(value: Decimal) -> bool:
    """NaN-safe ``value <= 0``; NaN is neither positive nor non-positive."""
    return not value.is_nan() and value <= ZERO


def format_inr(amount: Decimal) -> str:
    """Format an amount for logs and console output (e.g. ``₹1,240.00``)."""
    if not amount.is_finite():
        return f"₹{amount}"
    return f"₹{money(amount):,.2f}"
