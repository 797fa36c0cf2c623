"""Decimal helpers for monetary values.

All ledger arithmetic runs on ``Decimal``. Floats are accepted at the
edges (CLI, config, broker snapshots) and converted through ``str`` so
that ``0.1`` becomes ``Decimal("0.1")`` rather than its binary expansion.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
SHARES_PER_CONTRACT = 100

CENT = Decimal("0.01")
PRICE_STEP = Decimal("0.0001")


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without binary float drift."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def to_optional_decimal(value: Optional[Number]) -> Optional[Decimal]:
    """Like to_decimal, but passes None through."""
    if value is None:
        return None
    return to_decimal(value)


def money(value: Number) -> Decimal:
    """Quantize a dollar amount to cents."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def price(value: Number) -> Decimal:
    """Quantize a per-share price to four decimal places."""
    return to_decimal(value).quantize(PRICE_STEP, rounding=ROUND_HALF_UP)


def format_money(value: Optional[Decimal]) -> str:
    """Format a dollar amount for display, "N/A" for missing values."""
    if value is None:
        return "N/A"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(money(value)):,.2f}"
