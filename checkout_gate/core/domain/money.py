"""Local-currency rounding helpers.

Amounts are floats in local currency with two decimal places. Rounding is
half-up (away from zero for the non-negative amounts used here), so a
0.5 remainder always rounds up regardless of the neighbouring digit.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from checkout_gate.core.domain.types import TenderBase

# Two-decimal local currency: totals agreeing within this are equal.
LOCAL_TOLERANCE: float = 0.01


def round_units(value: float) -> float:
    """Round to a whole local-currency unit."""
    return float(math.floor(value + 0.5))


def round_local(value: float) -> float:
    """Round to two decimal places."""
    return math.floor(value * 100 + 0.5) / 100


def total_local(tenders: Iterable[TenderBase]) -> float:
    """Sum of every tender converted to local currency, rounded to cents."""
    return round_local(sum(t.value_local() for t in tenders))


def format_amount(value: float) -> str:
    """Render an amount without a trailing '.00' for whole units."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"
