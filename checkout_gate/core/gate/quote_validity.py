"""On-demand validity of a locked quote.

Validity is a pure function of the quote, the current rate carried on it and
the caller's ``now``. Reading it never changes the quote's state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from checkout_gate.core.domain.reject_reasons import BlockReason
from checkout_gate.core.domain.types import Quote

BPS_PER_UNIT: float = 10_000.0


@dataclass(frozen=True, slots=True)
class QuoteValidity:
    """Hold and slippage checks for one quote at one instant.

    elapsed_sec and slippage_bps are None for an unlocked (or absent) quote,
    which is always valid.
    """

    locked: bool
    hold_valid: bool
    slippage_valid: bool
    elapsed_sec: float | None = None
    slippage_bps: float | None = None

    @property
    def ok(self) -> bool:
        return self.hold_valid and self.slippage_valid

    @property
    def block_reason(self) -> BlockReason | None:
        if not self.hold_valid:
            return BlockReason.QUOTE_EXPIRED
        if not self.slippage_valid:
            return BlockReason.SLIPPAGE_BREACHED
        return None


UNCONSTRAINED = QuoteValidity(locked=False, hold_valid=True, slippage_valid=True)


def slippage_bps(locked_rate: float, current_rate: float) -> float:
    return abs(current_rate - locked_rate) / locked_rate * BPS_PER_UNIT


def evaluate_quote(quote: Quote | None, now: datetime) -> QuoteValidity:
    """Evaluate hold window and slippage bound of a locked quote."""
    if quote is None or not quote.is_locked:
        return UNCONSTRAINED

    locked_at, locked_rate = quote.locked_at, quote.locked_rate
    if locked_at is None or locked_rate is None:
        raise ValueError("locked quote is missing its lock time or rate")
    if (now.tzinfo is None) != (locked_at.tzinfo is None):
        raise ValueError("evaluation time and quote lock time must both be timezone-aware or both naive")

    elapsed = (now - locked_at).total_seconds()
    drift = slippage_bps(locked_rate, quote.rate)
    return QuoteValidity(
        locked=True,
        hold_valid=elapsed <= quote.hold_window_sec,
        slippage_valid=drift <= quote.slippage_bound_bps,
        elapsed_sec=elapsed,
        slippage_bps=drift,
    )
