"""
Quote lifecycle state machine.

A quote is ``unlocked`` until explicitly locked, which captures the current
rate and timestamp. The only way back is an explicit reset, which discards
both. There is no automatic transition out of ``locked``: expiry and
slippage are computed on demand by the gate layer and never change state.
"""

from __future__ import annotations

from datetime import datetime

from checkout_gate.core.domain.types import Quote

QUOTE_STATES: frozenset[str] = frozenset({"unlocked", "locked"})


# Allowed quote state transitions.
#
# Key   : previous state
# Value : set of allowed next states
#
# Notes:
# - Reset on an unlocked quote is a no-op and therefore allowed.
# - Locking an already locked quote is refused; reset first.
QUOTE_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "unlocked": frozenset({"locked", "unlocked"}),
    "locked": frozenset({"unlocked"}),
}


def is_valid_transition(prev_state: str, next_state: str) -> bool:
    """Return True if the transition prev_state -> next_state is allowed."""
    allowed = QUOTE_ALLOWED_TRANSITIONS.get(prev_state)
    if allowed is None:
        return False
    return next_state in allowed


def lock_quote(quote: Quote, at: datetime) -> Quote:
    """Lock the quote at its current rate.

    Raises ValueError when the quote is already locked.
    """
    if not is_valid_transition(quote.state, "locked"):
        raise ValueError(f"quote {quote.quote_id} is already locked; reset before re-locking")
    return quote.model_copy(update={"locked_rate": quote.rate, "locked_at": at})


def reset_quote(quote: Quote) -> Quote:
    """Discard the captured rate and timestamp."""
    if not quote.is_locked:
        return quote
    return quote.model_copy(update={"locked_rate": None, "locked_at": None})


def reprice_quote(quote: Quote, rate: float) -> Quote:
    """Return the quote with a new current rate; lock fields are untouched."""
    return Quote.model_validate({**quote.model_dump(), "rate": rate})
