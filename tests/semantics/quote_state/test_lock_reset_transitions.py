"""
Semantic test: quote lock / reset transitions.

Invariant:
A quote starts unlocked. Locking captures the current rate and the lock
time together; locking a locked quote is refused; reset clears both and
is a no-op on an unlocked quote. Repricing never touches the lock.
"""

from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from checkout_gate.core.domain.quote_state_machine import (
    is_valid_transition,
    lock_quote,
    reprice_quote,
    reset_quote,
)
from checkout_gate.core.domain.types import Quote

T0 = datetime(2025, 8, 27, 12, 0, 0)


def mk_quote(rate: float = 150.0) -> Quote:
    return Quote(quote_id="q-89aa", rate=rate, hold_window_sec=90, slippage_bound_bps=50)


def test_new_quote_is_unlocked() -> None:
    quote = mk_quote()

    assert quote.state == "unlocked"
    assert quote.locked_rate is None
    assert quote.locked_at is None


def test_lock_captures_rate_and_time() -> None:
    locked = lock_quote(mk_quote(150.0), T0)

    assert locked.state == "locked"
    assert locked.locked_rate == 150.0
    assert locked.locked_at == T0


def test_relock_requires_reset() -> None:
    locked = lock_quote(mk_quote(), T0)

    with pytest.raises(ValueError):
        lock_quote(locked, T0)

    relocked = lock_quote(reset_quote(locked), T0)
    assert relocked.is_locked


def test_reset_clears_lock_fields() -> None:
    reset = reset_quote(lock_quote(mk_quote(), T0))

    assert reset.state == "unlocked"
    assert reset.locked_rate is None
    assert reset.locked_at is None


def test_reset_on_unlocked_is_noop() -> None:
    quote = mk_quote()

    assert reset_quote(quote) is quote


def test_reprice_keeps_lock() -> None:
    locked = lock_quote(mk_quote(150.0), T0)

    moved = reprice_quote(locked, 151.0)

    assert moved.rate == 151.0
    assert moved.locked_rate == 150.0
    assert moved.locked_at == T0


def test_reprice_rejects_non_positive_rate() -> None:
    with pytest.raises(ValidationError):
        reprice_quote(mk_quote(), 0.0)


def test_half_locked_quote_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Quote(quote_id="q", rate=150.0, hold_window_sec=90, slippage_bound_bps=50, locked_rate=150.0)


def test_transition_table() -> None:
    assert is_valid_transition("unlocked", "locked")
    assert is_valid_transition("unlocked", "unlocked")
    assert is_valid_transition("locked", "unlocked")
    assert not is_valid_transition("locked", "locked")
    assert not is_valid_transition("expired", "locked")
