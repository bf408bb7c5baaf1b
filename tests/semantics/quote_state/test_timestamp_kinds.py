"""
Semantic test: timestamps of one checkout share a kind.

Invariant:
A checkout opened with a timezone-aware time only accepts aware times
afterwards, and a naive one only naive times. A mismatch is refused with
ValueError when the checkout is opened, when the clock advances, when the
quote is locked and when validity is read. It never surfaces as a
TypeError from comparing the two kinds.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from checkout_gate.core.domain.checkout import AdvanceClock, CheckoutContext, LockQuote
from checkout_gate.core.domain.quote_state_machine import lock_quote
from checkout_gate.core.domain.types import CardFallback, LocalLedgerCredit, Quote, VariableRateAsset
from checkout_gate.core.events.sinks import NullEventBus
from checkout_gate.core.gate.checkout_engine import CheckoutEngine
from checkout_gate.core.gate.quote_validity import evaluate_quote
from checkout_gate.core.policy.checkout_config import CheckoutConfig
from checkout_gate.core.policy.policy_store import PolicyStore
from checkout_gate.runtime.entrypoint import DEFAULT_POLICY_PATH

JST = timezone(timedelta(hours=9))
NAIVE_T0 = datetime(2025, 8, 27, 12, 0, 0)
AWARE_T0 = datetime(2025, 8, 27, 12, 0, 0, tzinfo=JST)


def mk_quote() -> Quote:
    return Quote(quote_id="q-89aa", rate=150.0, hold_window_sec=90, slippage_bound_bps=50)


def make_engine() -> CheckoutEngine:
    return CheckoutEngine(
        store=PolicyStore.from_json_path(DEFAULT_POLICY_PATH),
        config=CheckoutConfig(),
        event_bus=NullEventBus(),
    )


def open_checkout(engine: CheckoutEngine, now: datetime, quote: Quote | None = None) -> CheckoutContext:
    return engine.open_checkout(
        jurisdiction="JP",
        local_currency="JPY",
        now=now,
        tenders=[
            LocalLedgerCredit(amount=2500, instrument="Tochika", issuer_id="JP-BANK-01"),
            VariableRateAsset(amount=50, instrument="USDC", chain="allowlisted", quote=quote or mk_quote()),
            CardFallback(amount=0, brand="VISA"),
        ],
    )


def test_aware_checkout_refuses_naive_evaluation_time() -> None:
    engine = make_engine()
    ctx = open_checkout(engine, AWARE_T0)

    with pytest.raises(ValueError, match="timezone-aware and naive"):
        engine.evaluate(ctx, NAIVE_T0 + timedelta(seconds=5))


def test_naive_checkout_refuses_aware_clock_and_lock() -> None:
    engine = make_engine()
    ctx = open_checkout(engine, NAIVE_T0)

    with pytest.raises(ValueError):
        engine.apply(ctx, AdvanceClock(now=AWARE_T0))
    with pytest.raises(ValueError):
        engine.apply(ctx, LockQuote(at=AWARE_T0))


def test_quote_locked_with_other_kind_is_refused_at_open() -> None:
    engine = make_engine()

    with pytest.raises(ValueError):
        open_checkout(engine, AWARE_T0, quote=lock_quote(mk_quote(), NAIVE_T0))


def test_validity_refuses_mixed_kinds() -> None:
    quote = lock_quote(mk_quote(), AWARE_T0)

    with pytest.raises(ValueError):
        evaluate_quote(quote, NAIVE_T0)


def test_aware_checkout_evaluates_end_to_end() -> None:
    engine = make_engine()
    ctx = engine.apply(open_checkout(engine, AWARE_T0), LockQuote(at=AWARE_T0))

    result = engine.evaluate(ctx, AWARE_T0 + timedelta(seconds=30))

    assert result.decision.approved
    assert result.quote.elapsed_sec == 30
