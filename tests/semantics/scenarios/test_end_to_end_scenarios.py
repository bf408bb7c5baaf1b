"""
Semantic test: end-to-end checkout scenarios against the bundled JP policy.

Invariant:
1) total 20000 over the 15000 cap at 12:00 -> Blocked(CapExceeded)
2) same basket at total 10000 -> Approved
3) quote locked at 150.0 with a 90 s hold, evaluated 91 s later ->
   Blocked(QuoteExpired); with auto-fallback the variable leg moves to the
   card leg unchanged in local-currency value
4) quote locked at 150.0 with a 50 bps bound, current rate 151.0
   (about 66.7 bps) -> Blocked(SlippageBreached)
"""

from __future__ import annotations

from datetime import datetime, timedelta

from checkout_gate.core.domain.checkout import CheckoutContext, LockQuote, ToggleAutoFallback, UpdateRate
from checkout_gate.core.domain.reject_reasons import BlockReason
from checkout_gate.core.domain.types import CardFallback, LocalLedgerCredit, Quote, VariableRateAsset
from checkout_gate.core.events.event_bus import EventBus
from checkout_gate.core.events.events import (
    ArtifactBuiltEvent,
    FallbackAppliedEvent,
    GateDecisionEvent,
)
from checkout_gate.core.events.sinks import MemorySink, NullEventBus
from checkout_gate.core.gate.checkout_engine import CheckoutEngine
from checkout_gate.core.policy.checkout_config import CheckoutConfig
from checkout_gate.core.policy.policy_store import PolicyStore
from checkout_gate.runtime.entrypoint import DEFAULT_POLICY_PATH

NOON = datetime(2025, 8, 27, 12, 0, 0)


def make_engine(event_bus: EventBus | None = None) -> CheckoutEngine:
    return CheckoutEngine(
        store=PolicyStore.from_json_path(DEFAULT_POLICY_PATH),
        config=CheckoutConfig(),
        event_bus=event_bus if event_bus is not None else NullEventBus(),
    )


def open_jp(engine: CheckoutEngine, *, ledger: float, card: float) -> CheckoutContext:
    return engine.open_checkout(
        jurisdiction="JP",
        local_currency="JPY",
        now=NOON,
        tenders=[
            LocalLedgerCredit(amount=ledger, instrument="Tochika", issuer_id="JP-BANK-01"),
            VariableRateAsset(
                amount=50,
                instrument="USDC",
                chain="allowlisted",
                quote=Quote(quote_id="q-89aa", rate=150.0, hold_window_sec=90, slippage_bound_bps=50),
            ),
            CardFallback(amount=card, brand="VISA"),
        ],
    )


def test_scenario_1_cap_exceeded() -> None:
    engine = make_engine()
    ctx = open_jp(engine, ledger=8000, card=4500)
    assert ctx.total_local == 20000

    result = engine.evaluate(ctx)

    assert not result.decision.approved
    assert result.decision.reason is BlockReason.CAP_EXCEEDED
    assert not result.fallback_applied
    assert result.artifact.reconciliation.status == "blocked"


def test_scenario_2_approved() -> None:
    engine = make_engine()
    ctx = open_jp(engine, ledger=2500, card=0)
    assert ctx.total_local == 10000

    result = engine.evaluate(ctx)

    assert result.decision.approved
    assert result.artifact.decision.message == "Approved (rules satisfied)."
    assert result.artifact.reconciliation.amount_gross == 10000
    assert result.artifact.reconciliation.amount_net == 9965


def test_scenario_3_quote_expired_with_fallback() -> None:
    sink = MemorySink()
    engine = make_engine(EventBus(sinks=[sink]))
    ctx = engine.apply(open_jp(engine, ledger=2500, card=0), LockQuote(at=NOON))

    result = engine.evaluate(ctx, NOON + timedelta(seconds=91))

    assert result.decision.reason is BlockReason.QUOTE_EXPIRED
    assert result.quote.elapsed_sec == 91.0
    assert result.fallback_applied

    after = result.context
    assert after.variable_leg is not None and after.variable_leg.amount == 0
    assert after.card_leg is not None and after.card_leg.amount == 7500
    assert after.total_local == ctx.total_local == 10000
    assert after.snapshot == ctx.snapshot

    fallback = sink.of_type(FallbackAppliedEvent)
    assert len(fallback) == 1
    assert fallback[0].moved_local == 7500
    assert fallback[0].total_before == fallback[0].total_after == 10000

    decisions = sink.of_type(GateDecisionEvent)
    assert [d.reason for d in decisions] == ["QuoteExpired"]
    assert len(sink.of_type(ArtifactBuiltEvent)) == 1


def test_scenario_3_without_auto_fallback_keeps_legs() -> None:
    engine = make_engine()
    ctx = engine.apply(open_jp(engine, ledger=2500, card=0), LockQuote(at=NOON))
    ctx = engine.apply(ctx, ToggleAutoFallback(enabled=False))

    result = engine.evaluate(ctx, NOON + timedelta(seconds=91))

    assert result.decision.reason is BlockReason.QUOTE_EXPIRED
    assert not result.fallback_applied
    assert result.context.tenders == ctx.tenders


def test_scenario_4_slippage_breached() -> None:
    engine = make_engine()
    ctx = engine.apply(open_jp(engine, ledger=2500, card=0), LockQuote(at=NOON))
    ctx = engine.apply(ctx, UpdateRate(rate=151.0))

    result = engine.evaluate(ctx, NOON + timedelta(seconds=30))

    assert result.decision.reason is BlockReason.SLIPPAGE_BREACHED
    assert result.quote.hold_valid
    assert result.quote.slippage_bps is not None and result.quote.slippage_bps > 66
    # Fallback converts at the current rate.
    assert result.context.card_leg is not None
    assert result.context.card_leg.amount == 7550


def test_outside_window_blocks_before_cap() -> None:
    engine = make_engine()
    ctx = open_jp(engine, ledger=8000, card=4500)

    result = engine.evaluate(ctx, NOON.replace(hour=21))

    assert result.decision.reason is BlockReason.OUTSIDE_WINDOW


def test_each_evaluation_gets_a_new_rid() -> None:
    engine = make_engine()
    ctx = open_jp(engine, ledger=2500, card=0)

    first = engine.evaluate(ctx)
    second = engine.evaluate(ctx)

    assert first.artifact.rid == "RID-JP-20250827-000045"
    assert second.artifact.rid == "RID-JP-20250827-000046"
