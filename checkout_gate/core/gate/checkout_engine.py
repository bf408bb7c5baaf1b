"""Checkout engine: one explicit evaluation pass over a checkout context."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Sequence

from checkout_gate.core.artifacts.artifact_builder import ArtifactContext, build
from checkout_gate.core.domain.checkout import CheckoutContext, CheckoutEvent, apply_event
from checkout_gate.core.domain.money import LOCAL_TOLERANCE, round_units, total_local
from checkout_gate.core.domain.rid import RidSequencer
from checkout_gate.core.events.events import (
    ArtifactBuiltEvent,
    FallbackAppliedEvent,
    GateDecisionEvent,
    QuoteTransitionEvent,
)
from checkout_gate.core.gate.fallback import apply_fallback, fallback_triggered
from checkout_gate.core.gate.gate_evaluator import GateDecision, combine, evaluate
from checkout_gate.core.gate.quote_validity import QuoteValidity, evaluate_quote
from checkout_gate.core.policy.policy_resolver import PolicyResolver, merge_strategy_for

if TYPE_CHECKING:
    from checkout_gate.core.artifacts.records import AuditArtifact
    from checkout_gate.core.domain.types import Tender
    from checkout_gate.core.events.event_bus import EventBus
    from checkout_gate.core.policy.checkout_config import CheckoutConfig
    from checkout_gate.core.policy.policy_store import PolicyStore

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EvaluationResult:
    """Outcome of one evaluation pass.

    - context: the checkout context after the pass (post-fallback tenders)
    - decision: combined gate + quote decision
    - quote: quote validity at evaluation time
    - fallback_applied: whether this pass moved the variable leg to card
    - artifact: frozen receipt + reconciliation record for this pass
    """

    context: CheckoutContext
    decision: GateDecision
    quote: QuoteValidity
    fallback_applied: bool
    artifact: AuditArtifact


class CheckoutEngine:
    """Policy-gated checkout evaluation.

    The engine owns no checkout state: contexts are passed in and returned.
    The RID sequencer is injected by the caller, who owns its lifetime.
    """

    def __init__(
        self,
        store: PolicyStore,
        config: CheckoutConfig,
        event_bus: EventBus,
        sequencer: RidSequencer | None = None,
    ) -> None:
        self.config = config
        self._event_bus = event_bus
        self._resolver = PolicyResolver(store, merge_strategy_for(config.window_merge))
        self._sequencer = (
            sequencer if sequencer is not None else RidSequencer(start=config.rid_sequence_start)
        )

    @property
    def resolver(self) -> PolicyResolver:
        return self._resolver

    # ---------------------------------------------------------------------
    # Context lifecycle
    # ---------------------------------------------------------------------

    def open_checkout(
        self,
        *,
        jurisdiction: str,
        tenders: Sequence[Tender],
        now: datetime,
        local_currency: str,
        merchant_name: str | None = None,
        declared_total_local: float | None = None,
        auto_fallback: bool | None = None,
    ) -> CheckoutContext:
        """Establish a checkout and freeze its policy snapshot.

        Raises ValueError when the declared total is not a finite number or
        does not match the tenders within two-decimal rounding.
        """
        tenders = tuple(tenders)
        if declared_total_local is not None:
            if not math.isfinite(declared_total_local):
                raise ValueError(f"declared total must be finite, got {declared_total_local}")
            computed = total_local(tenders)
            if abs(computed - declared_total_local) > LOCAL_TOLERANCE + 1e-9:
                raise ValueError(
                    f"declared total {declared_total_local} does not match tenders ({computed})"
                )

        snapshot = self._resolver.resolve(
            jurisdiction,
            {t.instrument for t in tenders},
            as_of=now.date(),
        )

        return CheckoutContext(
            jurisdiction=jurisdiction,
            merchant_name=merchant_name if merchant_name is not None else self.config.merchant.name,
            local_currency=local_currency,
            tenders=tenders,
            snapshot=snapshot,
            opened_at=now,
            now=now,
            auto_fallback=self.config.auto_fallback if auto_fallback is None else auto_fallback,
        )

    def apply(self, context: CheckoutContext, event: CheckoutEvent) -> CheckoutContext:
        """Apply a user action, emitting a quote transition when one happens."""
        prev_quote = context.quote
        nxt = apply_event(context, event)
        next_quote = nxt.quote

        if prev_quote is not None and next_quote is not None and prev_quote.state != next_quote.state:
            self._event_bus.emit(
                QuoteTransitionEvent(
                    at=nxt.now,
                    quote_id=next_quote.quote_id,
                    prev_state=prev_quote.state,
                    next_state=next_quote.state,
                    locked_rate=next_quote.locked_rate,
                )
            )
        return nxt

    # ---------------------------------------------------------------------
    # Evaluation
    # ---------------------------------------------------------------------

    def evaluate(self, context: CheckoutContext, now: datetime | None = None) -> EvaluationResult:
        """Run one evaluation pass.

        1) gate checks against the frozen snapshot
        2) quote validity
        3) combined decision (first failure wins)
        4) fallback transform if triggered, then cap/window re-check
           against the new total (snapshot untouched)
        5) artifacts under a fresh RID
        """
        ctx = context if now is None else context.advance_clock(now)
        at = ctx.now
        snapshot = ctx.snapshot

        validity = evaluate_quote(ctx.quote, at)
        decision = combine(evaluate(snapshot, ctx.total_local, at), validity)

        applied = False
        if fallback_triggered(ctx.tenders, validity.ok, ctx.auto_fallback):
            total_before = ctx.total_local
            leg = ctx.variable_leg
            if leg is None:
                raise ValueError("fallback triggered without a variable-rate tender")

            ctx = ctx.model_copy(
                update={
                    "tenders": apply_fallback(ctx.tenders, validity.ok, ctx.auto_fallback),
                    "fallback_applied": True,
                }
            )
            applied = True
            total_after = ctx.total_local

            self._event_bus.emit(
                FallbackAppliedEvent(
                    at=at,
                    jurisdiction=ctx.jurisdiction,
                    variable_amount=leg.amount,
                    rate=leg.quote.rate,
                    moved_local=round_units(leg.amount * leg.quote.rate),
                    total_before=total_before,
                    total_after=total_after,
                )
            )
            LOGGER.info(
                "Fallback applied",
                extra={
                    "jurisdiction": ctx.jurisdiction,
                    "total_before": total_before,
                    "total_after": total_after,
                },
            )

            decision = combine(evaluate(snapshot, total_after, at), validity)

        rid = self._sequencer.next_rid(ctx.jurisdiction, at.date())
        artifact = build(
            snapshot,
            ctx.tenders,
            decision,
            ctx.quote,
            self.config.references,
            ArtifactContext(
                rid=rid,
                issued_at=at,
                merchant=self.config.merchant,
                merchant_name=ctx.merchant_name,
                local_currency=ctx.local_currency,
                fees=self.config.fees,
                fallback_applied=ctx.fallback_applied,
            ),
        )

        self._event_bus.emit(
            GateDecisionEvent(
                at=at,
                jurisdiction=ctx.jurisdiction,
                rid=artifact.rid,
                approved=decision.approved,
                reason=None if decision.reason is None else decision.reason.value,
                total_local=ctx.total_local,
                policy_version=snapshot.policy_version,
            )
        )
        self._event_bus.emit(
            ArtifactBuiltEvent(
                at=at,
                rid=artifact.rid,
                receipt_id=artifact.receipt.receipt_id,
                policy_hash=artifact.reconciliation.policy_hash,
                amount_gross=artifact.reconciliation.amount_gross,
                amount_net=artifact.reconciliation.amount_net,
            )
        )

        return EvaluationResult(
            context=ctx,
            decision=decision,
            quote=validity,
            fallback_applied=applied,
            artifact=artifact,
        )
