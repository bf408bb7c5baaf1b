"""Artifact builder: one evaluation -> receipt + reconciliation record.

The builder is a pure function of its inputs. Every figure shared by the two
views is computed exactly once here and copied into both.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence

from checkout_gate.core.artifacts.records import (
    AcquirerRef,
    AggregatorRef,
    AuditArtifact,
    CounterpartiesView,
    DecisionView,
    MerchantView,
    PayoutView,
    PolicyView,
    QuoteView,
    Receipt,
    ReconciliationRecord,
    TenderLine,
)
from checkout_gate.core.domain.money import round_local, round_units, total_local
from checkout_gate.core.domain.rid import ReconciliationId
from checkout_gate.core.domain.types import (
    CardFallback,
    LocalLedgerCredit,
    PolicySnapshot,
    Quote,
    Tender,
    VariableRateAsset,
)
from checkout_gate.core.gate.gate_evaluator import GateDecision
from checkout_gate.core.policy.checkout_config import (
    CounterpartyRefs,
    FeeSchedule,
    MerchantConfig,
)


@dataclass(frozen=True, slots=True)
class ArtifactContext:
    """Per-evaluation values that are not part of the gate inputs."""

    rid: ReconciliationId
    issued_at: datetime
    merchant: MerchantConfig
    merchant_name: str
    local_currency: str
    fees: FeeSchedule
    fallback_applied: bool = False


def bank_descriptor(merchant_name: str, rid: str) -> str:
    """``SAKURA*ELECTRONICS*RID-...`` style statement descriptor."""
    return "*".join(merchant_name.upper().split(" ")) + "*" + rid


def hold_bounds(quote: Quote, issued_at: datetime) -> tuple[datetime, datetime]:
    start = quote.locked_at if quote.locked_at is not None else issued_at
    return start, start + timedelta(seconds=quote.hold_window_sec)


def _quote_view(
    quote: Quote,
    amount: float,
    issued_at: datetime,
    refs: CounterpartyRefs,
) -> QuoteView:
    start, end = hold_bounds(quote, issued_at)
    return QuoteView(
        quote_id=quote.quote_id,
        rate=quote.rate,
        locked_rate=quote.locked_rate,
        value_local=round_units(amount * quote.rate),
        hold_window_sec=quote.hold_window_sec,
        hold_start=start,
        hold_end=end,
        slippage_max_bps=quote.slippage_bound_bps,
        source_aggregator_id=refs.aggregator_id,
    )


def _tender_line(
    tender: Tender,
    route: str,
    issued_at: datetime,
    refs: CounterpartyRefs,
) -> TenderLine:
    common = {
        "tender_type": tender.tender_type,
        "instrument": tender.instrument,
        "amount": tender.amount,
        "value_local": round_local(tender.value_local()),
        "route": route,
    }
    if isinstance(tender, LocalLedgerCredit):
        return TenderLine(**common, issuer_id=tender.issuer_id)
    if isinstance(tender, VariableRateAsset):
        return TenderLine(
            **common,
            chain=tender.chain,
            quote=_quote_view(tender.quote, tender.amount, issued_at, refs),
        )
    if isinstance(tender, CardFallback):
        return TenderLine(**common, brand=tender.brand, authorized=tender.authorized)
    raise TypeError(f"unsupported tender: {type(tender).__name__}")


def build(
    snapshot: PolicySnapshot,
    tenders: Sequence[Tender],
    decision: GateDecision,
    quote: Quote | None,
    refs: CounterpartyRefs,
    ctx: ArtifactContext,
) -> AuditArtifact:
    """Assemble the frozen audit artifact for one evaluation."""
    rid = str(ctx.rid)
    receipt_id = ctx.rid.receipt_id
    tenders = tuple(tenders)

    gross = total_local(tenders)
    net = round_units(gross - ctx.fees.total)
    policy_version = snapshot.policy_version
    policy_hash = snapshot.digest()
    descriptor = bank_descriptor(ctx.merchant_name, rid)
    payout_currency = snapshot.local_currency or ctx.local_currency
    route = "policy-approved" if decision.approved else "blocked"

    decision_view = DecisionView(
        approved=decision.approved,
        reason=None if decision.reason is None else decision.reason.value,
        message=decision.message,
    )

    receipt = Receipt(
        receipt_id=receipt_id,
        reconciliation_id=rid,
        order_id=refs.order_id,
        timestamp=ctx.issued_at,
        jurisdiction=snapshot.jurisdiction,
        policy=PolicyView(version=policy_version, hash=policy_hash, snapshot=snapshot),
        merchant=MerchantView(
            id=ctx.merchant.id,
            name=ctx.merchant_name,
            payout_currency=payout_currency,
            bank_descriptor=descriptor,
        ),
        tenders=tuple(_tender_line(t, route, ctx.issued_at, refs) for t in tenders),
        counterparties=CounterpartiesView(
            aggregator=AggregatorRef(
                id=refs.aggregator_id,
                route_id=refs.aggregator_route_id,
                payin_address=refs.payin_address,
                txid=refs.txid,
            ),
            acquirer=AcquirerRef(
                id=refs.acquirer_id,
                payout_batch_id=refs.payout_batch_id,
                value_date=refs.value_date,
            ),
        ),
        payout=PayoutView(
            gross_local=gross,
            fees_local=ctx.fees.total,
            net_local=net,
            bank_last4=ctx.merchant.bank_last4,
        ),
        decision=decision_view,
        fallback_applied=ctx.fallback_applied,
    )

    variable = next((t for t in tenders if isinstance(t, VariableRateAsset)), None)
    card = next((t for t in tenders if isinstance(t, CardFallback)), None)
    if variable is not None and variable.amount > 0:
        asset_in = {
            "asset_in_type": variable.instrument,
            "asset_in_amount": round_local(variable.amount),
            "asset_in_chain": variable.chain,
            "asset_in_txid": refs.txid,
        }
    else:
        asset_in = {
            "asset_in_type": "Card",
            "asset_in_amount": round_units(card.amount) if card is not None else 0.0,
            "asset_in_chain": None,
            "asset_in_txid": None,
        }

    quote_fields: dict[str, object] = {}
    if quote is not None:
        start, end = hold_bounds(quote, ctx.issued_at)
        quote_fields = {
            "quote_id": quote.quote_id,
            "quote_rate": quote.rate,
            "hold_start": start,
            "hold_end": end,
        }

    reconciliation = ReconciliationRecord(
        rid=rid,
        order_id=refs.order_id,
        receipt_id=receipt_id,
        merchant_id=ctx.merchant.id,
        merchant_name=ctx.merchant_name,
        payout_batch_id=refs.payout_batch_id,
        payout_date=ctx.issued_at.date(),
        value_date=refs.value_date,
        payout_currency=payout_currency,
        amount_gross=gross,
        fees_aggregator=ctx.fees.aggregator,
        fees_psp=ctx.fees.psp,
        fees_platform=ctx.fees.platform,
        amount_net=net,
        bank_account_last4=ctx.merchant.bank_last4,
        statement_descriptor=descriptor,
        status="paid" if decision.approved else "blocked",
        aggregator_id=refs.aggregator_id,
        aggregator_route_id=refs.aggregator_route_id,
        acquirer_id=refs.acquirer_id,
        policy_version=policy_version,
        policy_hash=policy_hash,
        **asset_in,
        **quote_fields,
    )

    return AuditArtifact(
        rid=rid,
        snapshot=snapshot,
        tenders=tenders,
        decision=decision_view,
        references=refs,
        receipt=receipt,
        reconciliation=reconciliation,
    )
