"""Audit artifact models: receipt view, reconciliation record, frozen union.

Both views are built from the same inputs in one pass; shared fields (RID,
gross, net, policy version/hash) must be value-identical across them.
"""

# pylint: disable=missing-class-docstring
from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from checkout_gate.core.domain.rid import RID_PATTERN
from checkout_gate.core.domain.types import PolicySnapshot, Tender
from checkout_gate.core.policy.checkout_config import CounterpartyRefs

_FROZEN = ConfigDict(extra="forbid", frozen=True)


# ---------------------------------------------------------------------------
# Receipt view
# ---------------------------------------------------------------------------


class PolicyView(BaseModel):
    version: str
    hash: str
    snapshot: PolicySnapshot

    model_config = _FROZEN


class MerchantView(BaseModel):
    id: str
    name: str
    payout_currency: str
    bank_descriptor: str

    model_config = _FROZEN


class QuoteView(BaseModel):
    quote_id: str
    rate: float
    locked_rate: float | None = None
    value_local: float
    hold_window_sec: float
    hold_start: datetime
    hold_end: datetime
    slippage_max_bps: float
    source_aggregator_id: str

    model_config = _FROZEN


class TenderLine(BaseModel):
    tender_type: Literal["local_ledger_credit", "variable_rate_asset", "card_fallback"]
    instrument: str
    amount: float
    value_local: float
    route: Literal["policy-approved", "blocked"]

    issuer_id: str | None = None
    chain: str | None = None
    brand: str | None = None
    authorized: bool | None = None
    quote: QuoteView | None = None

    model_config = _FROZEN


class AggregatorRef(BaseModel):
    id: str
    route_id: str
    payin_address: str
    txid: str

    model_config = _FROZEN


class AcquirerRef(BaseModel):
    id: str
    payout_batch_id: str
    value_date: str

    model_config = _FROZEN


class CounterpartiesView(BaseModel):
    aggregator: AggregatorRef
    acquirer: AcquirerRef

    model_config = _FROZEN


class PayoutView(BaseModel):
    gross_local: float
    fees_local: float
    net_local: float
    bank_last4: str

    model_config = _FROZEN


class DecisionView(BaseModel):
    approved: bool
    reason: str | None = None
    message: str

    model_config = _FROZEN


class Receipt(BaseModel):
    receipt_id: str
    reconciliation_id: str = Field(..., pattern=RID_PATTERN.pattern)
    order_id: str
    timestamp: datetime
    jurisdiction: str
    policy: PolicyView
    merchant: MerchantView
    tenders: tuple[TenderLine, ...]
    counterparties: CounterpartiesView
    payout: PayoutView
    decision: DecisionView
    fallback_applied: bool

    model_config = _FROZEN


# ---------------------------------------------------------------------------
# Reconciliation record
# ---------------------------------------------------------------------------


class ReconciliationRecord(BaseModel):
    rid: str = Field(..., pattern=RID_PATTERN.pattern)
    order_id: str
    receipt_id: str
    merchant_id: str
    merchant_name: str

    payout_batch_id: str
    payout_date: date
    value_date: str
    payout_currency: str

    amount_gross: float
    fees_aggregator: float
    fees_psp: float
    fees_platform: float
    amount_net: float

    bank_account_last4: str
    statement_descriptor: str
    status: Literal["paid", "blocked"]
    dispute_flag: bool = False
    refund_flag: bool = False

    aggregator_id: str
    aggregator_route_id: str
    acquirer_id: str

    asset_in_type: str
    asset_in_amount: float
    asset_in_chain: str | None = None
    asset_in_txid: str | None = None

    quote_id: str | None = None
    quote_rate: float | None = None
    hold_start: datetime | None = None
    hold_end: datetime | None = None

    policy_version: str
    policy_hash: str

    model_config = _FROZEN


# ---------------------------------------------------------------------------
# Audit artifact
# ---------------------------------------------------------------------------


class AuditArtifact(BaseModel):
    """Frozen union of snapshot, resolved tenders, RID and references.

    Rebuilding requires a new evaluation pass and a new RID.
    """

    rid: str = Field(..., pattern=RID_PATTERN.pattern)
    snapshot: PolicySnapshot
    tenders: tuple[Tender, ...]
    decision: DecisionView
    references: CounterpartyRefs
    receipt: Receipt
    reconciliation: ReconciliationRecord

    model_config = _FROZEN

    @model_validator(mode="after")
    def validate_views_agree(self) -> AuditArtifact:
        r, rec = self.receipt, self.reconciliation
        if not (self.rid == r.reconciliation_id == rec.rid):
            raise ValueError("RID differs between receipt and reconciliation record")
        if r.payout.gross_local != rec.amount_gross or r.payout.net_local != rec.amount_net:
            raise ValueError("payout figures differ between receipt and reconciliation record")
        if r.policy.hash != rec.policy_hash or r.policy.version != rec.policy_version:
            raise ValueError("policy provenance differs between receipt and reconciliation record")
        if r.receipt_id != rec.receipt_id or r.order_id != rec.order_id:
            raise ValueError("identifiers differ between receipt and reconciliation record")
        return self
