"""Text and CSV renderings of artifacts and of the policy table.

Renderers return strings only; writing them anywhere is the caller's job.
Amounts go through ``format_amount`` everywhere so the same figure reads the
same in the receipt text and the reconciliation CSV.
"""

from __future__ import annotations

import csv
import io
from datetime import datetime
from typing import Iterable

from checkout_gate.core.artifacts.records import Receipt, ReconciliationRecord
from checkout_gate.core.domain.money import format_amount
from checkout_gate.core.domain.types import PolicyRow

MISSING: str = "—"

RECON_COLUMNS: tuple[tuple[str, str], ...] = (
    ("RID", "rid"),
    ("Order_ID", "order_id"),
    ("Receipt_ID", "receipt_id"),
    ("Merchant_ID", "merchant_id"),
    ("Merchant_Name", "merchant_name"),
    ("Payout_Batch_ID", "payout_batch_id"),
    ("Payout_Date", "payout_date"),
    ("Value_Date", "value_date"),
    ("Payout_Currency", "payout_currency"),
    ("Amount_Gross", "amount_gross"),
    ("Fees_Aggregator", "fees_aggregator"),
    ("Fees_PSP", "fees_psp"),
    ("Fees_Platform", "fees_platform"),
    ("Amount_Net", "amount_net"),
    ("Bank_Account_Last4", "bank_account_last4"),
    ("Statement_Descriptor", "statement_descriptor"),
    ("Status", "status"),
    ("Dispute_Flag", "dispute_flag"),
    ("Refund_Flag", "refund_flag"),
    ("Aggregator_ID", "aggregator_id"),
    ("Aggregator_Route_ID", "aggregator_route_id"),
    ("Acquirer_ID", "acquirer_id"),
    ("Asset_In_Type", "asset_in_type"),
    ("Asset_In_Amount", "asset_in_amount"),
    ("Asset_In_Chain", "asset_in_chain"),
    ("Asset_In_TXID", "asset_in_txid"),
    ("Quote_ID", "quote_id"),
    ("Quote_Rate", "quote_rate"),
    ("Hold_Start", "hold_start"),
    ("Hold_End", "hold_end"),
    ("Policy_Version", "policy_version"),
    ("Policy_Hash", "policy_hash"),
)

POLICY_COLUMNS: tuple[tuple[str, str], ...] = (
    ("Version", "version"),
    ("Jurisdiction", "jurisdiction"),
    ("Use_Case", "use_case"),
    ("Instrument", "instrument"),
    ("Chain", "chain"),
    ("Allow", "allow"),
    ("Max_Txn_Local", "max_txn_local"),
    ("Daily_Cap_Local", "daily_cap_local"),
    ("Monthly_Cap_Local", "monthly_cap_local"),
    ("Local_Currency", "local_currency"),
    ("Time_Window_Local", "time_window_local"),
    ("Required_Disclosures", "required_disclosures"),
    ("KYC_Level", "kyc_level"),
    ("TravelRule_Required", "travel_rule_required"),
    ("Sanctions_Screen", "sanctions_screen"),
    ("Allowed_MCCs", "allowed_mccs"),
    ("Fallback_On_Fail", "fallback_on_fail"),
    ("Effective_From", "effective_from"),
    ("Effective_To", "effective_to"),
    ("Approver", "approver"),
    ("Notes", "notes"),
)


def _cell(value: object, *, yes_no: bool = False, missing: str = "") -> str:
    if value is None:
        return missing
    if isinstance(value, bool):
        if yes_no:
            return "Yes" if value else "No"
        return "yes" if value else "no"
    if isinstance(value, float):
        return format_amount(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, tuple):
        return "|".join(str(v) for v in value)
    return str(value)


def _to_csv(header: Iterable[str], rows: Iterable[Iterable[str]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(list(header))
    for row in rows:
        writer.writerow(list(row))
    return buf.getvalue().rstrip("\n")


def render_reconciliation_csv(record: ReconciliationRecord) -> str:
    """Header plus one row, in the acquirer-file column order."""
    row = [_cell(getattr(record, attr), missing=MISSING) for _, attr in RECON_COLUMNS]
    return _to_csv((name for name, _ in RECON_COLUMNS), [row])


def render_policy_csv(rows: Iterable[PolicyRow]) -> str:
    """Direct tabular rendering of the policy table; no derived fields."""
    body = (
        [_cell(getattr(r, attr), yes_no=True) for _, attr in POLICY_COLUMNS]
        for r in rows
    )
    return _to_csv((name for name, _ in POLICY_COLUMNS), body)


def render_receipt_text(receipt: Receipt) -> str:
    """Human-readable receipt specimen."""
    snap = receipt.policy.snapshot
    ccy = receipt.merchant.payout_currency
    lines = [
        "Receipt — Policy-Gated Checkout (Illustrative)",
        f"ReceiptID: {receipt.receipt_id}          ReconciliationID (RID): {receipt.reconciliation_id}",
        f"OrderID: {receipt.order_id}          Timestamp: {receipt.timestamp.isoformat()}",
        f"Jurisdiction: {receipt.jurisdiction}          Policy Version: {receipt.policy.version} (hash: {receipt.policy.hash})",
        f"Merchant: {receipt.merchant.name} ({receipt.merchant.id})  Payout Currency: {ccy}",
        "",
        f"Decision: {receipt.decision.message}",
        "",
        "Tender Summary",
    ]

    quote_line = None
    for t in receipt.tenders:
        if t.tender_type == "local_ledger_credit":
            lines.append(
                f"• {t.instrument}: {format_amount(t.amount)} {ccy} (issuer: {t.issuer_id})"
                f"          Route: {t.route}"
            )
        elif t.tender_type == "variable_rate_asset" and t.quote is not None:
            lines.append(
                f"• {t.instrument}: {t.amount:.2f} {t.instrument} → quoted {format_amount(t.quote.value_local)} {ccy}"
                f"          QuoteID: {t.quote.quote_id}; Rate: 1 {t.instrument}={t.quote.rate} {ccy}"
            )
            quote_line = t.quote
        else:
            auth = "yes" if t.authorized else "no"
            lines.append(f"• {t.instrument}: {format_amount(t.amount)} {ccy} (fallback)          Brand: {t.brand}; Auth: {auth}")
    lines.append(f"Total: {format_amount(receipt.payout.gross_local)} {ccy}")

    if quote_line is not None:
        locked = MISSING if quote_line.locked_rate is None else quote_line.locked_rate
        lines += [
            "",
            "Quote & Hold",
            f"• Hold Window: {format_amount(quote_line.hold_window_sec)}s "
            f"(start: {quote_line.hold_start.isoformat()}, end: {quote_line.hold_end.isoformat()})",
            f"• Slippage Max: {quote_line.slippage_max_bps / 100:.2f}%   Locked Rate: {locked}   Current Rate: {quote_line.rate}",
            f"• Source: Aggregator {quote_line.source_aggregator_id}",
            "• If hold expired or slippage breached → fail-closed to card",
        ]
        if receipt.fallback_applied:
            lines.append("• Fallback applied: variable-rate value moved to card")

    agg = receipt.counterparties.aggregator
    acq = receipt.counterparties.acquirer
    lines += [
        "",
        "Policy Snapshot (applied at checkout)",
        f"• On/Off={snap.on_off}; Max per txn={format_amount(snap.max_per_txn_local)} {ccy}; Time window={snap.time_window_local or 'none'}",
        f"• Required disclosures: {', '.join(snap.required_disclosures) or MISSING}",
        f"• KYC level={snap.kyc_level}; Travel Rule applied={'yes' if snap.travel_rule_applied else 'no'}; "
        f"Sanctions screen={snap.sanctions_screen}",
        "",
        "Counterparties & References",
        f"• Aggregator: {agg.id} / route {agg.route_id}; pay-in addr: {agg.payin_address}  TXID: {agg.txid}",
        f"• Acquirer/PSP: {acq.id} / batch: {acq.payout_batch_id}  Value Date: {acq.value_date}",
        f"• Statement Descriptor: {receipt.merchant.bank_descriptor}",
        "",
        "Payout & Recon",
        f"• Payout Amount (net): {format_amount(receipt.payout.net_local)} {ccy} "
        f"(fees: {format_amount(receipt.payout.fees_local)} {ccy}) to Bank ****{receipt.payout.bank_last4}",
        "• RID appears in acquirer file, aggregator report, and bank statement memo",
    ]
    return "\n".join(lines)
