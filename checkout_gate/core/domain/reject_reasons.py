"""Closed enumeration of checkout block reasons.

Reasons are listed in evaluation precedence: when several conditions fail,
the first one in BLOCK_REASON_PRECEDENCE determines the decision.
"""

from __future__ import annotations

from enum import Enum


class BlockReason(str, Enum):
    POLICY_DISABLED = "PolicyDisabled"
    OUTSIDE_WINDOW = "OutsideWindow"
    CAP_EXCEEDED = "CapExceeded"
    QUOTE_EXPIRED = "QuoteExpired"
    SLIPPAGE_BREACHED = "SlippageBreached"


BLOCK_REASON_PRECEDENCE: tuple[BlockReason, ...] = (
    BlockReason.POLICY_DISABLED,
    BlockReason.OUTSIDE_WINDOW,
    BlockReason.CAP_EXCEEDED,
    BlockReason.QUOTE_EXPIRED,
    BlockReason.SLIPPAGE_BREACHED,
)

APPROVED_MESSAGE: str = "Approved (rules satisfied)."

BLOCK_REASON_MESSAGES: dict[BlockReason, str] = {
    BlockReason.POLICY_DISABLED: "Blocked: Policy OFF.",
    BlockReason.OUTSIDE_WINDOW: "Blocked: Outside time window.",
    BlockReason.CAP_EXCEEDED: "Blocked: Exceeds per-txn cap.",
    BlockReason.QUOTE_EXPIRED: "Blocked: Quote hold expired → fail-closed to card.",
    BlockReason.SLIPPAGE_BREACHED: "Blocked: Slippage bound breached → fail-closed to card.",
}
