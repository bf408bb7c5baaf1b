"""Gate evaluator applying policy snapshot constraints to a checkout total."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from checkout_gate.core.domain.reject_reasons import (
    APPROVED_MESSAGE,
    BLOCK_REASON_MESSAGES,
    BlockReason,
)
from checkout_gate.core.domain.types import parse_time_window

if TYPE_CHECKING:
    from checkout_gate.core.domain.types import PolicySnapshot
    from checkout_gate.core.gate.quote_validity import QuoteValidity


# ---------------------------------------------------------------------------
# Gate decision model (derived, never stored on its own)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GateDecision:
    """Result of the gate layer: approved, or blocked with exactly one reason."""

    approved: bool
    reason: BlockReason | None = None

    def __post_init__(self) -> None:
        if self.approved and self.reason is not None:
            raise ValueError("an approved decision carries no reason")
        if not self.approved and self.reason is None:
            raise ValueError("a blocked decision requires a reason")

    @classmethod
    def approve(cls) -> GateDecision:
        return cls(approved=True)

    @classmethod
    def block(cls, reason: BlockReason) -> GateDecision:
        return cls(approved=False, reason=reason)

    @property
    def message(self) -> str:
        """Human-readable reason string."""
        if self.reason is None:
            return APPROVED_MESSAGE
        return BLOCK_REASON_MESSAGES[self.reason]


def time_of_day(now: datetime) -> str:
    return now.strftime("%H:%M")


def within_window(now: datetime, window: str | None) -> bool:
    """Inclusive HH:MM comparison on the local wall-clock time of day.

    A None window is empty: no time of day falls inside it.
    """
    if window is None:
        return False
    start, end = parse_time_window(window)
    hm = time_of_day(now)
    return start <= hm <= end


def cap_allows(total_local: float, max_per_txn_local: float) -> bool:
    """A cap of 0 means no cap is enforced."""
    return max_per_txn_local == 0 or total_local <= max_per_txn_local


def evaluate(snapshot: PolicySnapshot, total_local: float, now: datetime) -> GateDecision:
    """Apply the snapshot's constraints in fixed precedence.

    1) on/off
    2) time window
    3) per-transaction cap

    Pure: identical inputs always give an identical decision.
    """
    if snapshot.on_off != "ON":
        return GateDecision.block(BlockReason.POLICY_DISABLED)

    if not within_window(now, snapshot.time_window_local):
        return GateDecision.block(BlockReason.OUTSIDE_WINDOW)

    if not cap_allows(total_local, snapshot.max_per_txn_local):
        return GateDecision.block(BlockReason.CAP_EXCEEDED)

    return GateDecision.approve()


def combine(gate: GateDecision, quote: QuoteValidity) -> GateDecision:
    """Logical AND of the gate and quote results; first failure wins.

    Quote reasons are only reachable once every gate check has passed.
    """
    if not gate.approved:
        return gate
    reason = quote.block_reason
    if reason is not None:
        return GateDecision.block(reason)
    return gate
