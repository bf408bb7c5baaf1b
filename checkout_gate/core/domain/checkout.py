"""Checkout context and its explicit state transitions.

The checkout context is the only mutable state in the system and is owned by
the caller. "Mutation" is modelled as a pure transition: ``apply_event``
takes a context and a user action and returns the next context. Nothing in
the core changes a context behind the caller's back.
"""

# pylint: disable=missing-function-docstring
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from checkout_gate.core.domain.money import total_local
from checkout_gate.core.domain.quote_state_machine import (
    lock_quote,
    reprice_quote,
    reset_quote,
)
from checkout_gate.core.domain.types import (
    CardFallback,
    PolicySnapshot,
    Quote,
    Tender,
    VariableRateAsset,
)

# ---------------------------------------------------------------------------
# Checkout context
# ---------------------------------------------------------------------------


def _require_same_tz_kind(reference: datetime, other: datetime) -> None:
    if (reference.tzinfo is None) != (other.tzinfo is None):
        raise ValueError(
            f"cannot mix timezone-aware and naive timestamps: {reference.isoformat()} vs {other.isoformat()}"
        )


class CheckoutContext(BaseModel):
    """Caller-owned state of one checkout session.

    Notes:
    - snapshot is resolved once when the checkout is opened and never
      recomputed, even after the fallback transform changes leg amounts.
    - now is a monotone clock: transitions never move it backwards.
    - all timestamps are either timezone-aware or naive, never a mix.
    """

    jurisdiction: str = Field(..., pattern=r"^[A-Z0-9]+$")
    merchant_name: str = Field(..., min_length=1)
    local_currency: str = Field(..., min_length=1)

    tenders: tuple[Tender, ...] = Field(..., min_length=1)
    snapshot: PolicySnapshot

    opened_at: datetime
    now: datetime

    auto_fallback: bool = True
    fallback_applied: bool = False

    model_config = ConfigDict(extra="forbid", frozen=True)

    @model_validator(mode="after")
    def validate_legs(self) -> CheckoutContext:
        kinds = [t.tender_type for t in self.tenders]
        if kinds.count("variable_rate_asset") > 1:
            raise ValueError("at most one variable-rate tender is supported")
        if kinds.count("card_fallback") > 1:
            raise ValueError("at most one card fallback tender is supported")
        if "variable_rate_asset" in kinds and "card_fallback" not in kinds:
            raise ValueError("a variable-rate tender requires a card fallback tender")
        _require_same_tz_kind(self.opened_at, self.now)
        quote = self.quote
        if quote is not None and quote.locked_at is not None:
            _require_same_tz_kind(self.opened_at, quote.locked_at)
        if self.now < self.opened_at:
            raise ValueError("now must not be before opened_at")
        return self

    @property
    def total_local(self) -> float:
        return total_local(self.tenders)

    @property
    def variable_leg(self) -> VariableRateAsset | None:
        for t in self.tenders:
            if isinstance(t, VariableRateAsset):
                return t
        return None

    @property
    def card_leg(self) -> CardFallback | None:
        for t in self.tenders:
            if isinstance(t, CardFallback):
                return t
        return None

    @property
    def quote(self) -> Quote | None:
        leg = self.variable_leg
        return None if leg is None else leg.quote

    def advance_clock(self, now: datetime) -> CheckoutContext:
        """Return a context whose clock is max(self.now, now).

        Raises ValueError when ``now`` is naive and the context is
        timezone-aware, or the other way round.
        """
        _require_same_tz_kind(self.now, now)
        if now <= self.now:
            return self
        return self.model_copy(update={"now": now})


# ---------------------------------------------------------------------------
# User actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LockQuote:
    at: datetime


@dataclass(frozen=True, slots=True)
class ResetQuote:
    pass


@dataclass(frozen=True, slots=True)
class ToggleAutoFallback:
    enabled: bool


@dataclass(frozen=True, slots=True)
class UpdateRate:
    rate: float


@dataclass(frozen=True, slots=True)
class SetTenderAmount:
    tender_type: str
    amount: float


@dataclass(frozen=True, slots=True)
class AdvanceClock:
    now: datetime


CheckoutEvent = Union[
    LockQuote,
    ResetQuote,
    ToggleAutoFallback,
    UpdateRate,
    SetTenderAmount,
    AdvanceClock,
]


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def _replace_leg(context: CheckoutContext, old: Tender, new: Tender) -> tuple[Tender, ...]:
    return tuple(new if t is old else t for t in context.tenders)


def _with_quote(context: CheckoutContext, quote: Quote) -> CheckoutContext:
    leg = context.variable_leg
    if leg is None:
        raise ValueError("checkout has no variable-rate tender")
    new_leg = leg.model_copy(update={"quote": quote})
    return context.model_copy(update={"tenders": _replace_leg(context, leg, new_leg)})


def apply_event(context: CheckoutContext, event: CheckoutEvent) -> CheckoutContext:
    """Apply one user action and return the next context.

    Raises ValueError for actions that are not legal in the current state
    (e.g. locking an already locked quote) or that carry invalid values.
    """
    if isinstance(event, AdvanceClock):
        return context.advance_clock(event.now)

    if isinstance(event, ToggleAutoFallback):
        return context.model_copy(update={"auto_fallback": event.enabled})

    if isinstance(event, LockQuote):
        ctx = context.advance_clock(event.at)
        quote = ctx.quote
        if quote is None:
            raise ValueError("checkout has no variable-rate tender")
        return _with_quote(ctx, lock_quote(quote, ctx.now))

    if isinstance(event, ResetQuote):
        quote = context.quote
        if quote is None:
            raise ValueError("checkout has no variable-rate tender")
        return _with_quote(context, reset_quote(quote))

    if isinstance(event, UpdateRate):
        quote = context.quote
        if quote is None:
            raise ValueError("checkout has no variable-rate tender")
        return _with_quote(context, reprice_quote(quote, event.rate))

    if isinstance(event, SetTenderAmount):
        leg = next((t for t in context.tenders if t.tender_type == event.tender_type), None)
        if leg is None:
            raise ValueError(f"checkout has no {event.tender_type} tender")
        # Re-validate so negative / non-finite amounts are refused here.
        new_leg = type(leg).model_validate({**leg.model_dump(), "amount": event.amount})
        update: dict[str, object] = {"tenders": _replace_leg(context, leg, new_leg)}
        if isinstance(new_leg, VariableRateAsset) and new_leg.amount > 0:
            # A fresh positive variable amount re-arms the fallback.
            update["fallback_applied"] = False
        return context.model_copy(update=update)

    raise TypeError(f"unsupported checkout event: {type(event).__name__}")
