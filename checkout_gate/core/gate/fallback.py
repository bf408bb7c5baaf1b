"""Fail-closed fallback transform.

When a locked quote is no longer valid, the variable-rate leg is converted
into the card fallback leg at the current rate. The transform is one-shot:
its output has a zero variable-rate amount, which no longer satisfies the
trigger.
"""

from __future__ import annotations

from typing import Sequence

from checkout_gate.core.domain.money import round_units
from checkout_gate.core.domain.types import CardFallback, Tender, VariableRateAsset


def _legs(tenders: Sequence[Tender]) -> tuple[VariableRateAsset | None, CardFallback | None]:
    variable = next((t for t in tenders if isinstance(t, VariableRateAsset)), None)
    card = next((t for t in tenders if isinstance(t, CardFallback)), None)
    return variable, card


def fallback_triggered(
    tenders: Sequence[Tender],
    quote_ok: bool,
    auto_fallback_enabled: bool,
) -> bool:
    """Trigger: locked quote, invalid, auto-fallback on, positive variable amount."""
    variable, card = _legs(tenders)
    if variable is None or card is None:
        return False
    return (
        variable.quote.is_locked
        and not quote_ok
        and auto_fallback_enabled
        and variable.amount > 0
    )


def apply_fallback(
    tenders: Sequence[Tender],
    quote_ok: bool,
    auto_fallback_enabled: bool,
) -> tuple[Tender, ...]:
    """Move the variable-rate leg's value onto the card leg.

    Returns the tenders unchanged when the trigger does not hold. Otherwise
    the card leg gains round(amount * current_rate) and the variable leg is
    set to zero; total value is preserved to within one local unit.
    """
    variable, card = _legs(tenders)
    if variable is None or card is None:
        return tuple(tenders)
    if not fallback_triggered(tenders, quote_ok, auto_fallback_enabled):
        return tuple(tenders)

    add_local = round_units(variable.amount * variable.quote.rate)
    new_variable = variable.model_copy(update={"amount": 0.0})
    new_card = card.model_copy(update={"amount": card.amount + add_local})

    out: list[Tender] = []
    for t in tenders:
        if t is variable:
            out.append(new_variable)
        elif t is card:
            out.append(new_card)
        else:
            out.append(t)
    return tuple(out)
