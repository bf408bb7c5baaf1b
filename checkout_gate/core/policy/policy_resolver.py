"""Policy resolution: matched rows -> one basket-level snapshot.

The merge rule is an explicit strategy object so it can be audited and
tested on its own. The default strategy reproduces the basket-level
semantics of the checkout: ON if any row is ON, caps are the maximum across
rows, disclosures are unioned, KYC is the strictest level, and the time
window is taken from the first matched row.

Overlapping windows are NOT intersected by default. ``IntersectingMergeStrategy``
is available for callers that want the stricter rule; which one applies is a
configuration decision, not something the resolver changes silently.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Protocol, Sequence

from checkout_gate.core.domain.types import (
    KYC_LEVEL_ORDER,
    UNRESTRICTED_WINDOW,
    PolicyRow,
    PolicySnapshot,
    parse_time_window,
)
from checkout_gate.core.policy.policy_store import PolicyStore

LOGGER = logging.getLogger(__name__)


def fail_closed_snapshot(jurisdiction: str) -> PolicySnapshot:
    """Snapshot used when no row matches: OFF with all caps at 0."""
    return PolicySnapshot(
        jurisdiction=jurisdiction,
        on_off="OFF",
        max_per_txn_local=0.0,
        daily_cap_local=0.0,
        time_window_local=UNRESTRICTED_WINDOW,
        required_disclosures=(),
        kyc_level="none",
        travel_rule_applied=False,
        sanctions_screen="not_required",
        local_currency=None,
        policy_versions=(),
        matched_instruments=(),
    )


class MergeStrategy(Protocol):
    """Combines one or more matched rows into a single snapshot."""

    name: str

    def merge(self, jurisdiction: str, rows: Sequence[PolicyRow]) -> PolicySnapshot:
        """Merge non-empty ``rows`` (in stable table order)."""


class BasketMergeStrategy:
    """Basket-level merge with first-match time window."""

    name = "first_match"

    def merge(self, jurisdiction: str, rows: Sequence[PolicyRow]) -> PolicySnapshot:
        if not rows:
            return fail_closed_snapshot(jurisdiction)

        first = rows[0]
        return PolicySnapshot(
            jurisdiction=jurisdiction,
            on_off="ON" if any(r.allow == "ON" for r in rows) else "OFF",
            max_per_txn_local=max(r.max_txn_local for r in rows),
            daily_cap_local=max(r.daily_cap_local for r in rows),
            time_window_local=self.merge_windows(rows),
            required_disclosures=tuple(
                dict.fromkeys(code for r in rows for code in r.required_disclosures)
            ),
            kyc_level=max((r.kyc_level for r in rows), key=KYC_LEVEL_ORDER.__getitem__),
            travel_rule_applied=any(r.travel_rule_required for r in rows),
            sanctions_screen="pass" if any(r.sanctions_screen for r in rows) else "not_required",
            local_currency=first.local_currency,
            fallback_instrument=first.fallback_on_fail,
            policy_versions=tuple(r.version for r in rows),
            matched_instruments=tuple(r.instrument for r in rows),
        )

    def merge_windows(self, rows: Sequence[PolicyRow]) -> str | None:
        windows = {r.time_window_local for r in rows}
        if len(windows) > 1:
            LOGGER.warning(
                "Policy rows disagree on time window; using first match",
                extra={"windows": sorted(windows), "chosen": rows[0].time_window_local},
            )
        return rows[0].time_window_local


class IntersectingMergeStrategy(BasketMergeStrategy):
    """Same as the basket merge, but overlapping windows are intersected.

    Disjoint windows have an empty intersection, represented as a None
    window that no time of day falls inside.
    """

    name = "intersect"

    def merge_windows(self, rows: Sequence[PolicyRow]) -> str | None:
        bounds = [parse_time_window(r.time_window_local) for r in rows]
        start = max(b[0] for b in bounds)
        end = min(b[1] for b in bounds)
        if end < start:
            LOGGER.warning(
                "Policy row windows do not overlap; no time of day is admitted",
                extra={"windows": sorted({r.time_window_local for r in rows})},
            )
            return None
        return f"{start}-{end}"


MERGE_STRATEGIES: dict[str, type[BasketMergeStrategy]] = {
    BasketMergeStrategy.name: BasketMergeStrategy,
    IntersectingMergeStrategy.name: IntersectingMergeStrategy,
}


def merge_strategy_for(name: str) -> BasketMergeStrategy:
    try:
        return MERGE_STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"Invalid window merge strategy: {name}") from None


class PolicyResolver:
    """Resolves the effective snapshot for a jurisdiction and basket."""

    def __init__(self, store: PolicyStore, strategy: MergeStrategy | None = None) -> None:
        self._store = store
        self._strategy = strategy if strategy is not None else BasketMergeStrategy()

    @property
    def strategy(self) -> MergeStrategy:
        return self._strategy

    def resolve(
        self,
        jurisdiction: str,
        instruments: Iterable[str],
        *,
        as_of: date | None = None,
    ) -> PolicySnapshot:
        """Resolve the basket-level snapshot.

        Absence of any matching row is not an error: it yields the
        fail-closed snapshot (OFF, caps 0).
        """
        rows = self._store.match(jurisdiction, instruments, as_of=as_of)
        if not rows:
            LOGGER.info(
                "No policy row matched; failing closed",
                extra={"jurisdiction": jurisdiction},
            )
            return fail_closed_snapshot(jurisdiction)
        return self._strategy.merge(jurisdiction, rows)
