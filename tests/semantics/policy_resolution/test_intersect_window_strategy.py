"""
Semantic test: window merge strategy is explicit.

Invariant:
The default strategy keeps the first matched row's window; the
intersecting strategy narrows to the overlap of all matched windows and
turns a disjoint set into an empty window that blocks every time of
day with OutsideWindow. The strategy is picked by name from
configuration and unknown names are refused.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

import pytest

from checkout_gate.core.domain.reject_reasons import BlockReason
from checkout_gate.core.domain.types import PolicyRow
from checkout_gate.core.gate.gate_evaluator import evaluate
from checkout_gate.core.policy.policy_resolver import (
    BasketMergeStrategy,
    IntersectingMergeStrategy,
    PolicyResolver,
    merge_strategy_for,
)
from checkout_gate.core.policy.policy_store import PolicyStore


def mk_row(instrument: str, window: str) -> PolicyRow:
    data: dict[str, Any] = {
        "version": "T-1",
        "jurisdiction": "JP",
        "use_case": "Test",
        "instrument": instrument,
        "chain": "test",
        "allow": "ON",
        "max_txn_local": 1000,
        "daily_cap_local": 1000,
        "monthly_cap_local": 1000,
        "local_currency": "JPY",
        "time_window_local": window,
        "effective_from": date(2025, 1, 1),
        "approver": "Risk",
    }
    return PolicyRow.model_validate(data)


def test_overlapping_windows_intersect() -> None:
    store = PolicyStore([mk_row("A", "09:00-20:00"), mk_row("B", "10:00-18:00")])

    first = PolicyResolver(store, BasketMergeStrategy()).resolve("JP", ["A", "B"])
    strict = PolicyResolver(store, IntersectingMergeStrategy()).resolve("JP", ["A", "B"])

    assert first.time_window_local == "09:00-20:00"
    assert strict.time_window_local == "10:00-18:00"


def test_disjoint_windows_block_every_time() -> None:
    rows = [mk_row("A", "09:00-10:00"), mk_row("B", "11:00-12:00")]

    snap = IntersectingMergeStrategy().merge("JP", rows)

    assert snap.time_window_local is None
    for hour, minute in ((9, 30), (10, 0), (11, 0), (11, 30)):
        decision = evaluate(snap, 100, datetime(2025, 8, 27, hour, minute))
        assert decision.reason is BlockReason.OUTSIDE_WINDOW


def test_touching_windows_share_one_minute() -> None:
    rows = [mk_row("A", "09:00-11:00"), mk_row("B", "11:00-12:00")]

    snap = IntersectingMergeStrategy().merge("JP", rows)

    assert snap.time_window_local == "11:00-11:00"
    assert evaluate(snap, 100, datetime(2025, 8, 27, 11, 0)).approved
    assert not evaluate(snap, 100, datetime(2025, 8, 27, 11, 1)).approved


def test_strategy_lookup_by_name() -> None:
    assert merge_strategy_for("first_match").name == "first_match"
    assert merge_strategy_for("intersect").name == "intersect"

    with pytest.raises(ValueError):
        merge_strategy_for("union")
