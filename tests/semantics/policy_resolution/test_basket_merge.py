"""
Semantic test: basket-level merge of matched rows.

Invariant:
For several matched rows the snapshot is ON if any row is ON, carries the
maximum caps, the ordered union of disclosures, the strictest KYC level
and the first matched row's time window. Resolution is deterministic:
the same inputs give the same snapshot and the same hash.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from checkout_gate.core.domain.types import PolicyRow
from checkout_gate.core.policy.policy_resolver import BasketMergeStrategy, PolicyResolver
from checkout_gate.core.policy.policy_store import PolicyStore
from checkout_gate.runtime.entrypoint import DEFAULT_POLICY_PATH


def mk_row(**overrides: Any) -> PolicyRow:
    data: dict[str, Any] = {
        "version": "T-1",
        "jurisdiction": "JP",
        "use_case": "Test",
        "instrument": "A",
        "chain": "test",
        "allow": "ON",
        "max_txn_local": 1000,
        "daily_cap_local": 2000,
        "monthly_cap_local": 3000,
        "local_currency": "JPY",
        "time_window_local": "09:00-20:00",
        "effective_from": date(2025, 1, 1),
        "approver": "Risk",
    }
    data.update(overrides)
    return PolicyRow.model_validate(data)


def test_jp_tochika_usdc_basket() -> None:
    resolver = PolicyResolver(PolicyStore.from_json_path(DEFAULT_POLICY_PATH))

    snap = resolver.resolve("JP", ["Tochika", "USDC", "Card"])

    assert snap.on_off == "ON"
    assert snap.max_per_txn_local == 15000
    assert snap.daily_cap_local == 30000
    assert snap.time_window_local == "09:00-20:00"
    assert snap.required_disclosures == ("JP-DISC-01", "JP-DISC-03", "JP-DISC-04")
    assert snap.kyc_level == "partner"
    assert snap.travel_rule_applied is True
    assert snap.sanctions_screen == "pass"
    assert snap.local_currency == "JPY"
    assert snap.matched_instruments == ("Tochika", "USDC")
    assert snap.policy_version == "JP-1.4"


def test_any_on_row_turns_basket_on() -> None:
    rows = [mk_row(instrument="A", allow="OFF"), mk_row(instrument="B", allow="ON")]

    snap = BasketMergeStrategy().merge("JP", rows)

    assert snap.on_off == "ON"


def test_strictest_kyc_and_max_caps_win() -> None:
    rows = [
        mk_row(instrument="A", kyc_level="issuer", max_txn_local=100),
        mk_row(instrument="B", kyc_level="none", max_txn_local=900),
    ]

    snap = BasketMergeStrategy().merge("JP", rows)

    assert snap.kyc_level == "issuer"
    assert snap.max_per_txn_local == 900


def test_first_match_window_is_kept_on_disagreement() -> None:
    rows = [
        mk_row(instrument="A", time_window_local="09:00-20:00"),
        mk_row(instrument="B", time_window_local="00:00-24:00"),
    ]

    snap = BasketMergeStrategy().merge("JP", rows)

    assert snap.time_window_local == "09:00-20:00"


def test_distinct_versions_are_joined() -> None:
    rows = [mk_row(instrument="A", version="JP-1.4"), mk_row(instrument="B", version="JP-1.5")]

    snap = BasketMergeStrategy().merge("JP", rows)

    assert snap.policy_version == "JP-1.4+JP-1.5"


def test_resolution_is_deterministic() -> None:
    resolver = PolicyResolver(PolicyStore.from_json_path(DEFAULT_POLICY_PATH))

    a = resolver.resolve("JP", ["USDC", "Tochika", "Card"])
    b = resolver.resolve("JP", ["Card", "Tochika", "USDC"])

    assert a == b
    assert a.digest() == b.digest()
