"""
Semantic test: effective dating of policy rows.

Invariant:
Rows outside [effective_from, effective_to] on the as-of date do not take
part in resolution. Without an as-of date every row is eligible.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest
from pydantic import ValidationError

from checkout_gate.core.domain.types import PolicyRow
from checkout_gate.core.policy.policy_resolver import PolicyResolver
from checkout_gate.core.policy.policy_store import PolicyStore


def mk_row(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "version": "JP-1.4",
        "jurisdiction": "JP",
        "use_case": "Domestic Retail",
        "instrument": "USDC",
        "chain": "allowlisted",
        "allow": "ON",
        "max_txn_local": 5000,
        "daily_cap_local": 15000,
        "monthly_cap_local": 45000,
        "local_currency": "JPY",
        "effective_from": "2025-08-01",
        "approver": "Risk&Compliance",
    }
    data.update(overrides)
    return data


def test_future_row_is_ignored_before_its_start() -> None:
    store = PolicyStore.from_json_obj(
        [
            mk_row(),
            mk_row(version="JP-1.5", max_txn_local=9000, effective_from="2025-09-01"),
        ]
    )
    resolver = PolicyResolver(store)

    before = resolver.resolve("JP", ["USDC"], as_of=date(2025, 8, 27))
    after = resolver.resolve("JP", ["USDC"], as_of=date(2025, 9, 1))

    assert before.policy_version == "JP-1.4"
    assert before.max_per_txn_local == 5000
    assert after.policy_version == "JP-1.4+JP-1.5"
    assert after.max_per_txn_local == 9000


def test_expired_row_fails_closed() -> None:
    store = PolicyStore.from_json_obj([mk_row(effective_to="2025-08-15")])
    resolver = PolicyResolver(store)

    snap = resolver.resolve("JP", ["USDC"], as_of=date(2025, 8, 16))

    assert snap.on_off == "OFF"
    assert snap.policy_version == "NONE"


def test_effective_to_is_inclusive() -> None:
    row = PolicyRow.model_validate(mk_row(effective_to="2025-08-15"))

    assert row.is_effective(date(2025, 8, 15))
    assert not row.is_effective(date(2025, 8, 16))
    assert not row.is_effective(date(2025, 7, 31))


def test_without_as_of_every_row_is_eligible() -> None:
    store = PolicyStore.from_json_obj([mk_row(effective_from="2099-01-01")])

    snap = PolicyResolver(store).resolve("JP", ["USDC"])

    assert snap.on_off == "ON"


def test_effective_to_before_from_is_rejected() -> None:
    with pytest.raises(ValidationError):
        PolicyRow.model_validate(mk_row(effective_from="2025-08-10", effective_to="2025-08-01"))
