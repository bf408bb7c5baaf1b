"""
Domain events.

These events represent immutable facts observed while evaluating a checkout.
They are consumed by loggers, audit recorders and monitoring pipelines.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class QuoteTransitionEvent:
    at: datetime
    quote_id: str
    prev_state: str
    next_state: str
    locked_rate: float | None


@dataclass(frozen=True, slots=True)
class GateDecisionEvent:
    at: datetime
    jurisdiction: str
    rid: str

    approved: bool
    reason: str | None

    total_local: float
    policy_version: str


@dataclass(frozen=True, slots=True)
class FallbackAppliedEvent:
    at: datetime
    jurisdiction: str

    variable_amount: float
    rate: float
    moved_local: float

    total_before: float
    total_after: float


@dataclass(frozen=True, slots=True)
class ArtifactBuiltEvent:
    at: datetime
    rid: str
    receipt_id: str
    policy_hash: str
    amount_gross: float
    amount_net: float
