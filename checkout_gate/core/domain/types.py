"""Core shared data models and schemas.

This module defines the canonical Pydantic models used across the checkout
gate: policy rows as loaded from the policy table, the resolved basket-level
policy snapshot, the variable-rate quote, and the tender legs of a checkout.
These types are treated as schema definitions and intentionally prioritize
structural clarity over minimal class size.
"""

# pylint: disable=line-too-long,missing-class-docstring,missing-function-docstring
from __future__ import annotations

import hashlib
import json
import re
from datetime import date, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# Common definitions
# ---------------------------------------------------------------------------

OnOff = Literal["ON", "OFF"]
KycLevel = Literal["none", "partner", "issuer"]
SanctionsOutcome = Literal["pass", "not_required"]

# Ordinal used when several rows disagree on the KYC level (strictest wins).
KYC_LEVEL_ORDER: dict[str, int] = {"none": 0, "partner": 1, "issuer": 2}

UNRESTRICTED_WINDOW: str = "00:00-24:00"

_HHMM_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$|^24:00$")


def parse_time_window(window: str) -> tuple[str, str]:
    """Split an ``HH:MM-HH:MM`` window into its bounds.

    Bounds compare lexicographically, so ``24:00`` is a valid inclusive end
    of day. Raises ValueError when the window is malformed or start > end.
    """
    parts = window.split("-")
    if len(parts) != 2:
        raise ValueError(f"time window must be 'HH:MM-HH:MM', got {window!r}")

    start, end = parts
    if not _HHMM_RE.match(start) or not _HHMM_RE.match(end):
        raise ValueError(f"time window bounds must be HH:MM, got {window!r}")
    if start > end:
        raise ValueError(f"time window start must not be after end, got {window!r}")
    return start, end


# ---------------------------------------------------------------------------
# Policy models
# ---------------------------------------------------------------------------


class PolicyRow(BaseModel):
    """One immutable row of the policy table.

    Identified by (jurisdiction, instrument, version). Caps are expressed in
    local currency; a per-transaction cap of 0 means no cap is enforced.
    """

    version: str = Field(..., min_length=1)
    jurisdiction: str = Field(..., min_length=1)
    use_case: str = Field(..., min_length=1)
    instrument: str = Field(..., min_length=1)
    chain: str = Field(..., min_length=1)
    allow: OnOff

    max_txn_local: float = Field(..., ge=0, allow_inf_nan=False)
    daily_cap_local: float = Field(..., ge=0, allow_inf_nan=False)
    monthly_cap_local: float = Field(..., ge=0, allow_inf_nan=False)
    local_currency: str = Field(..., min_length=1)

    time_window_local: str = UNRESTRICTED_WINDOW
    required_disclosures: tuple[str, ...] = ()
    kyc_level: KycLevel = "none"
    travel_rule_required: bool = False
    sanctions_screen: bool = False
    # Either "*" or a "|"-separated list of merchant category codes.
    allowed_mccs: str = Field("*", min_length=1)
    fallback_on_fail: str = Field("Card", min_length=1)

    effective_from: date
    effective_to: date | None = None
    approver: str = Field(..., min_length=1)
    notes: str = ""

    model_config = ConfigDict(extra="forbid", frozen=True)

    @model_validator(mode="after")
    def validate_row(self) -> PolicyRow:
        parse_time_window(self.time_window_local)
        if self.effective_to is not None and self.effective_to < self.effective_from:
            raise ValueError("effective_to must not be before effective_from")
        return self

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.jurisdiction, self.instrument, self.version)

    def is_effective(self, as_of: date) -> bool:
        if as_of < self.effective_from:
            return False
        return self.effective_to is None or as_of <= self.effective_to


class PolicySnapshot(BaseModel):
    """Resolved, basket-level policy view used for one evaluation.

    The snapshot is computed once when a checkout is opened and embedded
    verbatim into the audit artifact. It is never recomputed afterwards.
    """

    jurisdiction: str = Field(..., min_length=1)
    on_off: OnOff
    max_per_txn_local: float = Field(..., ge=0, allow_inf_nan=False)
    daily_cap_local: float = Field(..., ge=0, allow_inf_nan=False)
    # None when the matched rows admit no common time of day.
    time_window_local: str | None
    required_disclosures: tuple[str, ...] = ()
    kyc_level: KycLevel
    travel_rule_applied: bool
    sanctions_screen: SanctionsOutcome
    local_currency: str | None = None
    fallback_instrument: str = "Card"

    # Provenance: which rows contributed, in stable row order.
    policy_versions: tuple[str, ...] = ()
    matched_instruments: tuple[str, ...] = ()

    model_config = ConfigDict(extra="forbid", frozen=True)

    @model_validator(mode="after")
    def validate_window(self) -> PolicySnapshot:
        if self.time_window_local is not None:
            parse_time_window(self.time_window_local)
        return self

    @property
    def policy_version(self) -> str:
        """Contributing row versions joined by '+', or NONE when fail-closed."""
        if not self.policy_versions:
            return "NONE"
        return "+".join(dict.fromkeys(self.policy_versions))

    def digest(self) -> str:
        """Return a stable content hash of the snapshot.

        The canonical form is compact JSON with sorted keys, so identical
        snapshots hash identically across processes.
        """
        payload = json.dumps(
            self.model_dump(mode="json"),
            sort_keys=True,
            separators=(",", ":"),
        ).encode("utf-8")
        return hashlib.blake2b(payload, digest_size=16).hexdigest()


# ---------------------------------------------------------------------------
# Quote model
# ---------------------------------------------------------------------------


class Quote(BaseModel):
    """Time-bounded price quote for the variable-rate leg.

    ``rate`` is the current market rate (local-currency units per unit of the
    variable asset). ``locked_rate`` and ``locked_at`` are set together by a
    lock and cleared together by a reset.
    """

    quote_id: str = Field(..., min_length=1)
    rate: float = Field(..., gt=0, allow_inf_nan=False)
    hold_window_sec: float = Field(..., ge=0, allow_inf_nan=False)
    slippage_bound_bps: float = Field(..., ge=0, allow_inf_nan=False)

    locked_rate: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    locked_at: datetime | None = None

    model_config = ConfigDict(extra="forbid", frozen=True)

    @model_validator(mode="after")
    def validate_lock_fields(self) -> Quote:
        if (self.locked_rate is None) != (self.locked_at is None):
            raise ValueError("locked_rate and locked_at must be set together")
        return self

    @property
    def state(self) -> str:
        return "unlocked" if self.locked_at is None else "locked"

    @property
    def is_locked(self) -> bool:
        return self.locked_at is not None


# ---------------------------------------------------------------------------
# Tender models (discriminated union)
# ---------------------------------------------------------------------------


class TenderBase(BaseModel):
    """
    Base fields shared by all tender legs.

    Notes:
    - amount is expressed in the tender's own unit (local currency for
      ledger credit and card, asset units for the variable-rate leg).
    - instrument is the identifier matched against policy rows.
    """

    amount: float = Field(..., ge=0, allow_inf_nan=False)
    instrument: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid", frozen=True)

    def value_local(self) -> float:
        return self.amount


class LocalLedgerCredit(TenderBase):
    tender_type: Literal["local_ledger_credit"] = "local_ledger_credit"
    issuer_id: str = Field(..., min_length=1)


class VariableRateAsset(TenderBase):
    tender_type: Literal["variable_rate_asset"] = "variable_rate_asset"
    chain: str = Field(..., min_length=1)
    quote: Quote

    def value_local(self) -> float:
        return self.amount * self.quote.rate


class CardFallback(TenderBase):
    tender_type: Literal["card_fallback"] = "card_fallback"
    instrument: str = Field("Card", min_length=1)
    brand: str = Field(..., min_length=1)
    authorized: bool = True


# Discriminated union: Pydantic will select the correct model based on tender_type.
Tender = Annotated[
    LocalLedgerCredit | VariableRateAsset | CardFallback,
    Field(discriminator="tender_type"),
]
