"""Checkout configuration model.

This module defines the CheckoutConfig schema used to parse the static,
per-deployment settings of the checkout gate: merchant identity, opaque
counterparty references, the illustrative fee schedule and quote defaults.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class MerchantConfig(BaseModel):
    id: str = Field("MERCH-1029", min_length=1)
    name: str = Field("Sakura Electronics", min_length=1)
    bank_last4: str = Field("1234", pattern=r"^\d{4}$")

    model_config = ConfigDict(extra="forbid", frozen=True)


class CounterpartyRefs(BaseModel):
    """Opaque references copied through to the artifacts, never validated."""

    order_id: str = "ord_7f3a2c"
    aggregator_id: str = "AGG-12"
    aggregator_route_id: str = "r-56f1"
    payin_address: str = "0x...e1f9"
    txid: str = "0x...ab87"
    acquirer_id: str = "ACQ-88"
    payout_batch_id: str = "POUT-2025-08-27-17"
    value_date: str = "T+1"

    model_config = ConfigDict(extra="forbid", frozen=True)


class FeeSchedule(BaseModel):
    """Fixed illustrative fee split in local currency (not a real schedule)."""

    aggregator: float = Field(20.0, ge=0, allow_inf_nan=False)
    psp: float = Field(10.0, ge=0, allow_inf_nan=False)
    platform: float = Field(5.0, ge=0, allow_inf_nan=False)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def total(self) -> float:
        return self.aggregator + self.psp + self.platform


class QuoteDefaults(BaseModel):
    quote_id: str = Field("q-89aa", min_length=1)
    hold_window_sec: float = Field(90.0, ge=0, allow_inf_nan=False)
    slippage_bound_bps: float = Field(50.0, ge=0, allow_inf_nan=False)

    model_config = ConfigDict(extra="forbid", frozen=True)


class CheckoutConfig(BaseModel):
    """Structured checkout configuration."""

    merchant: MerchantConfig = Field(default_factory=MerchantConfig)
    references: CounterpartyRefs = Field(default_factory=CounterpartyRefs)
    fees: FeeSchedule = Field(default_factory=FeeSchedule)
    quote_defaults: QuoteDefaults = Field(default_factory=QuoteDefaults)

    auto_fallback: bool = True
    rid_sequence_start: int = Field(45, ge=0, le=999_999)
    window_merge: Literal["first_match", "intersect"] = "first_match"

    # Optional additional config fields
    extra: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @classmethod
    def from_json_obj(cls, obj: dict[str, Any]) -> CheckoutConfig:
        """Create a CheckoutConfig instance from a JSON-compatible object."""
        return cls.model_validate(obj)
