from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from checkout_gate.core.artifacts.renderers import (
    render_policy_csv,
    render_receipt_text,
    render_reconciliation_csv,
)
from checkout_gate.core.domain.checkout import (
    AdvanceClock,
    CheckoutEvent,
    LockQuote,
    ResetQuote,
    SetTenderAmount,
    ToggleAutoFallback,
    UpdateRate,
)
from checkout_gate.core.domain.types import Tender
from checkout_gate.core.events.event_bus import EventBus
from checkout_gate.core.events.sinks import AuditLogSink, LoggingEventSink
from checkout_gate.core.gate.checkout_engine import CheckoutEngine, EvaluationResult
from checkout_gate.core.policy.checkout_config import CheckoutConfig, QuoteDefaults
from checkout_gate.core.policy.policy_store import PolicyStore
from checkout_gate.runtime.prometheus_metrics import CheckoutMetricsClient

LOGGER = logging.getLogger(__name__)

DEFAULT_POLICY_PATH = Path(__file__).resolve().parent.parent / "data" / "policy_matrix.json"

# ---------------------------------------------------------------------------
# Checkout request (JSON input)
# ---------------------------------------------------------------------------


class _LockAction(BaseModel):
    type: Literal["lock_quote"]
    at: datetime


class _ResetAction(BaseModel):
    type: Literal["reset_quote"]


class _ToggleAction(BaseModel):
    type: Literal["toggle_auto_fallback"]
    enabled: bool


class _RateAction(BaseModel):
    type: Literal["update_rate"]
    rate: float


class _AmountAction(BaseModel):
    type: Literal["set_tender_amount"]
    tender_type: str
    amount: float


class _ClockAction(BaseModel):
    type: Literal["advance_clock"]
    now: datetime


Action = Annotated[
    _LockAction | _ResetAction | _ToggleAction | _RateAction | _AmountAction | _ClockAction,
    Field(discriminator="type"),
]


class CheckoutRequest(BaseModel):
    """One checkout as supplied by the UI/config layer."""

    jurisdiction: str = Field(..., min_length=1)
    local_currency: str = Field(..., min_length=1)
    merchant_name: str | None = None
    opened_at: datetime
    tenders: list[Tender] = Field(..., min_length=1)
    declared_total_local: float | None = Field(None, ge=0, allow_inf_nan=False)
    auto_fallback: bool | None = None
    actions: list[Action] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


def _to_event(action: Any) -> CheckoutEvent:
    if isinstance(action, _LockAction):
        return LockQuote(at=action.at)
    if isinstance(action, _ResetAction):
        return ResetQuote()
    if isinstance(action, _ToggleAction):
        return ToggleAutoFallback(enabled=action.enabled)
    if isinstance(action, _RateAction):
        return UpdateRate(rate=action.rate)
    if isinstance(action, _AmountAction):
        return SetTenderAmount(tender_type=action.tender_type, amount=action.amount)
    return AdvanceClock(now=action.now)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_json(path: Path) -> Any:
    if not path.exists():
        raise FileNotFoundError(path)
    return json.loads(path.read_text(encoding="utf-8"))


def _apply_quote_defaults(raw: dict[str, Any], defaults: QuoteDefaults) -> dict[str, Any]:
    """Fill quote fields the request leaves out from the configured defaults."""
    tenders = []
    for tender in raw.get("tenders", []):
        if isinstance(tender, dict) and tender.get("tender_type") == "variable_rate_asset":
            quote = tender.get("quote")
            if isinstance(quote, dict):
                tender = {**tender, "quote": {**defaults.model_dump(), **quote}}
        tenders.append(tender)
    return {**raw, "tenders": tenders}


def _build_event_bus(*, audit_log: Path | None, metrics: CheckoutMetricsClient) -> EventBus:
    sinks: list[Any] = [LoggingEventSink(logging.getLogger("checkout_gate.events")), metrics]
    if audit_log is not None:
        sinks.append(AuditLogSink(audit_log))
    return EventBus(sinks=sinks)


def run_checkout(
    engine: CheckoutEngine,
    request: CheckoutRequest,
    now: datetime | None = None,
) -> EvaluationResult:
    """Open the checkout, replay its actions in order, evaluate once."""
    ctx = engine.open_checkout(
        jurisdiction=request.jurisdiction,
        tenders=request.tenders,
        now=request.opened_at,
        local_currency=request.local_currency,
        merchant_name=request.merchant_name,
        declared_total_local=request.declared_total_local,
        auto_fallback=request.auto_fallback,
    )
    for action in request.actions:
        ctx = engine.apply(ctx, _to_event(action))
    return engine.evaluate(ctx, now)


def _render(result: EvaluationResult, fmt: str) -> str:
    artifact = result.artifact
    if fmt == "text":
        return render_receipt_text(artifact.receipt)
    if fmt == "csv":
        return render_reconciliation_csv(artifact.reconciliation)
    return json.dumps(artifact.model_dump(mode="json"), indent=2, ensure_ascii=False)


def _cmd_evaluate(args: argparse.Namespace) -> int:
    store = PolicyStore.from_json_path(args.policy)
    config = (
        CheckoutConfig.from_json_obj(_load_json(args.config))
        if args.config is not None
        else CheckoutConfig()
    )
    if args.rid_sequence is not None:
        config = CheckoutConfig.model_validate(
            {**config.model_dump(), "rid_sequence_start": args.rid_sequence}
        )
    raw = _load_json(args.checkout)
    if isinstance(raw, dict):
        raw = _apply_quote_defaults(raw, config.quote_defaults)
    request = CheckoutRequest.model_validate(raw)

    metrics = CheckoutMetricsClient()
    bus = _build_event_bus(audit_log=args.audit_log, metrics=metrics)
    try:
        engine = CheckoutEngine(store=store, config=config, event_bus=bus)
        result = run_checkout(engine, request, args.now)
    finally:
        bus.close()

    print(_render(result, args.format))

    if metrics.is_enabled():
        try:
            metrics.push_all(job="checkout_gate")
        except Exception:
            LOGGER.exception("Prometheus push failed")

    return 0 if result.decision.approved else 1


def _cmd_export_policy(args: argparse.Namespace) -> int:
    store = PolicyStore.from_json_path(args.policy)
    print(render_policy_csv(store))
    return 0


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Policy-gated checkout evaluation (receipt + reconciliation record)"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level for stderr output.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    ev = sub.add_parser("evaluate", help="Evaluate one checkout and print an artifact view.")
    ev.add_argument(
        "--policy",
        type=Path,
        default=DEFAULT_POLICY_PATH,
        help="Path to the policy table JSON.",
    )
    ev.add_argument(
        "--checkout",
        type=Path,
        required=True,
        help="Path to the checkout request JSON.",
    )
    ev.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional checkout config JSON (merchant, references, fees).",
    )
    ev.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="Evaluation time (ISO 8601); defaults to the latest time in the request.",
    )
    ev.add_argument(
        "--rid-sequence",
        type=int,
        default=None,
        help=(
            "First RID sequence number for this run (overrides the config). Each run "
            "allocates RIDs on its own, so callers running several evaluations per "
            "jurisdiction and day must pass distinct values to keep RIDs unique."
        ),
    )
    ev.add_argument(
        "--format",
        choices=("json", "text", "csv"),
        default="json",
        help="Which view to print.",
    )
    ev.add_argument(
        "--audit-log",
        type=Path,
        default=None,
        help="Append domain events as JSON lines to this file.",
    )
    ev.set_defaults(func=_cmd_evaluate)

    ex = sub.add_parser("export-policy", help="Print the policy table as CSV.")
    ex.add_argument(
        "--policy",
        type=Path,
        default=DEFAULT_POLICY_PATH,
        help="Path to the policy table JSON.",
    )
    ex.set_defaults(func=_cmd_export_policy)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        code = args.func(args)
    except (FileNotFoundError, json.JSONDecodeError, ValidationError, ValueError) as exc:
        LOGGER.error("checkout-gate failed: %s", exc)
        sys.exit(2)

    sys.exit(code)


if __name__ == "__main__":
    main()
