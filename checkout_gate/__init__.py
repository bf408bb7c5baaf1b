"""Public API for the checkout_gate package.

Only symbols imported here are considered part of the stable,
supported external interface.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ----------------------------------------------------------------------
# Artifacts
# ----------------------------------------------------------------------
from checkout_gate.core.artifacts.artifact_builder import ArtifactContext, build
from checkout_gate.core.artifacts.records import (
    AuditArtifact,
    Receipt,
    ReconciliationRecord,
)
from checkout_gate.core.artifacts.renderers import (
    render_policy_csv,
    render_receipt_text,
    render_reconciliation_csv,
)

# ----------------------------------------------------------------------
# Domain Types
# ----------------------------------------------------------------------
from checkout_gate.core.domain.checkout import (
    AdvanceClock,
    CheckoutContext,
    CheckoutEvent,
    LockQuote,
    ResetQuote,
    SetTenderAmount,
    ToggleAutoFallback,
    UpdateRate,
    apply_event,
)
from checkout_gate.core.domain.reject_reasons import BlockReason
from checkout_gate.core.domain.rid import ReconciliationId, RidSequencer
from checkout_gate.core.domain.types import (
    CardFallback,
    LocalLedgerCredit,
    PolicyRow,
    PolicySnapshot,
    Quote,
    Tender,
    VariableRateAsset,
)

# ----------------------------------------------------------------------
# Gate
# ----------------------------------------------------------------------
from checkout_gate.core.gate.checkout_engine import CheckoutEngine, EvaluationResult
from checkout_gate.core.gate.fallback import apply_fallback
from checkout_gate.core.gate.gate_evaluator import GateDecision, combine, evaluate
from checkout_gate.core.gate.quote_validity import QuoteValidity, evaluate_quote

# ----------------------------------------------------------------------
# Policy & Config API
# ----------------------------------------------------------------------
from checkout_gate.core.policy.checkout_config import CheckoutConfig
from checkout_gate.core.policy.policy_resolver import (
    BasketMergeStrategy,
    IntersectingMergeStrategy,
    PolicyResolver,
)
from checkout_gate.core.policy.policy_store import PolicyStore

# ----------------------------------------------------------------------
# Public API definition
# ----------------------------------------------------------------------

__all__ = [
    # Engine
    "CheckoutEngine",
    "EvaluationResult",

    # Policy & config
    "PolicyStore",
    "PolicyResolver",
    "BasketMergeStrategy",
    "IntersectingMergeStrategy",
    "CheckoutConfig",

    # Domain
    "PolicyRow",
    "PolicySnapshot",
    "Quote",
    "Tender",
    "LocalLedgerCredit",
    "VariableRateAsset",
    "CardFallback",
    "CheckoutContext",
    "CheckoutEvent",
    "LockQuote",
    "ResetQuote",
    "ToggleAutoFallback",
    "UpdateRate",
    "SetTenderAmount",
    "AdvanceClock",
    "apply_event",
    "BlockReason",
    "ReconciliationId",
    "RidSequencer",

    # Gate
    "GateDecision",
    "evaluate",
    "combine",
    "QuoteValidity",
    "evaluate_quote",
    "apply_fallback",

    # Artifacts
    "ArtifactContext",
    "build",
    "AuditArtifact",
    "Receipt",
    "ReconciliationRecord",
    "render_receipt_text",
    "render_reconciliation_csv",
    "render_policy_csv",

    # Version
    "__version__",
]

# ----------------------------------------------------------------------
# Package version
# ----------------------------------------------------------------------

try:
    __version__ = version("checkout-gate")
except PackageNotFoundError:
    __version__ = "0.0.0"
