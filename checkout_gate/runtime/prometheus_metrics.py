from __future__ import annotations

import json
import logging
import os
from collections import Counter

from prometheus_client import CollectorRegistry, Gauge, push_to_gateway

from checkout_gate.core.events.events import FallbackAppliedEvent, GateDecisionEvent

LOGGER = logging.getLogger(__name__)


class CheckoutMetricsClient:
    """Prometheus Pushgateway client for checkout evaluations.

    Also an event sink: register it on the EventBus and it tallies decisions
    by outcome and fallback transforms; ``push_all`` delivers the tallies.

    Expected environment:
    - PROMETHEUS_PUSHGATEWAY_URL: URL to the Pushgateway.

    Optional:
    - PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON: JSON object used as grouping key.

    Delivery is best-effort: callers treat it as a side-effect and never fail
    an evaluation because of metrics.
    """

    def __init__(self) -> None:
        self._pushgateway_url = os.environ.get("PROMETHEUS_PUSHGATEWAY_URL")
        self._grouping_key = self._load_grouping_key()
        self._registry = CollectorRegistry()

        self.decisions: Counter[tuple[str, str]] = Counter()
        self.fallbacks: Counter[str] = Counter()

    def is_enabled(self) -> bool:
        return self._pushgateway_url is not None

    @staticmethod
    def _load_grouping_key() -> dict[str, str]:
        raw = os.environ.get("PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON")
        if not raw:
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            LOGGER.warning(
                "Invalid PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON; ignoring"
            )
            return {}

        if not isinstance(data, dict):
            return {}

        return {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}

    # ---- EventSink ----
    def on_event(self, event: object) -> None:
        if isinstance(event, GateDecisionEvent):
            outcome = "approved" if event.approved else (event.reason or "blocked")
            self.decisions[(event.jurisdiction, outcome)] += 1
        elif isinstance(event, FallbackAppliedEvent):
            self.fallbacks[event.jurisdiction] += 1

    def _build_gauges(self) -> None:
        decisions = Gauge(
            "checkout_gate_decisions",
            documentation="Checkout gate decisions by jurisdiction and outcome",
            labelnames=["jurisdiction", "outcome"],
            registry=self._registry,
        )
        for (jurisdiction, outcome), count in self.decisions.items():
            decisions.labels(jurisdiction=jurisdiction, outcome=outcome).set(count)

        fallbacks = Gauge(
            "checkout_gate_fallbacks",
            documentation="Variable-rate legs converted to card fallback",
            labelnames=["jurisdiction"],
            registry=self._registry,
        )
        for jurisdiction, count in self.fallbacks.items():
            fallbacks.labels(jurisdiction=jurisdiction).set(count)

    def push_all(self, *, job: str) -> None:
        if not self._pushgateway_url:
            return

        self._registry = CollectorRegistry()
        self._build_gauges()

        push_to_gateway(
            gateway=self._pushgateway_url,
            job=job,
            registry=self._registry,
            grouping_key=self._grouping_key,
        )

        LOGGER.info(
            "Prometheus metrics pushed",
            extra={"job": job, "grouping_key": self._grouping_key},
        )
