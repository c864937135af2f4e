from __future__ import annotations

import json
import logging
import os
from typing import Any

from prometheus_client import CollectorRegistry, Counter, push_to_gateway

from order_lifecycle.core.events.events import (
    MirrorWriteWarning,
    OrderTransitionEvent,
    TransitionRejectedEvent,
)

LOGGER = logging.getLogger(__name__)


class TransitionMetricsSink:
    """Event sink counting order lifecycle outcomes.

    Counters live in a dedicated CollectorRegistry so several engines (or
    tests) in one process do not collide on metric names.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()

        self._transitions = Counter(
            "order_transitions_total",
            "Committed order status transitions.",
            labelnames=["next_status", "forced"],
            registry=self.registry,
        )
        self._rejections = Counter(
            "order_transition_rejections_total",
            "Order status transitions rejected before any write.",
            labelnames=["reason"],
            registry=self.registry,
        )
        self._mirror_failures = Counter(
            "order_mirror_write_failures_total",
            "Best-effort mirror writes to the counterparty copy that failed.",
            registry=self.registry,
        )

    def on_event(self, event: Any) -> None:
        if isinstance(event, OrderTransitionEvent):
            self._transitions.labels(
                next_status=event.next_status,
                forced=str(event.forced).lower(),
            ).inc()
        elif isinstance(event, TransitionRejectedEvent):
            self._rejections.labels(reason=event.reason).inc()
        elif isinstance(event, MirrorWriteWarning):
            self._mirror_failures.inc()


class PrometheusMetricsClient:
    """Minimal Prometheus Pushgateway client.

    Expected environment:
    - PROMETHEUS_PUSHGATEWAY_URL: URL to the Pushgateway.
      Example: http://pushgateway.monitoring.svc.cluster.local:9091

    Optional:
    - PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON: JSON object used as grouping key.
      Example:
        {"instance": "orders-api-1"}

    Delivery is best-effort: callers treat pushing as a side-effect and
    never fail an order operation because of metrics.
    """

    def __init__(self, registry: CollectorRegistry) -> None:
        self._pushgateway_url = os.environ.get("PROMETHEUS_PUSHGATEWAY_URL")
        self._grouping_key = self._load_grouping_key()
        self._registry = registry

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

        grouping: dict[str, str] = {}
        for key, value in data.items():
            if isinstance(key, str) and isinstance(value, str):
                grouping[key] = value
        return grouping

    def push_all(self, *, job: str) -> bool:
        if not self._pushgateway_url:
            return False

        try:
            push_to_gateway(
                gateway=self._pushgateway_url,
                job=job,
                registry=self._registry,
                grouping_key=self._grouping_key,
            )
        except OSError as exc:
            LOGGER.warning(
                "Prometheus push failed",
                extra={"job": job, "error": str(exc)},
            )
            return False

        LOGGER.info(
            "Prometheus metrics pushed",
            extra={"job": job, "grouping_key": self._grouping_key},
        )
        return True
