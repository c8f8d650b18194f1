"""Prometheus metrics for bridge observability.

Metrics are exposed at the `/metrics` endpoint in Prometheus format.

Metrics Defined:
- octobridge_webhook_events_total: Counter of routed webhook events
- octobridge_token_refreshes_total: Counter of OAuth refresh attempts
- octobridge_quick_actions_total: Counter of executed quick actions
- octobridge_reply_menus: Gauge of quick-action menus currently remembered
"""

import logging
from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
)


logger = logging.getLogger(__name__)


class BridgeMetrics:
    """Container for all bridge Prometheus metrics.

    Supports custom registries so tests can create isolated instances.

    Metrics:
        webhook_events_total: Counter of webhook events.
            Labels: event (route, e.g. "issues/opened"), handled (true/false)

        token_refreshes_total: Counter of token refresh attempts.
            Labels: result (success/failure)

        quick_actions_total: Counter of quick actions run from chat replies.
            Labels: action, outcome (success/failure/unauthenticated/no_match)

        reply_menus: Gauge of menus held by the reply registry.

    Example:
        >>> metrics = BridgeMetrics(registry=CollectorRegistry())
        >>> metrics.record_webhook_event("issues/opened", handled=True)
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize bridge metrics.

        Args:
            registry: Optional Prometheus registry. If None, uses the
                      default REGISTRY. Pass a custom registry for testing.
        """
        self.registry = registry or REGISTRY

        self.webhook_events_total = Counter(
            "octobridge_webhook_events_total",
            "Total number of webhook events received by the bridge",
            labelnames=["event", "handled"],
            registry=self.registry,
        )

        self.token_refreshes_total = Counter(
            "octobridge_token_refreshes_total",
            "Total number of OAuth token refresh attempts",
            labelnames=["result"],
            registry=self.registry,
        )

        self.quick_actions_total = Counter(
            "octobridge_quick_actions_total",
            "Total number of quick actions resolved from chat replies",
            labelnames=["action", "outcome"],
            registry=self.registry,
        )

        self.reply_menus = Gauge(
            "octobridge_reply_menus",
            "Current number of quick-action menus in the reply registry",
            registry=self.registry,
        )

    def record_webhook_event(self, event: str, handled: bool) -> None:
        self.webhook_events_total.labels(
            event=event,
            handled="true" if handled else "false",
        ).inc()

    def record_token_refresh(self, result: str) -> None:
        self.token_refreshes_total.labels(result=result).inc()

    def record_quick_action(self, action: str, outcome: str) -> None:
        self.quick_actions_total.labels(action=action, outcome=outcome).inc()

    def set_reply_menus(self, count: int) -> None:
        self.reply_menus.set(max(0, count))


# Global metrics instance for the default registry
_default_metrics: Optional[BridgeMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> BridgeMetrics:
    """Get or create the bridge metrics instance.

    Args:
        registry: Optional Prometheus registry. If None, returns the
                  global metrics instance for the default registry.

    Returns:
        BridgeMetrics: The metrics instance.
    """
    global _default_metrics

    if registry is not None:
        # Custom registry requested, create new instance
        return BridgeMetrics(registry=registry)

    if _default_metrics is None:
        _default_metrics = BridgeMetrics()

    return _default_metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Generate Prometheus metrics output for the /metrics endpoint.

    Args:
        registry: Optional Prometheus registry. If None, uses the
                  default REGISTRY.

    Returns:
        bytes: Prometheus metrics in text format.
    """
    target_registry = registry or REGISTRY
    return generate_latest(target_registry)
