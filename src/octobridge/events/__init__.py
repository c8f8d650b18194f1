"""Bridge observability.

Metrics:
- BridgeMetrics: Container for all Prometheus metrics
- get_metrics: Get or create the metrics instance
- generate_metrics_output: Generate Prometheus format output for /metrics
"""

from .metrics import BridgeMetrics, generate_metrics_output, get_metrics

__all__ = [
    "BridgeMetrics",
    "generate_metrics_output",
    "get_metrics",
]
