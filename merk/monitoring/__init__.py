"""
Prometheus metrics for Merk.
"""

from merk.monitoring.metrics import (
    CommitStatus,
    MetricsRegistry,
    get_metrics_registry,
    initialize_metrics_registry,
)

__all__ = [
    "CommitStatus",
    "MetricsRegistry",
    "get_metrics_registry",
    "initialize_metrics_registry",
]
