"""
Prometheus metrics for Merk.

This module provides metrics for monitoring:
- Session opens and loaded entry counts
- Commit count, duration and outcome
- Store operations written per commit (puts, deletes)
- Rollbacks
"""

from enum import Enum
from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

from merk.logging_config import get_logger

logger = get_logger(__name__)


class CommitStatus(str, Enum):
    """Commit outcomes for metrics."""
    SUCCESS = "success"
    NOOP = "noop"
    ERROR = "error"


class MetricsRegistry:
    """
    Merk metrics bound to one Prometheus collector registry.

    Pass a dedicated CollectorRegistry in tests so that metric names do not
    clash across instances.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.sessions_opened_total = Counter(
            'merk_sessions_opened_total',
            'Total number of merk sessions opened',
            registry=self.registry
        )

        self.loaded_entries = Histogram(
            'merk_loaded_entries',
            'Number of store entries read when opening a session',
            buckets=(0, 1, 10, 100, 1000, 10000, 100000),
            registry=self.registry
        )

        self.commits_total = Counter(
            'merk_commits_total',
            'Total number of commits',
            ['status'],
            registry=self.registry
        )

        self.commit_duration_seconds = Histogram(
            'merk_commit_duration_seconds',
            'Commit duration in seconds, including the store batch write',
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=self.registry
        )

        self.commit_ops_total = Counter(
            'merk_commit_ops_total',
            'Total number of store operations written by commits',
            ['op'],
            registry=self.registry
        )

        self.rollbacks_total = Counter(
            'merk_rollbacks_total',
            'Total number of rollbacks',
            registry=self.registry
        )

    def record_session_opened(self, entry_count: int):
        """
        Record a session open.

        Args:
            entry_count: Number of store entries loaded
        """
        self.sessions_opened_total.inc()
        self.loaded_entries.observe(entry_count)

    def record_commit(
        self,
        status: CommitStatus,
        puts: int = 0,
        deletes: int = 0,
        duration_seconds: Optional[float] = None
    ):
        """
        Record a commit.

        Args:
            status: Commit outcome
            puts: Put operations written
            deletes: Delete operations written
            duration_seconds: Commit duration in seconds
        """
        self.commits_total.labels(status=status.value).inc()

        if puts:
            self.commit_ops_total.labels(op="put").inc(puts)
        if deletes:
            self.commit_ops_total.labels(op="del").inc(deletes)

        if duration_seconds is not None:
            self.commit_duration_seconds.observe(duration_seconds)

    def record_rollback(self):
        """Record a rollback."""
        self.rollbacks_total.inc()

    # Metrics Export

    def generate_metrics(self) -> bytes:
        """Render every metric in the Prometheus text exposition format."""
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST


_metrics_registry: Optional[MetricsRegistry] = None


def get_metrics_registry() -> MetricsRegistry:
    """
    Process-wide registry used by sessions opened without ``metrics=``.

    Raises:
        RuntimeError: If initialize_metrics_registry() has not been called
    """
    if _metrics_registry is None:
        raise RuntimeError(
            "Metrics registry not initialized; call initialize_metrics_registry() first"
        )
    return _metrics_registry


def is_metrics_registry_initialized() -> bool:
    return _metrics_registry is not None


def initialize_metrics_registry(registry: Optional[CollectorRegistry] = None) -> MetricsRegistry:
    """
    Install the process-wide registry, replacing any previous one.

    Args:
        registry: Prometheus collector registry to register metrics on (a
            fresh one if None)
    """
    global _metrics_registry
    if _metrics_registry is not None:
        logger.warning("Replacing existing global metrics registry")

    _metrics_registry = MetricsRegistry(registry)
    logger.info("Global metrics registry initialized")
    return _metrics_registry


def reset_metrics_registry() -> None:
    global _metrics_registry
    _metrics_registry = None
