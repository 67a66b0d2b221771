"""Prometheus metrics for the log pipeline.

This module defines counters for emitted and filtered records and for the
outcome of each collector delivery attempt.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

OUTCOME_DELIVERED = "delivered"
OUTCOME_FAILED = "failed"
OUTCOME_DROPPED = "dropped"


class PipelineMetrics:
    """Registry of the pipeline's Prometheus metrics.

    Each instance owns its own CollectorRegistry unless one is passed in, so
    several pipelines (or tests) never collide on metric names.

    Example:
        >>> metrics = PipelineMetrics()
        >>> metrics.record_delivery(OUTCOME_DELIVERED, 0.012)
        >>> metrics.registry.get_sample_value(
        ...     "logship_collector_deliveries_total", {"outcome": "delivered"}
        ... )
        1.0
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        """Initialize all Prometheus metrics.

        Args:
            registry: Prometheus collector registry. If None, a private one is created.
        """
        self.registry = registry or CollectorRegistry()

        self.records_emitted_total = Counter(
            name="logship_records_emitted_total",
            documentation="Total number of log records enriched and dispatched",
            labelnames=["level"],
            registry=self.registry,
        )

        self.records_filtered_total = Counter(
            name="logship_records_filtered_total",
            documentation="Total number of log records below the minimum level",
            registry=self.registry,
        )

        self.collector_deliveries_total = Counter(
            name="logship_collector_deliveries_total",
            documentation="Collector delivery attempts by outcome",
            labelnames=["outcome"],
            registry=self.registry,
        )

        self.collector_inflight = Gauge(
            name="logship_collector_inflight",
            documentation="Collector deliveries currently in flight",
            registry=self.registry,
        )

        self.collector_delivery_seconds = Histogram(
            name="logship_collector_delivery_seconds",
            documentation="Collector request duration in seconds",
            buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0],
            registry=self.registry,
        )

    def record_emitted(self, level: str) -> None:
        self.records_emitted_total.labels(level=level).inc()

    def record_filtered(self) -> None:
        self.records_filtered_total.inc()

    def record_delivery(self, outcome: str, duration: Optional[float] = None) -> None:
        """Count a delivery outcome and, when known, its duration."""
        self.collector_deliveries_total.labels(outcome=outcome).inc()
        if duration is not None:
            self.collector_delivery_seconds.observe(duration)
