"""
Cache Metrics Aggregator

Rolling hit/miss/error counters and a running mean of read-through
response time, mirrored into a per-instance Prometheus registry.
"""

import threading
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)
import structlog

from ..domain.cache.entities import CacheMetricsSnapshot
from ..domain.cache.value_objects import CacheOutcome

logger = structlog.get_logger(__name__)


class MetricsAggregator:
    """
    Aggregates performance counters for one cache instance.

    Features:
    - Hit, miss and error counters (an error replaces the hit/miss count)
    - Online mean of response time, no stored history
    - Explicit reset
    - Prometheus-compatible export
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._errors = 0
        self._total = 0
        self._avg_ms = 0.0

        self._setup_prometheus_metrics(registry or CollectorRegistry())

    def _setup_prometheus_metrics(self, registry: CollectorRegistry) -> None:
        """Setup Prometheus metrics for the cache."""
        self.registry = registry

        self.prom_requests_total = Counter(
            "query_cache_requests_total",
            "Read-through calls by outcome",
            labelnames=["outcome"],
            registry=self.registry,
        )

        self.prom_response_time_ms = Histogram(
            "query_cache_response_time_ms",
            "Read-through call duration in milliseconds",
            buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000, 3000, 10000],
            registry=self.registry,
        )

    def record(
        self, outcome: CacheOutcome, elapsed_ms: float, is_error: bool = False
    ) -> None:
        """
        Record one completed read-through call.

        Args:
            outcome: Hit or miss
            elapsed_ms: Duration of the whole call
            is_error: Count the call as an error instead of a hit/miss
        """
        elapsed_ms = max(0.0, float(elapsed_ms))

        with self._lock:
            if is_error:
                self._errors += 1
                label = "error"
            elif outcome == CacheOutcome.HIT:
                self._hits += 1
                label = CacheOutcome.HIT.value
            else:
                self._misses += 1
                label = CacheOutcome.MISS.value

            self._total += 1
            self._avg_ms = (self._avg_ms * (self._total - 1) + elapsed_ms) / self._total

        try:
            self.prom_requests_total.labels(outcome=label).inc()
            self.prom_response_time_ms.observe(elapsed_ms)
        except Exception as e:
            logger.warning("Failed to export cache metrics", error=str(e))

    def snapshot(self) -> CacheMetricsSnapshot:
        """Get a consistent copy of the counters."""
        with self._lock:
            return CacheMetricsSnapshot(
                hits=self._hits,
                misses=self._misses,
                errors=self._errors,
                avg_response_time_ms=self._avg_ms,
                total_requests=self._total,
            )

    def reset(self) -> None:
        """Zero every counter and the running average.

        Prometheus series are monotonic and keep their values.
        """
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._errors = 0
            self._total = 0
            self._avg_ms = 0.0

        logger.info("Cache metrics reset")

    def export_prometheus(self) -> bytes:
        """Render this instance's registry in Prometheus text format."""
        return generate_latest(self.registry)
