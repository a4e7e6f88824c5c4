"""
Query Cache Monitoring Module

Hit/miss/error counters and response time tracking with a
per-instance Prometheus registry.
"""

from .cache_metrics import MetricsAggregator

__all__ = ["MetricsAggregator"]
