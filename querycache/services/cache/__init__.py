"""
Cache Services Module

Read-through orchestration, fetch retries and connectivity probing.
"""

from .cache_manager import CacheManager, create_cache_manager
from .fetch_executor import FetchExecutor
from .network_probe import NetworkProbe

__all__ = [
    "CacheManager",
    "create_cache_manager",
    "FetchExecutor",
    "NetworkProbe",
]
