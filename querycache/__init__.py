"""
Query Cache

Resilient client-side read-through cache for remote queries: TTL
freshness, bounded size with oldest-first eviction, retrying fetches,
stale fallback for critical data while offline, pattern invalidation
and performance metrics.
"""

from .core.config import Settings, get_settings
from .core.logging import configure_logging
from .domain.cache.entities import (
    CacheEntry,
    CacheMetricsSnapshot,
    FetchOutcome,
    ReadResult,
)
from .domain.cache.exceptions import (
    CacheException,
    FetchFailedError,
    NetworkUnavailableError,
    StaleDataServedError,
    StoreReadFailedError,
    StoreWriteFailedError,
)
from .domain.cache.repository_interfaces import (
    ConnectivityChecker,
    ConnectivityState,
    EntryStore,
    KeyValueStorage,
)
from .domain.cache.value_objects import TTL, CacheKey, CacheOptions, CacheOutcome
from .infrastructure.network.connectivity import (
    HttpConnectivityChecker,
    StaticConnectivityChecker,
)
from .infrastructure.redis.redis_storage import RedisKeyValueStorage
from .infrastructure.repositories.cache_repository import (
    DurableEntryStore,
    MemoryEntryStore,
)
from .infrastructure.storage.memory_storage import InMemoryKeyValueStorage
from .monitoring.cache_metrics import MetricsAggregator
from .services.cache.cache_manager import CacheManager, create_cache_manager

__version__ = "0.1.0"

__all__ = [
    # Orchestrator
    "CacheManager",
    "create_cache_manager",
    # Configuration
    "Settings",
    "get_settings",
    "configure_logging",
    # Values and records
    "CacheKey",
    "CacheOptions",
    "CacheOutcome",
    "TTL",
    "CacheEntry",
    "CacheMetricsSnapshot",
    "FetchOutcome",
    "ReadResult",
    # Boundaries
    "EntryStore",
    "KeyValueStorage",
    "ConnectivityChecker",
    "ConnectivityState",
    # Implementations
    "MemoryEntryStore",
    "DurableEntryStore",
    "InMemoryKeyValueStorage",
    "RedisKeyValueStorage",
    "HttpConnectivityChecker",
    "StaticConnectivityChecker",
    "MetricsAggregator",
    # Exceptions
    "CacheException",
    "NetworkUnavailableError",
    "StaleDataServedError",
    "FetchFailedError",
    "StoreReadFailedError",
    "StoreWriteFailedError",
]
