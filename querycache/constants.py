"""
Query Cache Global Constants

Centralized location for cache-wide defaults and markers.
"""

import time

# Key conventions
CACHE_PREFIX = "query_cache_"
WILDCARD = "*"
KEY_SEPARATOR = "_"

# Freshness
DEFAULT_CACHE_TTL_MS = 10 * 60 * 1000  # 10 minutes

# Size bound and eviction
MAX_CACHE_ENTRIES = 300
EVICTION_PROBABILITY = 0.1
EVICTION_FRACTION = 0.2

# Fetch retries
FETCH_MAX_ATTEMPTS = 3
FETCH_BASE_DELAY_MS = 1000

# Connectivity
NETWORK_PROBE_TIMEOUT_MS = 3000

# Diagnostics
SLOW_QUERY_THRESHOLD_MS = 3000


def current_time_ms() -> float:
    """Get current wall-clock time in epoch milliseconds.

    Entry timestamps are compared across process restarts by the durable
    backend, so this is wall-clock time rather than a monotonic counter.
    """
    return time.time() * 1000
