"""
Cache Domain Services

Housekeeping and invalidation logic for the query cache.
Operates on any EntryStore implementation.
"""

import logging
import math
import random
from typing import Callable, List, Optional, Tuple

from opentelemetry import trace

from ...constants import (
    EVICTION_FRACTION,
    EVICTION_PROBABILITY,
    MAX_CACHE_ENTRIES,
)
from .repository_interfaces import EntryStore
from .value_objects import CacheKey

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class EvictionSweeper:
    """
    Domain service enforcing the entry count bound.

    The bound is restored probabilistically on orchestrator calls rather
    than on every write, so the sort cost is amortized and the store does
    not thrash at the boundary.
    """

    def __init__(
        self,
        store: EntryStore,
        max_entries: int = MAX_CACHE_ENTRIES,
        probability: float = EVICTION_PROBABILITY,
        fraction: float = EVICTION_FRACTION,
        random_source: Optional[Callable[[], float]] = None,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        if not 0.0 <= probability <= 1.0:
            raise ValueError("probability must be between 0 and 1")
        if not 0.0 < fraction <= 1.0:
            raise ValueError("fraction must be in (0, 1]")

        self.store = store
        self.max_entries = max_entries
        self.probability = probability
        self.fraction = fraction
        self._random = random_source or random.random

    async def maybe_sweep(self) -> int:
        """
        Run a sweep with the configured probability.

        Returns:
            Number of entries evicted (0 when the sweep was skipped)
        """
        if self._random() >= self.probability:
            return 0
        return await self.sweep()

    async def sweep(self) -> int:
        """
        Evict the oldest entries when the store exceeds its bound.

        Removes the oldest 20% (by default) of entries, and never fewer
        than needed to get back under the bound. Failures are logged and
        swallowed.

        Returns:
            Number of entries evicted
        """
        with tracer.start_as_current_span("cache.eviction_sweep") as span:
            try:
                keys = await self.store.all_keys()
                size = len(keys)
                span.set_attribute("store_size", size)

                if size <= self.max_entries:
                    return 0

                stamped: List[Tuple[float, str]] = []
                for key in keys:
                    stamped.append((await self._written_at(key), key))

                stamped.sort(key=lambda item: item[0])
                count = max(math.ceil(size * self.fraction), size - self.max_entries)
                oldest = [key for _, key in stamped[:count]]

                removed = await self.store.remove_many(oldest)
                span.set_attribute("evicted_count", removed)
                logger.info(
                    f"Evicted {removed} old cache entries",
                    extra={"store_size": size, "max_entries": self.max_entries},
                )
                return removed

            except Exception as e:
                logger.warning(f"Error enforcing cache limit: {e}")
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                return 0

    async def _written_at(self, key: str) -> float:
        # Unreadable or vanished entries sort first so they are evicted first
        try:
            entry = await self.store.get(key)
        except Exception as e:
            logger.debug(f"Unreadable cache entry during eviction: {key}: {e}")
            return float("-inf")
        if entry is None:
            return float("-inf")
        return entry.written_at


class CacheInvalidationService:
    """
    Domain service for cache invalidation.

    Mutation code paths call it right after a successful write so the
    next read does not serve outdated data.
    """

    def __init__(self, store: EntryStore):
        self.store = store

    async def invalidate(self, key: CacheKey, reason: str = "manual") -> int:
        """
        Invalidate one key, or every key matching a wildcard pattern.

        Args:
            key: Exact key, or a key containing the wildcard marker
            reason: Reason for invalidation (for logging)

        Returns:
            Number of cache entries invalidated
        """
        with tracer.start_as_current_span("cache.invalidate") as span:
            span.set_attribute("key", key.value)
            span.set_attribute("reason", reason)

            try:
                if key.is_pattern:
                    count = await self.store.remove_matching(key.pattern_token)
                else:
                    count = 1 if await self.store.remove(key.value) else 0

                span.set_attribute("invalidated_count", count)
                logger.info(
                    f"Invalidated {count} cache entries for {key.value}",
                    extra={"key": key.value, "reason": reason, "count": count},
                )
                return count

            except Exception as e:
                logger.error(f"Failed to invalidate cache for {key.value}: {e}")
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise

    async def invalidate_all(self, reason: str = "manual") -> None:
        """Invalidate every cache entry."""
        with tracer.start_as_current_span("cache.invalidate_all") as span:
            span.set_attribute("reason", reason)

            try:
                await self.store.clear()
                logger.info("Cleared all cache entries", extra={"reason": reason})

            except Exception as e:
                logger.error(f"Failed to clear cache: {e}")
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise
