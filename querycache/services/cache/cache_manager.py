"""
Cache Manager Service

Read-through cache orchestrator. Sits between application code and
remote fetch operations, deciding per call whether to serve from the
entry store, fetch through the retrying executor, or serve stale data
when the network is down.

Concurrent misses on the same key are not de-duplicated: both calls may
fetch and both may write, and the last write wins.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional, Set, Union

from opentelemetry import trace
from prometheus_client import CollectorRegistry

from ...constants import (
    DEFAULT_CACHE_TTL_MS,
    MAX_CACHE_ENTRIES,
    SLOW_QUERY_THRESHOLD_MS,
    current_time_ms,
)
from ...core.config import Settings, get_settings
from ...domain.cache.domain_services import CacheInvalidationService, EvictionSweeper
from ...domain.cache.entities import CacheEntry, CacheMetricsSnapshot, ReadResult
from ...domain.cache.exceptions import NetworkUnavailableError, StaleDataServedError
from ...domain.cache.repository_interfaces import ConnectivityChecker, EntryStore
from ...domain.cache.value_objects import CacheKey, CacheOptions, CacheOutcome, TTL
from ...infrastructure.network.connectivity import (
    HttpConnectivityChecker,
    StaticConnectivityChecker,
)
from ...infrastructure.redis.redis_storage import RedisKeyValueStorage
from ...infrastructure.repositories.cache_repository import (
    DurableEntryStore,
    MemoryEntryStore,
)
from ...monitoring.cache_metrics import MetricsAggregator
from .fetch_executor import FetchExecutor, FetchFn, SleepFn
from .network_probe import NetworkProbe

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

KeyLike = Union[str, CacheKey]


class CacheManager:
    """
    Read-through cache service.

    Provides a unified interface for cached reads, invalidation after
    writes, background prefetching and performance diagnostics. Each
    instance owns its store, metrics and housekeeping, so tests and
    applications can run isolated caches side by side.
    """

    def __init__(
        self,
        store: EntryStore,
        *,
        default_ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        max_entries: int = MAX_CACHE_ENTRIES,
        sweeper: Optional[EvictionSweeper] = None,
        network_probe: Optional[NetworkProbe] = None,
        fetch_executor: Optional[FetchExecutor] = None,
        metrics: Optional[MetricsAggregator] = None,
        clock: Optional[Callable[[], float]] = None,
        slow_query_threshold_ms: float = SLOW_QUERY_THRESHOLD_MS,
    ):
        if default_ttl_ms <= 0:
            raise ValueError("default_ttl_ms must be positive")

        self.store = store
        self.default_ttl_ms = default_ttl_ms
        self.max_entries = max_entries
        self.sweeper = sweeper or EvictionSweeper(store, max_entries=max_entries)
        self.network_probe = network_probe or NetworkProbe()
        self.fetch_executor = fetch_executor or FetchExecutor()
        self.metrics = metrics or MetricsAggregator()
        self.invalidation_service = CacheInvalidationService(store)
        self.slow_query_threshold_ms = slow_query_threshold_ms
        self._clock = clock or current_time_ms
        self._prefetch_tasks: Set[asyncio.Task] = set()

    # Read-through

    async def read_through(
        self,
        key: KeyLike,
        fetch_fn: FetchFn,
        options: Optional[CacheOptions] = None,
    ) -> ReadResult[Any]:
        """
        Serve a query from cache or fetch it.

        Args:
            key: Cache key of the logical query (no wildcard)
            fetch_fn: Zero-argument coroutine function performing the
                remote read; returns a value or a FetchOutcome
            options: TTL, force refresh and critical-data flags

        Returns:
            ReadResult with the value, an error for the caller to present,
            and whether the value came from cache. Never raises for cache,
            network or fetch failures.
        """
        cache_key = self._as_key(key)
        if cache_key.is_pattern:
            raise ValueError("Cannot read through a wildcard cache key")

        options = options or CacheOptions()
        ttl_ms = options.ttl_ms or self.default_ttl_ms
        start_time = time.perf_counter()

        with tracer.start_as_current_span("cache_manager.read_through") as span:
            span.set_attribute("key", cache_key.value)
            span.set_attribute("ttl_ms", ttl_ms)
            span.set_attribute("force_refresh", options.force_refresh)
            span.set_attribute("critical_data", options.critical_data)

            await self.sweeper.maybe_sweep()

            entry: Optional[CacheEntry[Any]] = None
            if not options.force_refresh:
                entry = await self._lookup(cache_key.value)
                if entry is not None and entry.is_fresh(ttl_ms, self._clock()):
                    span.set_attribute("cache_hit", True)
                    return self._complete(
                        span,
                        start_time,
                        cache_key,
                        CacheOutcome.HIT,
                        ReadResult(value=entry.value, from_cache=True),
                    )

            span.set_attribute("cache_hit", False)
            network_available = await self.network_probe.is_available()
            span.set_attribute("network_available", network_available)

            if not network_available:
                return await self._read_offline(
                    span, start_time, cache_key, entry, options, ttl_ms
                )

            outcome = await self.fetch_executor.execute(fetch_fn)
            if not outcome.ok:
                return self._complete(
                    span,
                    start_time,
                    cache_key,
                    CacheOutcome.MISS,
                    ReadResult(error=outcome.error),
                    is_error=True,
                )

            value = outcome.value
            # A null result means "no data yet", not a confirmed empty result
            if value is not None:
                written = await self._write(cache_key.value, value)
                if written is not None:
                    value = written.value

            return self._complete(
                span,
                start_time,
                cache_key,
                CacheOutcome.MISS,
                ReadResult(value=value),
            )

    async def _read_offline(
        self,
        span: trace.Span,
        start_time: float,
        cache_key: CacheKey,
        entry: Optional[CacheEntry[Any]],
        options: CacheOptions,
        ttl_ms: int,
    ) -> ReadResult[Any]:
        if options.critical_data:
            if entry is None:
                entry = await self._lookup(cache_key.value)
            if entry is not None:
                now = self._clock()
                if entry.is_fresh(ttl_ms, now):
                    # Reached only with force_refresh; the entry is still current
                    logger.info(
                        f"Network unavailable, serving fresh cache for {cache_key.value}",
                        extra={"key": cache_key.value},
                    )
                    return self._complete(
                        span,
                        start_time,
                        cache_key,
                        CacheOutcome.HIT,
                        ReadResult(value=entry.value, from_cache=True),
                    )

                age_ms = entry.age_ms(now)
                logger.info(
                    f"Network unavailable, using stale cache for {cache_key.value}",
                    extra={"key": cache_key.value, "age_ms": age_ms},
                )
                return self._complete(
                    span,
                    start_time,
                    cache_key,
                    CacheOutcome.MISS,
                    ReadResult(
                        value=entry.value,
                        error=StaleDataServedError(cache_key.value, age_ms),
                        from_cache=True,
                    ),
                )

        return self._complete(
            span,
            start_time,
            cache_key,
            CacheOutcome.MISS,
            ReadResult(error=NetworkUnavailableError(key=cache_key.value)),
            is_error=True,
        )

    async def _lookup(self, key: str) -> Optional[CacheEntry[Any]]:
        try:
            return await self.store.get(key)
        except Exception as e:
            logger.warning(f"Error reading from cache store for {key}: {e}")
            return None

    async def _write(self, key: str, value: Any) -> Optional[CacheEntry[Any]]:
        try:
            return await self.store.set(key, value)
        except Exception as e:
            logger.warning(f"Error saving to cache store for {key}: {e}")
            return None

    def _complete(
        self,
        span: trace.Span,
        start_time: float,
        cache_key: CacheKey,
        outcome: CacheOutcome,
        result: ReadResult[Any],
        is_error: bool = False,
    ) -> ReadResult[Any]:
        elapsed_ms = (time.perf_counter() - start_time) * 1000

        try:
            self.metrics.record(outcome, elapsed_ms, is_error)
        except Exception as e:
            logger.warning(f"Failed to track cache metrics: {e}")

        span.set_attribute("from_cache", result.from_cache)
        span.set_attribute("elapsed_ms", elapsed_ms)
        if result.error is not None:
            span.set_attribute("error_code", result.error.error_code or "")

        if elapsed_ms > self.slow_query_threshold_ms:
            logger.warning(
                f"Slow cached query for {cache_key.value}: {elapsed_ms:.1f}ms",
                extra={
                    "key": cache_key.value,
                    "elapsed_ms": round(elapsed_ms, 1),
                    "threshold_ms": self.slow_query_threshold_ms,
                },
            )

        return result

    # Invalidation

    async def invalidate(self, key: KeyLike, reason: str = "manual") -> int:
        """
        Invalidate one cache key, or every key matching a wildcard.

        ``"companies_*"`` removes every entry whose key contains
        ``"companies_"``. Call right after a successful write.

        Returns:
            Number of cache entries invalidated (0 on store failure)
        """
        cache_key = self._as_key(key)
        try:
            return await self.invalidation_service.invalidate(cache_key, reason)
        except Exception as e:
            logger.error(f"Error clearing cache for {cache_key.value}: {e}")
            return 0

    async def invalidate_all(self, reason: str = "manual") -> None:
        """Invalidate every cache entry."""
        try:
            await self.invalidation_service.invalidate_all(reason)
        except Exception as e:
            logger.error(f"Error clearing all cache: {e}")

    # Metrics

    def metrics_snapshot(self) -> CacheMetricsSnapshot:
        """Get current cache performance metrics."""
        return self.metrics.snapshot()

    def reset_metrics(self) -> None:
        """Reset cache performance metrics."""
        self.metrics.reset()

    # Prefetch

    def prefetch(
        self,
        key: KeyLike,
        fetch_fn: FetchFn,
        options: Optional[CacheOptions] = None,
        delay_ms: float = 0,
    ) -> "asyncio.Task[None]":
        """
        Warm a cache entry in the background.

        Meant for commonly used lists after login or during idle periods.
        Failures are logged and never reach the caller.

        Args:
            key: Cache key to warm
            fetch_fn: Fetch operation for the key
            options: Read options (defaults to the prefetch TTL)
            delay_ms: Delay before the read, to stagger several prefetches

        Returns:
            The scheduled task
        """
        cache_key = self._as_key(key)
        options = options or CacheOptions.with_ttl(TTL.prefetch())

        async def _run() -> None:
            if delay_ms > 0:
                await asyncio.sleep(delay_ms / 1000)
            try:
                result = await self.read_through(cache_key, fetch_fn, options)
            except Exception as e:
                logger.warning(f"Background prefetch failed for {cache_key.value}: {e}")
                return
            if result.error is not None:
                logger.warning(
                    f"Background prefetch failed for {cache_key.value}: "
                    f"{result.error.message}"
                )

        task = asyncio.create_task(_run())
        self._prefetch_tasks.add(task)
        task.add_done_callback(self._prefetch_tasks.discard)
        return task

    # Diagnostics and lifecycle

    async def health_check(self) -> Dict[str, Any]:
        """Report store occupancy and metrics."""
        with tracer.start_as_current_span("cache_manager.health_check") as span:
            metrics = self.metrics_snapshot()
            try:
                size = await self.store.size()
            except Exception as e:
                logger.error(f"Cache manager health check failed: {e}")
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                return {
                    "status": "unhealthy",
                    "timestamp": time.time(),
                    "cache_manager": {
                        "backend": self.store.backend_name,
                        "error": str(e),
                    },
                    "metrics": metrics.model_dump(),
                }

            return {
                "status": "degraded" if size > self.max_entries else "healthy",
                "timestamp": time.time(),
                "cache_manager": {
                    "backend": self.store.backend_name,
                    "size": size,
                    "max_entries": self.max_entries,
                    "default_ttl_ms": self.default_ttl_ms,
                    "pending_prefetches": len(self._prefetch_tasks),
                },
                "metrics": {**metrics.model_dump(), "hit_rate": metrics.hit_rate},
            }

    async def close(self) -> None:
        """Cancel pending prefetches and release the store backend."""
        tasks = list(self._prefetch_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.store.close()
        logger.info("Cache manager closed")

    @staticmethod
    def _as_key(key: KeyLike) -> CacheKey:
        return key if isinstance(key, CacheKey) else CacheKey(key)


def create_cache_manager(
    settings: Optional[Settings] = None,
    *,
    store: Optional[EntryStore] = None,
    connectivity: Optional[ConnectivityChecker] = None,
    random_source: Optional[Callable[[], float]] = None,
    clock: Optional[Callable[[], float]] = None,
    sleep: Optional[SleepFn] = None,
    registry: Optional[CollectorRegistry] = None,
) -> CacheManager:
    """
    Build an isolated CacheManager from settings.

    Every collaborator can be injected; anything not given is built from
    ``settings`` (``get_settings()`` when omitted).
    """
    settings = settings or get_settings()

    if store is None:
        if settings.CACHE_BACKEND == "redis":
            storage = RedisKeyValueStorage.from_url(
                settings.REDIS_URL, scan_match=f"{settings.CACHE_KEY_PREFIX}*"
            )
            store = DurableEntryStore(
                storage, prefix=settings.CACHE_KEY_PREFIX, clock=clock
            )
        else:
            store = MemoryEntryStore(clock=clock)

    if connectivity is None:
        if settings.NETWORK_CHECK_URL:
            connectivity = HttpConnectivityChecker(
                settings.NETWORK_CHECK_URL,
                timeout_seconds=settings.network_check_timeout_seconds,
            )
        else:
            connectivity = StaticConnectivityChecker()

    manager = CacheManager(
        store,
        default_ttl_ms=settings.CACHE_DEFAULT_TTL_MS,
        max_entries=settings.CACHE_MAX_ENTRIES,
        sweeper=EvictionSweeper(
            store,
            max_entries=settings.CACHE_MAX_ENTRIES,
            probability=settings.CACHE_EVICTION_PROBABILITY,
            fraction=settings.CACHE_EVICTION_FRACTION,
            random_source=random_source,
        ),
        network_probe=NetworkProbe(
            connectivity, timeout_ms=settings.NETWORK_PROBE_TIMEOUT_MS
        ),
        fetch_executor=FetchExecutor(
            max_attempts=settings.FETCH_MAX_ATTEMPTS,
            base_delay_ms=settings.FETCH_BASE_DELAY_MS,
            sleep=sleep,
        ),
        metrics=MetricsAggregator(registry),
        clock=clock,
        slow_query_threshold_ms=settings.SLOW_QUERY_THRESHOLD_MS,
    )

    logger.info(
        f"Cache manager created with {store.backend_name} backend",
        extra={
            "max_entries": settings.CACHE_MAX_ENTRIES,
            "default_ttl_ms": settings.CACHE_DEFAULT_TTL_MS,
        },
    )
    return manager
