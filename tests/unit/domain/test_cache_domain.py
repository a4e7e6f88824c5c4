"""
Unit tests for Cache Domain Models and Services.

Tests value objects, entities, exceptions and domain services
(eviction sweeper and invalidation) against the in-memory store.
"""

import math

import pytest
from pydantic import ValidationError

from querycache.domain.cache.domain_services import (
    CacheInvalidationService,
    EvictionSweeper,
)
from querycache.domain.cache.entities import (
    CacheEntry,
    CacheMetricsSnapshot,
    FetchOutcome,
    ReadResult,
)
from querycache.domain.cache.exceptions import (
    CacheException,
    FetchFailedError,
    NetworkUnavailableError,
    StaleDataServedError,
    StoreReadFailedError,
)
from querycache.domain.cache.value_objects import TTL, CacheKey, CacheOptions
from querycache.infrastructure.repositories.cache_repository import MemoryEntryStore


class TestCacheKey:
    """Test CacheKey value object."""

    def test_query_key_orders_params(self):
        """Test list-query keys are independent of argument order."""
        key = CacheKey.for_query(
            "companies", search="acme", page=1, size=20, status="active", sort="name"
        )
        same = CacheKey.for_query(
            "companies", sort="name", status="active", size=20, page=1, search="acme"
        )

        assert key.value == "companies_page1_searchacme_size20_sortname_statusactive"
        assert key == same

    def test_query_key_renders_values(self):
        """Test booleans, None and padded strings render predictably."""
        key = CacheKey.for_query("tasks", done=True, search=None, q="  x ")
        assert key.value == "tasks_donetrue_qx_search"

    def test_query_key_rejects_wildcard_namespace(self):
        """Test namespace cannot contain the wildcard marker."""
        with pytest.raises(ValueError, match="wildcard"):
            CacheKey.for_query("companies*", page=1)

    def test_detail_keys(self):
        """Test detail key conventions."""
        assert CacheKey.details("company", 42).value == "company_details_42"
        assert CacheKey.company_tasks(42).value == "company_tasks_42"
        assert CacheKey.task("t-1").value == "task_t-1"

    def test_pattern_key(self):
        """Test wildcard key creation."""
        key = CacheKey.pattern("companies")

        assert key.value == "companies_*"
        assert key.is_pattern
        assert key.pattern_token == "companies_"
        assert not CacheKey("companies_page1").is_pattern

    def test_invalid_key_empty(self):
        """Test invalid empty key."""
        with pytest.raises(ValueError, match="Cache key cannot be empty"):
            CacheKey("")

    def test_invalid_key_type(self):
        """Test non-string key."""
        with pytest.raises(TypeError):
            CacheKey(42)


class TestTTL:
    """Test TTL value object."""

    def test_constructors(self):
        assert TTL.ms(1500).milliseconds == 1500
        assert TTL.seconds(2).milliseconds == 2000
        assert TTL.minutes(1).milliseconds == 60000
        assert TTL.hours(1).milliseconds == 3600000

    def test_presets(self):
        """Test common TTL presets."""
        assert TTL.default().milliseconds == 600000
        assert TTL.task_data().milliseconds == 300000
        assert TTL.prefetch().milliseconds == 900000

    def test_invalid_ttl(self):
        with pytest.raises(ValueError, match="TTL must be positive"):
            TTL(0)


class TestCacheOptions:
    """Test CacheOptions model."""

    def test_defaults(self):
        options = CacheOptions()

        assert options.ttl_ms is None
        assert options.force_refresh is False
        assert options.critical_data is False

    def test_with_ttl(self):
        options = CacheOptions.with_ttl(TTL.minutes(5), critical_data=True)

        assert options.ttl_ms == 300000
        assert options.critical_data is True

    def test_rejects_non_positive_ttl(self):
        with pytest.raises(ValidationError):
            CacheOptions(ttl_ms=0)


class TestCacheEntry:
    """Test CacheEntry entity."""

    def test_freshness_boundary(self):
        """Test an entry is fresh strictly inside its TTL."""
        entry = CacheEntry(value={"id": 1}, written_at=1000.0)

        assert entry.is_fresh(ttl_ms=500, now=1499.0)
        assert not entry.is_fresh(ttl_ms=500, now=1500.0)
        assert entry.age_ms(1250.0) == 250.0

    def test_persisted_shape(self):
        entry = CacheEntry(value=[1, 2], written_at=5.0)
        data = entry.to_dict()

        assert data == {"value": [1, 2], "writtenAt": 5.0}
        assert CacheEntry.from_dict(data) == entry

    @pytest.mark.parametrize(
        "payload",
        [
            {"value": 1},
            {"writtenAt": 1},
            {"value": 1, "writtenAt": "yesterday"},
            {"value": 1, "writtenAt": True},
            ["value", "writtenAt"],
        ],
    )
    def test_from_dict_rejects_bad_shape(self, payload):
        with pytest.raises(ValueError):
            CacheEntry.from_dict(payload)


class TestFetchOutcome:
    """Test FetchOutcome entity."""

    def test_success_and_failure(self):
        assert FetchOutcome.success({"a": 1}).ok
        assert FetchOutcome.success(None).ok
        assert not FetchOutcome.failure(RuntimeError("boom")).ok

    def test_value_and_error_exclusive(self):
        with pytest.raises(ValueError):
            FetchOutcome(value=1, error="boom")

    def test_failure_requires_error(self):
        with pytest.raises(ValueError):
            FetchOutcome.failure(None)

    def test_coerce(self):
        """Test plain values are wrapped and outcomes pass through."""
        outcome = FetchOutcome.failure("boom")

        assert FetchOutcome.coerce(outcome) is outcome
        assert FetchOutcome.coerce([1]).value == [1]


class TestReadResultAndSnapshot:
    """Test ReadResult and CacheMetricsSnapshot."""

    def test_stale_result(self):
        result = ReadResult(
            value=1, error=StaleDataServedError("companies_page1"), from_cache=True
        )
        assert result.is_stale
        assert not ReadResult(value=1, from_cache=True).is_stale

    def test_hit_rate(self):
        assert CacheMetricsSnapshot().hit_rate == 0.0
        snapshot = CacheMetricsSnapshot(hits=3, misses=1, total_requests=4)
        assert snapshot.hit_rate == 0.75


class TestCacheExceptions:
    """Test cache exception taxonomy."""

    def test_error_codes(self):
        assert NetworkUnavailableError().error_code == "CACHE_NETWORK_UNAVAILABLE"
        assert StaleDataServedError("k").error_code == "CACHE_STALE_DATA"
        assert FetchFailedError(3).error_code == "CACHE_FETCH_FAILED"

    def test_all_derive_from_base(self):
        for error in (NetworkUnavailableError(), StaleDataServedError("k"), FetchFailedError(1)):
            assert isinstance(error, CacheException)

    def test_stale_message(self):
        error = StaleDataServedError("company_details_1", age_ms=1200.0)

        assert error.message == "Using stale data due to network being unavailable"
        assert error.details == {"key": "company_details_1", "age_ms": 1200.0}

    def test_fetch_failed_chains_cause(self):
        cause = ConnectionError("socket closed")
        error = FetchFailedError(3, cause)

        assert error.__cause__ is cause
        assert error.cause is cause
        assert error.details["attempts"] == 3
        assert error.details["cause_type"] == "ConnectionError"

    def test_fetch_failed_keeps_non_exception_cause(self):
        error = FetchFailedError(2, "HTTP 503")

        assert error.cause == "HTTP 503"
        assert error.__cause__ is None

    def test_store_read_failed_chains_original(self):
        original = ValueError("bad json")
        error = StoreReadFailedError("k", original)

        assert error.__cause__ is original
        assert error.details["original_error_type"] == "ValueError"


class _BrokenEntryStore(MemoryEntryStore):
    """Memory store whose listed key ``broken`` cannot be read."""

    async def get(self, key):
        if key == "broken":
            raise StoreReadFailedError(key)
        return await super().get(key)


class TestEvictionSweeper:
    """Test EvictionSweeper domain service."""

    async def _fill(self, store, clock, count, prefix="key"):
        for i in range(count):
            await store.set(f"{prefix}{i}", {"n": i})
            clock.advance(1)

    @pytest.mark.asyncio
    async def test_sweep_restores_bound_oldest_first(self, clock):
        """Test the oldest entries are evicted and the bound holds."""
        store = MemoryEntryStore(clock=clock)
        await self._fill(store, clock, 310)
        sweeper = EvictionSweeper(store, max_entries=300)

        removed = await sweeper.sweep()

        assert removed == math.ceil(310 * 0.2)
        keys = await store.all_keys()
        assert len(keys) == 310 - removed
        assert len(keys) <= 300
        assert all(f"key{i}" not in keys for i in range(removed))
        assert all(f"key{i}" in keys for i in range(removed, 310))

    @pytest.mark.asyncio
    async def test_sweep_removes_at_least_the_excess(self, clock):
        """Test a small fraction still brings the store under the bound."""
        store = MemoryEntryStore(clock=clock)
        await self._fill(store, clock, 20)
        sweeper = EvictionSweeper(store, max_entries=5, fraction=0.1)

        removed = await sweeper.sweep()

        assert removed == 15
        assert await store.all_keys() == {f"key{i}" for i in range(15, 20)}

    @pytest.mark.asyncio
    async def test_sweep_noop_within_bound(self, clock):
        store = MemoryEntryStore(clock=clock)
        await self._fill(store, clock, 300)

        assert await EvictionSweeper(store, max_entries=300).sweep() == 0
        assert await store.size() == 300

    @pytest.mark.asyncio
    async def test_unreadable_entries_evicted_first(self, clock):
        """Test entries that cannot be read sort before readable ones."""
        store = _BrokenEntryStore(clock=clock)
        await self._fill(store, clock, 4)
        await store.set("broken", "x")
        sweeper = EvictionSweeper(store, max_entries=4)

        removed = await sweeper.sweep()

        assert removed == 1
        assert "broken" not in await store.all_keys()
        assert await store.size() == 4

    @pytest.mark.asyncio
    async def test_maybe_sweep_respects_probability(self, clock, never_sweep, always_sweep):
        store = MemoryEntryStore(clock=clock)
        await self._fill(store, clock, 12)

        skipped = EvictionSweeper(store, max_entries=10, random_source=never_sweep)
        assert await skipped.maybe_sweep() == 0
        assert await store.size() == 12

        forced = EvictionSweeper(store, max_entries=10, random_source=always_sweep)
        assert await forced.maybe_sweep() == 3
        assert await store.size() == 9

    @pytest.mark.asyncio
    async def test_sweep_failure_is_swallowed(self, clock):
        store = MemoryEntryStore(clock=clock)

        async def failing_keys():
            raise RuntimeError("storage offline")

        store.all_keys = failing_keys
        assert await EvictionSweeper(store, max_entries=1).sweep() == 0

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_entries": 0}, {"probability": 1.5}, {"fraction": 0.0}],
    )
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            EvictionSweeper(MemoryEntryStore(), **kwargs)


class TestCacheInvalidationService:
    """Test CacheInvalidationService domain service."""

    @pytest.fixture
    def store(self, clock):
        return MemoryEntryStore(clock=clock)

    @pytest.fixture
    def invalidation_service(self, store):
        return CacheInvalidationService(store)

    async def _seed(self, store):
        for key in ("emp_A", "emp_B", "companies_page1", "company_details_1"):
            await store.set(key, key.lower())

    @pytest.mark.asyncio
    async def test_pattern_invalidation(self, store, invalidation_service):
        """Test wildcard removes every key containing the token."""
        await self._seed(store)

        count = await invalidation_service.invalidate(CacheKey("emp_*"), "employee_updated")

        assert count == 2
        assert await store.all_keys() == {"companies_page1", "company_details_1"}

    @pytest.mark.asyncio
    async def test_exact_invalidation(self, store, invalidation_service):
        await self._seed(store)

        assert await invalidation_service.invalidate(CacheKey("emp_A")) == 1
        assert await invalidation_service.invalidate(CacheKey("emp_A")) == 0
        assert await store.get("emp_B") is not None

    @pytest.mark.asyncio
    async def test_bare_wildcard_removes_everything(self, store, invalidation_service):
        await self._seed(store)

        assert await invalidation_service.invalidate(CacheKey("*")) == 4
        assert await store.size() == 0

    @pytest.mark.asyncio
    async def test_invalidate_all(self, store, invalidation_service):
        await self._seed(store)

        await invalidation_service.invalidate_all("logout")
        assert await store.size() == 0

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, store, invalidation_service):
        async def failing_remove(key):
            raise RuntimeError("storage offline")

        store.remove = failing_remove
        with pytest.raises(RuntimeError):
            await invalidation_service.invalidate(CacheKey("emp_A"))
