"""
Cache Entry Store Implementations

Infrastructure implementations of the EntryStore interface:
a process-memory table and a durable store layered over any
KeyValueStorage backend.
"""

import copy
import json
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from opentelemetry import trace

from ...constants import CACHE_PREFIX, current_time_ms
from ...domain.cache.entities import CacheEntry
from ...domain.cache.exceptions import StoreReadFailedError, StoreWriteFailedError
from ...domain.cache.repository_interfaces import EntryStore, KeyValueStorage

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class MemoryEntryStore(EntryStore):
    """In-process entry store backed by a dict.

    Entries are replaced wholesale under a lock, so readers never see a
    partially written entry. Values are deep-copied on the way in and out,
    so callers mutating a returned value never change the cached entry.
    """

    backend_name = "memory"

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._entries: Dict[str, CacheEntry[Any]] = {}
        self._lock = threading.RLock()
        self._clock = clock or current_time_ms

    @staticmethod
    def _detached(entry: CacheEntry[Any]) -> CacheEntry[Any]:
        return CacheEntry(value=copy.deepcopy(entry.value), written_at=entry.written_at)

    async def get(self, key: str) -> Optional[CacheEntry[Any]]:
        with self._lock:
            entry = self._entries.get(key)
        return self._detached(entry) if entry is not None else None

    async def set(self, key: str, value: Any) -> CacheEntry[Any]:
        try:
            entry = CacheEntry(value=copy.deepcopy(value), written_at=self._clock())
        except Exception as e:
            raise StoreWriteFailedError(key, e) from e
        with self._lock:
            self._entries[key] = entry
        return self._detached(entry)

    async def remove(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    async def remove_many(self, keys: Iterable[str]) -> int:
        removed = 0
        with self._lock:
            for key in keys:
                if self._entries.pop(key, None) is not None:
                    removed += 1
        return removed

    async def remove_matching(self, pattern: str) -> int:
        with self._lock:
            matching = [key for key in self._entries if pattern in key]
            for key in matching:
                del self._entries[key]
        return len(matching)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    async def all_keys(self) -> Set[str]:
        with self._lock:
            return set(self._entries)

    async def size(self) -> int:
        with self._lock:
            return len(self._entries)


class DurableEntryStore(EntryStore):
    """
    Entry store persisted through a KeyValueStorage backend.

    Every entry is stored as JSON ``{"value", "writtenAt"}`` under the
    cache prefix. Values JSON cannot represent natively (datetime, UUID,
    Decimal) are stored as their string form, and ``set`` returns the
    decoded entry so a write and later reads hand back the same shape. Keys without the prefix belong to other application
    data and are never listed, removed or cleared by this store.
    """

    backend_name = "durable"

    def __init__(
        self,
        storage: KeyValueStorage,
        prefix: str = CACHE_PREFIX,
        clock: Optional[Callable[[], float]] = None,
    ):
        if not prefix:
            raise ValueError("Durable cache prefix cannot be empty")
        self.storage = storage
        self.prefix = prefix
        self._clock = clock or current_time_ms

    def _storage_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def _cache_storage_keys(self) -> List[str]:
        keys = await self.storage.list_keys()
        return [key for key in keys if key.startswith(self.prefix)]

    async def get(self, key: str) -> Optional[CacheEntry[Any]]:
        storage_key = self._storage_key(key)
        try:
            raw = await self.storage.get_string(storage_key)
        except Exception as e:
            raise StoreReadFailedError(key, e) from e

        if raw is None:
            return None

        try:
            return CacheEntry.from_dict(json.loads(raw))
        except (TypeError, ValueError) as e:
            raise StoreReadFailedError(key, e) from e

    async def set(self, key: str, value: Any) -> CacheEntry[Any]:
        entry = CacheEntry(value=value, written_at=self._clock())
        try:
            payload = json.dumps(entry.to_dict(), default=str)
            stored = CacheEntry.from_dict(json.loads(payload))
        except (TypeError, ValueError) as e:
            raise StoreWriteFailedError(key, e) from e

        try:
            await self.storage.set_string(self._storage_key(key), payload)
        except Exception as e:
            raise StoreWriteFailedError(key, e) from e

        logger.debug(
            f"Saved cache entry: {key}",
            extra={"key": key, "size_bytes": len(payload)},
        )
        return stored

    async def remove(self, key: str) -> bool:
        storage_key = self._storage_key(key)
        try:
            existed = await self.storage.get_string(storage_key) is not None
            await self.storage.remove_keys([storage_key])
        except Exception as e:
            raise StoreWriteFailedError(key, e) from e
        return existed

    async def remove_many(self, keys: Iterable[str]) -> int:
        wanted = {self._storage_key(key) for key in keys}
        if not wanted:
            return 0
        try:
            present = [key for key in await self._cache_storage_keys() if key in wanted]
            if present:
                await self.storage.remove_keys(present)
        except Exception as e:
            raise StoreWriteFailedError(",".join(sorted(wanted)), e) from e
        return len(present)

    async def remove_matching(self, pattern: str) -> int:
        with tracer.start_as_current_span("cache_repository.remove_matching") as span:
            span.set_attribute("pattern", pattern)
            try:
                matching = [
                    key
                    for key in await self._cache_storage_keys()
                    if pattern in key[len(self.prefix):]
                ]
                if matching:
                    await self.storage.remove_keys(matching)
            except Exception as e:
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise StoreWriteFailedError(pattern, e) from e

            span.set_attribute("removed_count", len(matching))
            if matching:
                logger.info(
                    f"Cleared {len(matching)} cache entries matching: {pattern}"
                )
            return len(matching)

    async def clear(self) -> None:
        try:
            keys = await self._cache_storage_keys()
            if keys:
                await self.storage.remove_keys(keys)
        except Exception as e:
            raise StoreWriteFailedError(f"{self.prefix}*", e) from e

        if keys:
            logger.info(f"Cleared {len(keys)} cache entries from durable storage")

    async def all_keys(self) -> Set[str]:
        try:
            keys = await self._cache_storage_keys()
        except Exception as e:
            raise StoreReadFailedError(f"{self.prefix}*", e) from e
        return {key[len(self.prefix):] for key in keys}

    async def close(self) -> None:
        await self.storage.close()
