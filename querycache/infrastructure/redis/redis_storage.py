"""
Redis Key-Value Storage

Durable persistence boundary backed by redis-py's asyncio client.
Redis errors are propagated unchanged; the entry store above decides
how to degrade.
"""

import logging
import time
from typing import List, Optional

from redis.asyncio import Redis
from opentelemetry import trace

from ...domain.cache.repository_interfaces import KeyValueStorage

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RedisKeyValueStorage(KeyValueStorage):
    """
    Redis implementation of the key-value persistence boundary.

    ``scan_match`` narrows ``list_keys`` to a key pattern so a shared
    Redis database is not scanned in full.
    """

    def __init__(self, client: Redis, scan_match: str = "*", scan_count: int = 500):
        self._redis = client
        self.scan_match = scan_match
        self.scan_count = scan_count

    @classmethod
    def from_url(
        cls, url: str, scan_match: str = "*", **client_kwargs
    ) -> "RedisKeyValueStorage":
        """Create storage with a new client for the given Redis URL."""
        client_kwargs.setdefault("decode_responses", True)
        return cls(Redis.from_url(url, **client_kwargs), scan_match=scan_match)

    async def get_string(self, key: str) -> Optional[str]:
        value = await self._redis.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set_string(self, key: str, value: str) -> None:
        await self._redis.set(key, value)

    async def remove_keys(self, keys: List[str]) -> None:
        if not keys:
            return
        await self._redis.delete(*keys)

    async def list_keys(self) -> List[str]:
        with tracer.start_as_current_span("redis_storage.list_keys") as span:
            start_time = time.time()
            keys = []
            async for key in self._redis.scan_iter(
                match=self.scan_match, count=self.scan_count
            ):
                keys.append(key.decode("utf-8") if isinstance(key, bytes) else key)

            span.set_attribute("key_count", len(keys))
            logger.debug(
                f"Scanned {len(keys)} keys",
                extra={
                    "match": self.scan_match,
                    "execution_time_ms": (time.time() - start_time) * 1000,
                },
            )
            return keys

    async def close(self) -> None:
        await self._redis.aclose()
