"""
Redis Infrastructure Module

Redis-backed persistence boundary for the durable entry store.
"""

from .redis_storage import RedisKeyValueStorage

__all__ = ["RedisKeyValueStorage"]
