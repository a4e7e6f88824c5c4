"""
Cache Repository Interfaces

Abstract interfaces following the Repository pattern.
Defines the contracts that entry store backends, key-value persistence
and connectivity sources must satisfy.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Set

from .entities import CacheEntry


class EntryStore(ABC):
    """
    Abstract entry store.

    Maps cache keys to immutable CacheEntry records. Backends raise
    StoreReadFailedError / StoreWriteFailedError on I/O or decoding
    failures; they never swallow them.
    """

    #: Short backend name used in logs and health reports.
    backend_name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry[Any]]:
        """Get entry by key, or None when absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> CacheEntry[Any]:
        """Replace the entry for key, stamped with the current time.

        Returns the entry exactly as later reads will return it.
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> bool:
        """Remove one entry. Returns True if it existed."""
        pass

    @abstractmethod
    async def remove_many(self, keys: Iterable[str]) -> int:
        """Remove several entries. Returns the number removed."""
        pass

    @abstractmethod
    async def remove_matching(self, pattern: str) -> int:
        """Remove every entry whose key contains pattern."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove all entries owned by the cache."""
        pass

    @abstractmethod
    async def all_keys(self) -> Set[str]:
        """Get every cache key currently stored."""
        pass

    async def size(self) -> int:
        """Get number of stored entries."""
        return len(await self.all_keys())

    async def close(self) -> None:
        """Release backend resources."""
        return None


class KeyValueStorage(ABC):
    """
    Minimal string key-value persistence boundary.

    Enough to implement the entry store durably. Implementations may
    share the keyspace with unrelated application data.
    """

    @abstractmethod
    async def get_string(self, key: str) -> Optional[str]:
        """Get raw value for key, or None."""
        pass

    @abstractmethod
    async def set_string(self, key: str, value: str) -> None:
        """Store raw value under key."""
        pass

    @abstractmethod
    async def remove_keys(self, keys: List[str]) -> None:
        """Remove keys; missing keys are ignored."""
        pass

    @abstractmethod
    async def list_keys(self) -> List[str]:
        """List every key in the storage."""
        pass

    async def close(self) -> None:
        """Release storage resources."""
        return None


@dataclass(frozen=True)
class ConnectivityState:
    """Connectivity signal. None means the source could not tell."""

    is_connected: Optional[bool] = None
    is_internet_reachable: Optional[bool] = None

    @property
    def definitely_offline(self) -> bool:
        return self.is_connected is False and self.is_internet_reachable is False


class ConnectivityChecker(ABC):
    """Source of connectivity signals consumed by the network probe."""

    @abstractmethod
    async def check(self) -> ConnectivityState:
        """Observe current connectivity."""
        pass
