"""
In-memory key-value storage.

Process-local implementation of the persistence boundary, used for
development and for exercising the durable entry store without a server.
"""

import threading
from typing import Dict, List, Optional

from ...domain.cache.repository_interfaces import KeyValueStorage


class InMemoryKeyValueStorage(KeyValueStorage):
    """Dict-backed string storage."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    async def get_string(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    async def set_string(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    async def remove_keys(self, keys: List[str]) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    async def list_keys(self) -> List[str]:
        with self._lock:
            return list(self._data)
