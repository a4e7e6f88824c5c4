"""
Key-Value Storage Module

Process-local implementation of the persistence boundary used by the
durable entry store.
"""

from .memory_storage import InMemoryKeyValueStorage

__all__ = ["InMemoryKeyValueStorage"]
