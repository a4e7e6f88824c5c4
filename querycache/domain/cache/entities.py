"""
Cache Domain Entities

Core records exchanged between the orchestrator, the entry store
and callers of the read-through cache.
"""

from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from .exceptions import CacheException, StaleDataServedError

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """
    Cached payload plus the time it was written.

    Immutable: a cache write replaces the entry, it never mutates it.
    """

    value: T
    written_at: float  # epoch milliseconds

    def age_ms(self, now: float) -> float:
        """Milliseconds elapsed since the entry was written."""
        return now - self.written_at

    def is_fresh(self, ttl_ms: float, now: float) -> bool:
        """Check whether the entry is still inside its TTL."""
        return self.age_ms(now) < ttl_ms

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted ``{value, writtenAt}`` shape."""
        return {"value": self.value, "writtenAt": self.written_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry[Any]":
        """Deserialize from the persisted shape.

        Raises:
            ValueError: If the payload does not have the expected shape
        """
        if not isinstance(data, dict) or "value" not in data or "writtenAt" not in data:
            raise ValueError("Cache entry payload must contain value and writtenAt")
        written_at = data["writtenAt"]
        if isinstance(written_at, bool) or not isinstance(written_at, (int, float)):
            raise ValueError("Cache entry writtenAt must be a number")
        return cls(value=data["value"], written_at=float(written_at))


@dataclass(frozen=True)
class FetchOutcome(Generic[T]):
    """Result of the wrapped fetch operation: a value or an error, never both."""

    value: Optional[T] = None
    error: Optional[Any] = None

    def __post_init__(self) -> None:
        if self.value is not None and self.error is not None:
            raise ValueError("FetchOutcome cannot carry both a value and an error")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T]) -> "FetchOutcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Any) -> "FetchOutcome[T]":
        if error is None:
            raise ValueError("A failed FetchOutcome requires an error")
        return cls(error=error)

    @classmethod
    def coerce(cls, result: Any) -> "FetchOutcome[Any]":
        """Normalize whatever a fetch function returned into an outcome."""
        if isinstance(result, FetchOutcome):
            return result
        return cls(value=result)


@dataclass(frozen=True)
class ReadResult(Generic[T]):
    """What ``read_through`` hands back to the caller."""

    value: Optional[T] = None
    error: Optional[CacheException] = None
    from_cache: bool = False

    @property
    def is_stale(self) -> bool:
        """Served from cache past its TTL because the network is down."""
        return self.from_cache and isinstance(self.error, StaleDataServedError)


class CacheMetricsSnapshot(BaseModel):
    """Aggregated cache performance counters."""

    hits: int = Field(default=0, ge=0, description="Fresh cache hits")
    misses: int = Field(default=0, ge=0, description="Calls not served fresh")
    errors: int = Field(default=0, ge=0, description="Calls that ended in an error")
    avg_response_time_ms: float = Field(
        default=0.0, ge=0.0, description="Running mean of call duration"
    )
    total_requests: int = Field(default=0, ge=0, description="All recorded calls")

    @property
    def hit_rate(self) -> float:
        """Share of recorded calls that were fresh hits."""
        if self.total_requests == 0:
            return 0.0
        return self.hits / self.total_requests
