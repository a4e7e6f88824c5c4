"""
Cache Value Objects

Immutable value objects for the query cache domain.
Provides type safety and key conventions for cache operations.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from ...constants import KEY_SEPARATOR, WILDCARD


class CacheOutcome(str, Enum):
    """Outcome of a read-through call as seen by metrics."""

    HIT = "hit"
    MISS = "miss"


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    Wraps the opaque string that identifies one logical query. Factory
    methods build the conventional keys used by list and detail screens
    so identical queries always produce identical keys.
    """

    value: str

    def __post_init__(self) -> None:
        """Validate cache key."""
        if not isinstance(self.value, str):
            raise TypeError("Cache key must be a string")
        if not self.value:
            raise ValueError("Cache key cannot be empty")

    @staticmethod
    def _render(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return str(value)

    @classmethod
    def for_query(cls, namespace: str, **params: Any) -> "CacheKey":
        """
        Create a list-query key from a namespace and query parameters.

        Parameters are ordered by name and rendered as ``<name><value>``,
        e.g. ``companies_pageN_search<text>_sort<order>``.
        """
        if not namespace:
            raise ValueError("Cache key namespace cannot be empty")
        if WILDCARD in namespace:
            raise ValueError("Cache key namespace cannot contain a wildcard")
        parts = [namespace]
        for name in sorted(params):
            parts.append(f"{name}{cls._render(params[name])}")
        return cls(KEY_SEPARATOR.join(parts))

    @classmethod
    def details(cls, entity: str, entity_id: Union[str, int, UUID]) -> "CacheKey":
        """Create a detail-screen key, e.g. ``company_details_42``."""
        return cls(f"{entity}{KEY_SEPARATOR}details{KEY_SEPARATOR}{entity_id}")

    @classmethod
    def company_tasks(cls, company_id: Union[str, int, UUID]) -> "CacheKey":
        """Create the task list key for a company."""
        return cls(f"company_tasks{KEY_SEPARATOR}{company_id}")

    @classmethod
    def task(cls, task_id: Union[str, int, UUID]) -> "CacheKey":
        """Create a single task key."""
        return cls(f"task{KEY_SEPARATOR}{task_id}")

    @classmethod
    def pattern(cls, namespace: str) -> "CacheKey":
        """Create a wildcard key matching every query of a namespace."""
        return cls(f"{namespace}{KEY_SEPARATOR}{WILDCARD}")

    @property
    def is_pattern(self) -> bool:
        """Whether this key is a wildcard pattern."""
        return WILDCARD in self.value

    @property
    def pattern_token(self) -> str:
        """Literal text before the first wildcard marker."""
        return self.value.split(WILDCARD, 1)[0]

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object for cache freshness.

    Stored in milliseconds, the unit entry timestamps use.
    """

    milliseconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if self.milliseconds <= 0:
            raise ValueError("TTL must be positive")

    @classmethod
    def ms(cls, milliseconds: int) -> "TTL":
        """Create TTL from milliseconds."""
        return cls(milliseconds)

    @classmethod
    def seconds(cls, seconds: float) -> "TTL":
        """Create TTL from seconds."""
        return cls(int(seconds * 1000))

    @classmethod
    def minutes(cls, minutes: float) -> "TTL":
        """Create TTL from minutes."""
        return cls(int(minutes * 60 * 1000))

    @classmethod
    def hours(cls, hours: float) -> "TTL":
        """Create TTL from hours."""
        return cls(int(hours * 3600 * 1000))

    # Common TTL presets
    @classmethod
    def default(cls) -> "TTL":
        """Default query TTL (10 minutes)."""
        return cls.minutes(10)

    @classmethod
    def task_data(cls) -> "TTL":
        """Task list and task detail TTL (5 minutes)."""
        return cls.minutes(5)

    @classmethod
    def prefetch(cls) -> "TTL":
        """Background prefetch TTL (15 minutes)."""
        return cls.minutes(15)

    def __str__(self) -> str:
        return f"{self.milliseconds}ms"


class CacheOptions(BaseModel):
    """Per-call read-through configuration. Never persisted."""

    ttl_ms: Optional[int] = Field(
        default=None,
        gt=0,
        description="Freshness window in milliseconds (manager default if unset)",
    )
    force_refresh: bool = Field(
        default=False, description="Bypass the cache and always fetch"
    )
    critical_data: bool = Field(
        default=False, description="Serve stale data when the network is down"
    )

    @classmethod
    def with_ttl(cls, ttl: TTL, **kwargs: Any) -> "CacheOptions":
        """Create options from a TTL value object."""
        return cls(ttl_ms=ttl.milliseconds, **kwargs)
