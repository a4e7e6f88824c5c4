"""
Query Cache Configuration

Configuration management with environment variable support.
Implements defaults and validation for every cache setting.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Optional
from functools import lru_cache
from dotenv import load_dotenv

from ..constants import (
    CACHE_PREFIX,
    DEFAULT_CACHE_TTL_MS,
    EVICTION_FRACTION,
    EVICTION_PROBABILITY,
    FETCH_BASE_DELAY_MS,
    FETCH_MAX_ATTEMPTS,
    MAX_CACHE_ENTRIES,
    NETWORK_PROBE_TIMEOUT_MS,
    SLOW_QUERY_THRESHOLD_MS,
)

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Cache settings with validation and safe defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Environment settings
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )

    # Backend selection
    CACHE_BACKEND: str = Field(
        default="memory", description="Entry store backend: memory or redis"
    )
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the durable backend",
    )
    CACHE_KEY_PREFIX: str = Field(
        default=CACHE_PREFIX,
        min_length=1,
        description="Namespace prefix for durably stored entries",
    )

    # Freshness and size bound
    CACHE_DEFAULT_TTL_MS: int = Field(
        default=DEFAULT_CACHE_TTL_MS,
        ge=1,
        description="Default time to live for cached entries in milliseconds",
    )
    CACHE_MAX_ENTRIES: int = Field(
        default=MAX_CACHE_ENTRIES, ge=1, description="Maximum number of cached entries"
    )
    CACHE_EVICTION_PROBABILITY: float = Field(
        default=EVICTION_PROBABILITY,
        ge=0.0,
        le=1.0,
        description="Probability that a read triggers an eviction sweep",
    )
    CACHE_EVICTION_FRACTION: float = Field(
        default=EVICTION_FRACTION,
        gt=0.0,
        le=1.0,
        description="Share of entries removed by one eviction sweep",
    )

    # Fetch retries
    FETCH_MAX_ATTEMPTS: int = Field(
        default=FETCH_MAX_ATTEMPTS, ge=1, le=10, description="Maximum fetch attempts"
    )
    FETCH_BASE_DELAY_MS: int = Field(
        default=FETCH_BASE_DELAY_MS,
        ge=0,
        le=60000,
        description="Base backoff delay between fetch attempts in milliseconds",
    )

    # Connectivity
    NETWORK_PROBE_TIMEOUT_MS: int = Field(
        default=NETWORK_PROBE_TIMEOUT_MS,
        ge=1,
        le=60000,
        description="Upper bound for a connectivity probe in milliseconds",
    )
    NETWORK_CHECK_URL: Optional[str] = Field(
        default=None, description="URL probed with HEAD to detect connectivity"
    )
    NETWORK_CHECK_TIMEOUT_MS: int = Field(
        default=2500,
        ge=1,
        le=60000,
        description="HTTP timeout for the connectivity request in milliseconds",
    )

    # Diagnostics
    SLOW_QUERY_THRESHOLD_MS: int = Field(
        default=SLOW_QUERY_THRESHOLD_MS,
        ge=1,
        description="Read-through calls slower than this are logged",
    )
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        allowed = ["development", "test", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v

    @field_validator("CACHE_BACKEND")
    @classmethod
    def validate_cache_backend(cls, v):
        """Validate entry store backend."""
        allowed = ["memory", "redis"]
        if v.lower() not in allowed:
            raise ValueError(f"CACHE_BACKEND must be one of: {allowed}")
        return v.lower()

    @field_validator("REDIS_URL")
    @classmethod
    def validate_redis_url(cls, v):
        """Validate Redis URL format."""
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("REDIS_URL must be a redis://, rediss:// or unix:// URL")
        return v

    @field_validator("NETWORK_CHECK_URL")
    @classmethod
    def validate_network_check_url(cls, v):
        """Validate connectivity check URL."""
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError("NETWORK_CHECK_URL must be an http(s) URL")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def fetch_base_delay_seconds(self) -> float:
        """FETCH_BASE_DELAY_MS expressed in seconds."""
        return self.FETCH_BASE_DELAY_MS / 1000

    @property
    def network_probe_timeout_seconds(self) -> float:
        """NETWORK_PROBE_TIMEOUT_MS expressed in seconds."""
        return self.NETWORK_PROBE_TIMEOUT_MS / 1000

    @property
    def network_check_timeout_seconds(self) -> float:
        """NETWORK_CHECK_TIMEOUT_MS expressed in seconds."""
        return self.NETWORK_CHECK_TIMEOUT_MS / 1000


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
