"""
Cache Domain Exceptions

Error taxonomy for read-through cache operations.
Errors are returned to callers inside ReadResult rather than raised;
store errors are raised by backends and degraded by the orchestrator.
"""

from typing import Optional, Any, Dict


class CacheException(Exception):
    """Base exception for cache-related errors.

    Carries a stable error code and structured details so callers can
    decide how to present the failure.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class NetworkUnavailableError(CacheException):
    """Raised when the network probe reports offline and no usable data exists."""

    def __init__(
        self,
        message: str = "Network connection unavailable",
        key: Optional[str] = None,
    ):
        details = {}
        if key:
            details["key"] = key

        super().__init__(
            message=message, error_code="CACHE_NETWORK_UNAVAILABLE", details=details
        )


class StaleDataServedError(CacheException):
    """Advisory: critical data is served past its TTL because the network is down.

    Non-fatal. The accompanying value is usable.
    """

    def __init__(
        self,
        key: str,
        age_ms: Optional[float] = None,
        message: str = "Using stale data due to network being unavailable",
    ):
        details: Dict[str, Any] = {"key": key}
        if age_ms is not None:
            details["age_ms"] = age_ms

        super().__init__(
            message=message, error_code="CACHE_STALE_DATA", details=details
        )


class FetchFailedError(CacheException):
    """Raised when the wrapped fetch operation exhausted its retries."""

    def __init__(
        self,
        attempts: int,
        cause: Optional[Any] = None,
        message: Optional[str] = None,
    ):
        details: Dict[str, Any] = {"attempts": attempts}
        if cause is not None:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        super().__init__(
            message=message or f"Failed to fetch data after {attempts} attempt(s)",
            error_code="CACHE_FETCH_FAILED",
            details=details,
        )
        self.cause = cause
        # Preserve exception context for debugging (exception chaining)
        if isinstance(cause, BaseException):
            self.__cause__ = cause


class StoreReadFailedError(CacheException):
    """Raised when an entry cannot be read or decoded from the store backend."""

    def __init__(self, key: str, original_error: Optional[Exception] = None):
        details = {"key": key}
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=f"Failed to read cache entry: {key}",
            error_code="CACHE_STORE_READ_FAILED",
            details=details,
        )
        if original_error:
            self.__cause__ = original_error


class StoreWriteFailedError(CacheException):
    """Raised when an entry cannot be encoded or written to the store backend."""

    def __init__(self, key: str, original_error: Optional[Exception] = None):
        details = {"key": key}
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=f"Failed to write cache entry: {key}",
            error_code="CACHE_STORE_WRITE_FAILED",
            details=details,
        )
        if original_error:
            self.__cause__ = original_error
