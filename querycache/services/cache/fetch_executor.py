"""
Fetch Executor

Wraps an arbitrary async fetch operation with bounded retry and
exponential backoff. Retry state lives in each call, so one key's
backoff never delays another key's fetch.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from ...constants import FETCH_BASE_DELAY_MS, FETCH_MAX_ATTEMPTS
from ...domain.cache.entities import FetchOutcome
from ...domain.cache.exceptions import FetchFailedError

FetchFn = Callable[[], Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[None]]

logger = structlog.get_logger(__name__)


def _outcome_failed(outcome: FetchOutcome[Any]) -> bool:
    return not outcome.ok


class FetchExecutor:
    """
    Retry wrapper for fetch operations.

    An attempt fails when the fetch function raises or returns a
    FetchOutcome carrying an error. After a failed attempt ``n`` the
    executor sleeps ``base_delay * 2 ** (n - 1)`` before trying again.
    """

    def __init__(
        self,
        max_attempts: int = FETCH_MAX_ATTEMPTS,
        base_delay_ms: float = FETCH_BASE_DELAY_MS,
        sleep: Optional[SleepFn] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if base_delay_ms < 0:
            raise ValueError("base_delay_ms cannot be negative")

        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self._sleep = sleep or asyncio.sleep

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay_ms / 1000, min=0),
            retry=(
                retry_if_exception_type(Exception)
                | retry_if_result(_outcome_failed)
            ),
            before_sleep=self._log_retry,
            retry_error_callback=self._exhausted,
            sleep=self._sleep,
        )

    async def execute(self, fetch_fn: FetchFn) -> FetchOutcome[Any]:
        """
        Run fetch_fn until it succeeds or attempts run out.

        Args:
            fetch_fn: Zero-argument coroutine function returning a value
                or a FetchOutcome

        Returns:
            The successful outcome, or a failed outcome whose error is a
            FetchFailedError chaining the last failure
        """
        return await self._retrying()(self._attempt, fetch_fn)

    @staticmethod
    async def _attempt(fetch_fn: FetchFn) -> FetchOutcome[Any]:
        return FetchOutcome.coerce(await fetch_fn())

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            error: Any = outcome.exception()
        else:
            error = outcome.result().error if outcome is not None else None

        logger.warning(
            "Fetch attempt failed, retrying",
            attempt=retry_state.attempt_number,
            wait_time=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(error),
        )

    @staticmethod
    def _exhausted(retry_state: RetryCallState) -> FetchOutcome[Any]:
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            cause: Any = outcome.exception()
        else:
            cause = outcome.result().error if outcome is not None else None

        logger.error(
            "Fetch failed after retries",
            attempts=retry_state.attempt_number,
            error=str(cause),
        )
        return FetchOutcome.failure(FetchFailedError(retry_state.attempt_number, cause))
