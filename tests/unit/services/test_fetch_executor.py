"""
Unit tests for the Fetch Executor.

Backoff delays are observed through an injected sleep function, so the
tests never wait in real time.
"""

import pytest

from querycache.domain.cache.entities import FetchOutcome
from querycache.domain.cache.exceptions import FetchFailedError
from querycache.services.cache.fetch_executor import FetchExecutor


class TestFetchExecutor:
    """Test FetchExecutor retry behavior."""

    @pytest.fixture
    def executor(self, recorded_sleep):
        return FetchExecutor(max_attempts=3, base_delay_ms=1000, sleep=recorded_sleep)

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, executor, recorded_sleep, make_fetch):
        fetch = make_fetch({"id": 1})

        outcome = await executor.execute(fetch)

        assert outcome.ok
        assert outcome.value == {"id": 1}
        assert fetch.calls == 1
        assert recorded_sleep.delays == []

    @pytest.mark.asyncio
    async def test_retries_raised_errors_with_backoff(
        self, executor, recorded_sleep, make_fetch
    ):
        """Test delays double after each failed attempt."""
        fetch = make_fetch(ConnectionError("reset"), TimeoutError("slow"), [1, 2])

        outcome = await executor.execute(fetch)

        assert outcome.value == [1, 2]
        assert fetch.calls == 3
        assert recorded_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhaustion_returns_fetch_failed(
        self, executor, recorded_sleep, make_fetch
    ):
        last_error = ConnectionError("still down")
        fetch = make_fetch(ConnectionError("down"), ConnectionError("down"), last_error)

        outcome = await executor.execute(fetch)

        assert not outcome.ok
        assert isinstance(outcome.error, FetchFailedError)
        assert outcome.error.details["attempts"] == 3
        assert outcome.error.__cause__ is last_error
        assert fetch.calls == 3
        assert recorded_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_returned_errors_are_retried(self, executor, recorded_sleep, make_fetch):
        """Test a FetchOutcome carrying an error counts as a failed attempt."""
        fetch = make_fetch(FetchOutcome.failure("HTTP 503"), FetchOutcome.success("ok"))

        outcome = await executor.execute(fetch)

        assert outcome.value == "ok"
        assert fetch.calls == 2
        assert recorded_sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_returned_error_exhaustion_keeps_cause(self, executor, make_fetch):
        fetch = make_fetch(FetchOutcome.failure("HTTP 503"))

        outcome = await executor.execute(fetch)

        assert isinstance(outcome.error, FetchFailedError)
        assert outcome.error.cause == "HTTP 503"
        assert fetch.calls == 3

    @pytest.mark.asyncio
    async def test_null_result_is_success(self, executor, make_fetch):
        fetch = make_fetch(None)

        outcome = await executor.execute(fetch)

        assert outcome.ok
        assert outcome.value is None
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_custom_base_delay(self, recorded_sleep, make_fetch):
        executor = FetchExecutor(max_attempts=4, base_delay_ms=250, sleep=recorded_sleep)
        fetch = make_fetch(RuntimeError("boom"))

        await executor.execute(fetch)

        assert fetch.calls == 4
        assert recorded_sleep.delays == [0.25, 0.5, 1.0]

    @pytest.mark.asyncio
    async def test_single_attempt_never_sleeps(self, recorded_sleep, make_fetch):
        executor = FetchExecutor(max_attempts=1, sleep=recorded_sleep)

        outcome = await executor.execute(make_fetch(RuntimeError("boom")))

        assert isinstance(outcome.error, FetchFailedError)
        assert recorded_sleep.delays == []

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            FetchExecutor(max_attempts=0)
        with pytest.raises(ValueError):
            FetchExecutor(base_delay_ms=-1)
