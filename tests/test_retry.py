"""Tests for the retry primitive."""

from typing import List

import pytest

from review_relay.retry import backoff_delay, retry_with_backoff


class Flaky:
    """Operation that fails a set number of times before succeeding."""

    def __init__(self, failures: int, error: Exception = None):
        self.failures = failures
        self.error = error or ConnectionError("temporary")
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "done"


class TestBackoffDelay:
    """Test the delay schedule."""

    def test_doubles_then_caps(self):
        assert [backoff_delay(attempt) for attempt in range(1, 6)] == [2.0, 4.0, 8.0, 10.0, 10.0]

    def test_custom_base_and_cap(self):
        assert backoff_delay(3, base_delay=0.5, max_delay=3.0) == 3.0
        assert backoff_delay(1, base_delay=0.5, max_delay=3.0) == 1.0


class TestRetryWithBackoff:
    """Test retry_with_backoff."""

    @pytest.mark.asyncio
    async def test_success_after_failures(self, sleep_recorder):
        operation = Flaky(failures=2)
        result = await retry_with_backoff(operation, max_attempts=3, sleep=sleep_recorder)

        assert result == "done"
        assert operation.calls == 3
        assert sleep_recorder.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_no_wait_after_last_attempt(self, sleep_recorder):
        operation = Flaky(failures=10)
        with pytest.raises(ConnectionError):
            await retry_with_backoff(operation, max_attempts=3, sleep=sleep_recorder)

        assert operation.calls == 3
        assert sleep_recorder.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_immediately(self, sleep_recorder):
        operation = Flaky(failures=10, error=TypeError("bug"))
        with pytest.raises(TypeError):
            await retry_with_backoff(
                operation,
                max_attempts=5,
                is_retryable=lambda exc: isinstance(exc, ConnectionError),
                sleep=sleep_recorder,
            )

        assert operation.calls == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_on_failure_sees_each_attempt(self, sleep_recorder):
        seen: List[int] = []
        await retry_with_backoff(
            Flaky(failures=2),
            max_attempts=4,
            on_failure=lambda attempt, exc: seen.append(attempt),
            sleep=sleep_recorder,
        )
        assert seen == [1, 2]

    @pytest.mark.asyncio
    async def test_at_least_one_attempt(self, sleep_recorder):
        operation = Flaky(failures=0)
        assert await retry_with_backoff(operation, max_attempts=0, sleep=sleep_recorder) == "done"
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_custom_backoff(self, sleep_recorder):
        await retry_with_backoff(
            Flaky(failures=2),
            max_attempts=3,
            backoff=lambda attempt: attempt * 0.1,
            sleep=sleep_recorder,
        )
        assert sleep_recorder.delays == [0.1, 0.2]
