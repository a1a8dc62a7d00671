"""
Tests for the retry/backoff wrapper.

Sleeps are recorded instead of awaited, so timing assertions are exact
and the suite never waits.
"""

from __future__ import annotations

import asyncio

import pytest

from reflect.exceptions import (
    InvalidResponseError,
    ProviderHTTPError,
    RateLimitedError,
    RetryDeadlineExceeded,
    TransientHTTPError,
)
from reflect.llm.llm_config import RetryPolicy
from reflect.llm.retry import with_backoff


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class Flaky:
    """Raises the given errors in order, then returns `result`."""

    def __init__(self, *errors: BaseException, result: str = "ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


# ===========================================================================
# Test: backoff schedule
# ===========================================================================

class TestBackoffSchedule:
    """Delays double from the initial delay."""

    @pytest.mark.asyncio
    async def test_three_rate_limits_then_success(self):
        sleep = RecordingSleep()
        op = Flaky(RateLimitedError(), RateLimitedError(), RateLimitedError(), result="done")

        result = await with_backoff(
            op, policy=RetryPolicy(max_retries=3, initial_delay_ms=1000), sleep=sleep
        )

        assert result == "done"
        assert op.calls == 4
        assert sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_first_attempt_success_never_sleeps(self):
        sleep = RecordingSleep()
        op = Flaky()
        assert await with_backoff(op, sleep=sleep) == "ok"
        assert op.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_custom_initial_delay(self):
        sleep = RecordingSleep()
        op = Flaky(TransientHTTPError("503"), TransientHTTPError("503"))
        await with_backoff(
            op, policy=RetryPolicy(max_retries=5, initial_delay_ms=250), sleep=sleep
        )
        assert sleep.delays == [0.25, 0.5]

    @pytest.mark.asyncio
    async def test_jitter_adds_at_most_ten_percent(self):
        sleep = RecordingSleep()
        op = Flaky(RateLimitedError(), RateLimitedError())
        await with_backoff(
            op,
            policy=RetryPolicy(max_retries=3, initial_delay_ms=1000, jitter=True),
            sleep=sleep,
        )
        assert 1.0 <= sleep.delays[0] <= 1.1
        assert 2.0 <= sleep.delays[1] <= 2.2


# ===========================================================================
# Test: exhaustion and non-retryable errors
# ===========================================================================

class TestExhaustion:
    """When the budget is spent the last error propagates."""

    @pytest.mark.asyncio
    async def test_last_error_propagates(self):
        sleep = RecordingSleep()
        errors = [RateLimitedError(f"429 #{i}") for i in range(4)]
        op = Flaky(*errors)

        with pytest.raises(RateLimitedError, match="429 #3"):
            await with_backoff(op, policy=RetryPolicy(max_retries=3), sleep=sleep)

        assert op.calls == 4
        assert sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_non_429_status_is_retried_too(self):
        sleep = RecordingSleep()
        op = Flaky(ProviderHTTPError("API Error: 400", status_code=400))
        assert await with_backoff(op, sleep=sleep) == "ok"
        assert op.calls == 2

    @pytest.mark.asyncio
    async def test_zero_retries_means_one_attempt(self):
        sleep = RecordingSleep()
        op = Flaky(RateLimitedError())
        with pytest.raises(RateLimitedError):
            await with_backoff(op, policy=RetryPolicy(max_retries=0), sleep=sleep)
        assert op.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_invalid_response_not_retried(self):
        sleep = RecordingSleep()
        op = Flaky(InvalidResponseError("empty"))
        with pytest.raises(InvalidResponseError):
            await with_backoff(op, sleep=sleep)
        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_cancellation_not_retried(self):
        sleep = RecordingSleep()
        op = Flaky(asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            await with_backoff(op, sleep=sleep)
        assert op.calls == 1


# ===========================================================================
# Test: deadline
# ===========================================================================

class TestDeadline:
    """An optional total wait budget."""

    @pytest.mark.asyncio
    async def test_deadline_stops_before_overrunning(self):
        sleep = RecordingSleep()
        op = Flaky(*[RateLimitedError() for _ in range(4)])

        with pytest.raises(RetryDeadlineExceeded) as exc_info:
            await with_backoff(
                op,
                policy=RetryPolicy(max_retries=3, initial_delay_ms=1000, deadline_ms=2500),
                sleep=sleep,
                label="fast",
            )

        # 1000 fits, 1000 + 2000 does not
        assert sleep.delays == [1.0]
        assert op.calls == 2
        assert exc_info.value.waited_ms == 1000
        assert exc_info.value.deadline_ms == 2500
        assert exc_info.value.tier == "fast"
        assert isinstance(exc_info.value.__cause__, RateLimitedError)

    @pytest.mark.asyncio
    async def test_deadline_not_hit(self):
        sleep = RecordingSleep()
        op = Flaky(RateLimitedError())
        result = await with_backoff(
            op, policy=RetryPolicy(deadline_ms=5000), sleep=sleep
        )
        assert result == "ok"


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_retries == 3
        assert policy.initial_delay_ms == 1000
        assert policy.deadline_ms is None
        assert policy.jitter is False

    def test_worst_case_wait(self):
        assert RetryPolicy().worst_case_wait_ms == 7000

    def test_negative_values_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)
        with pytest.raises(ValueError):
            RetryPolicy(initial_delay_ms=-5)
