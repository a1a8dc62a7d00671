"""
Retry/Backoff Wrapper — bounded exponential retry around one HTTP call.

Every failure of the wrapped operation is retried while the budget
lasts: HTTP 429 is the common case, but transport errors, timeouts and
non-success statuses are retried the same way. The delay doubles after
each attempt (1s → 2s → 4s with the defaults). When the budget is spent
the last failure propagates unchanged.

Usage:
    from reflect.llm.retry import with_backoff

    response = await with_backoff(
        lambda: client.post(url, json=payload),
        policy=RetryPolicy(max_retries=3, initial_delay_ms=1000),
    )
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from reflect.exceptions import (
    InvalidResponseError,
    RateLimitedError,
    RetryDeadlineExceeded,
)
from reflect.llm.llm_config import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


async def with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: Optional[RetryPolicy] = None,
    sleep: Sleeper = asyncio.sleep,
    label: str = "",
) -> T:
    """
    Run `operation`, retrying failures with exponential backoff.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        policy: Retry budget and initial delay (defaults: 3 retries, 1000ms).
        sleep: Awaitable sleep taking seconds. Injected by tests to record
               the delays without waiting.
        label: Short name used in log records (e.g. the tier).

    Returns:
        Whatever the first successful attempt returns.

    Raises:
        The final attempt's exception once retries are exhausted, or
        RetryDeadlineExceeded when the next wait would overrun the deadline.
    """
    policy = policy or RetryPolicy()
    retries = policy.max_retries
    delay_ms = policy.initial_delay_ms
    waited_ms = 0
    attempt = 0

    while True:
        attempt += 1
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except InvalidResponseError:
            # A well-formed answer with no text will not improve on retry
            raise
        except Exception as e:
            if retries <= 0:
                logger.warning(
                    "llm_retries_exhausted",
                    extra={
                        "tier": label,
                        "attempts": attempt,
                        "error": str(e)[:200],
                    },
                )
                raise

            wait_ms = delay_ms
            if policy.jitter:
                wait_ms += int(random.uniform(0, delay_ms * 0.1))

            if (
                policy.deadline_ms is not None
                and waited_ms + wait_ms > policy.deadline_ms
            ):
                raise RetryDeadlineExceeded(
                    f"Retry deadline of {policy.deadline_ms}ms reached "
                    f"after {attempt} attempts: {e}",
                    waited_ms=waited_ms,
                    deadline_ms=policy.deadline_ms,
                    tier=label or None,
                ) from e

            logger.info(
                "llm_retry_scheduled",
                extra={
                    "tier": label,
                    "attempt": attempt,
                    "delay_ms": wait_ms,
                    "rate_limited": isinstance(e, RateLimitedError),
                    "retries_left": retries - 1,
                },
            )
            await sleep(wait_ms / 1000)
            waited_ms += wait_ms
            retries -= 1
            delay_ms *= 2
