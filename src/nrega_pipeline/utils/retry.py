"""
utils/retry.py — tenacity-based fixed-delay retry for async upstream calls.

data.gov.in answers HTTP 429 when a key exceeds its request quota. The sync
job does not fail the district on the first 429: it waits a fixed delay
and tries exactly once more. Interactive lookups never retry.

Usage:
    from nrega_pipeline.utils.retry import retry_once_after

    records = await retry_once_after(
        lambda: source.fetch_records(filters),
        delay=5.0,
        retry_on=UpstreamRateLimited,
    )
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

log = structlog.get_logger(__name__)

T = TypeVar("T")


def _log_before_sleep(delay: float) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        log.warning(
            "retry_after_delay",
            attempt=state.attempt_number,
            delay_s=delay,
            error=str(state.outcome.exception()) if state.outcome else None,
        )

    return before_sleep


async def retry_once_after(
    call: Callable[[], Awaitable[T]],
    *,
    delay: float,
    retry_on: type[Exception] | tuple[type[Exception], ...],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``call()``; if it raises *retry_on*, wait *delay* seconds and try
    exactly once more.

    Args:
        call:     Zero-argument coroutine factory (re-invoked on retry).
        delay:    Fixed wait in seconds before the second attempt.
        retry_on: Exception type(s) that trigger the retry.
        sleep:    Awaitable sleep, injectable for tests.

    Returns:
        Result of the first successful attempt.

    Raises:
        The second attempt's exception, or any non-matching exception.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(2),
        wait=wait_fixed(delay),
        retry=retry_if_exception_type(retry_on),
        sleep=sleep,
        before_sleep=_log_before_sleep(delay),
        reraise=True,
    ):
        with attempt:
            return await call()
    raise AssertionError("AsyncRetrying exited without a result")
