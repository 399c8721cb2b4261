from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

T = TypeVar("T")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]

_retry_logger = logging.getLogger("escape_watch.retry")


def jitter_ms(max_ms: float) -> int:
    return random.randrange(max(1, int(max_ms)))


async def sleep_ms(ms: float) -> None:
    await asyncio.sleep(max(ms, 0) / 1000)


class RateLimiter:
    """Process-wide minimum spacing between server-visible actions.

    Every caller, whatever resource it works on, contends for the same
    budget. ``gate()`` holds the lock across the wait so the release stamp is
    always computed against the latest release.
    """

    def __init__(
        self,
        min_interval_ms: float,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._min_interval = max(min_interval_ms, 0) / 1000
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_released: float | None = None

    @property
    def min_interval(self) -> float:
        return self._min_interval

    async def gate(self) -> float:
        if self._min_interval <= 0:
            return self._clock()

        async with self._lock:
            if self._last_released is not None:
                wait = self._last_released + self._min_interval - self._clock()
                if wait > 0:
                    logging.debug("Rate limit: waiting %.2fs", wait)
                    await self._sleep(wait)
            self._last_released = self._clock()
            return self._last_released


def _log_retry(max_attempts: int) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        _retry_logger.warning(
            "Retry %d/%d after %.2fs: %s",
            retry_state.attempt_number,
            max_attempts,
            wait,
            exc,
        )

    return before_sleep


async def with_retries(
    op: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    jitter: float = 0.5,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run ``op`` with exponential backoff; the last failure is re-raised as is.

    The wait before retry ``n`` is ``base_delay * 2 ** (n - 1)`` plus up to
    ``jitter`` seconds.
    """
    max_attempts = max(max_attempts, 1)
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, exp_base=2)
        + wait_random(0, max(jitter, 0)),
        reraise=True,
        before_sleep=_log_retry(max_attempts),
        sleep=sleep,
    )

    # AsyncRetrying only awaits coroutine functions; plain callables returning
    # an awaitable must be wrapped.
    async def attempt() -> T:
        return await op()

    return await retrying(attempt)
