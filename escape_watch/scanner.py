from __future__ import annotations

import logging
import time
from collections import Counter
from datetime import date, timedelta
from typing import Callable, Iterator

from .config import ScanSettings
from .exceptions import CalendarReadError
from .models import Availability, Resource
from .pacing import Clock, RateLimiter, jitter_ms, sleep_ms, with_retries
from .page import InteractivePage, generate_user_agent
from .prober import DayProbe, DayProber


def day_window(start: date, days_ahead: int) -> Iterator[date]:
    for offset in range(days_ahead + 1):
        yield start + timedelta(days=offset)


class ResourceScanner:
    def __init__(
        self,
        limiter: RateLimiter,
        settings: ScanSettings,
        today: Callable[[], date] = date.today,
        clock: Clock = time.monotonic,
    ) -> None:
        self._limiter = limiter
        self._settings = settings
        self._today = today
        self._clock = clock

    async def scan(self, page: InteractivePage, resource: Resource) -> Availability:
        settings = self._settings

        await page.set_user_agent(generate_user_agent())

        async def navigate() -> None:
            await self._limiter.gate()
            await page.goto(resource.url, settings.navigation_timeout_ms)

        await with_retries(
            navigate,
            max_attempts=settings.navigation_attempts,
            base_delay=settings.navigation_retry_delay_ms / 1000,
            jitter=settings.retry_jitter_ms / 1000,
        )

        await sleep_ms(settings.settle_pause_ms + jitter_ms(settings.settle_jitter_ms))

        if not await page.wait_for_any(settings.calendar_selectors, settings.calendar_wait_timeout_ms):
            logging.info(
                "%s: no calendar within %dms, treating as nothing bookable",
                resource.name,
                settings.calendar_wait_timeout_ms,
            )
            return {}

        prober = DayProber(page, resource, self._limiter, settings, clock=self._clock)
        await prober.capture_baseline()

        availability: Availability = {}
        statuses: Counter = Counter()
        for day in day_window(self._today(), settings.days_ahead):
            result = await prober.probe(day)
            statuses[result.status] += 1
            if result.slots:
                availability[result.key] = result.slots

        # Any day that did not error shows the calendar was reachable.
        if statuses and statuses[DayProbe.ERROR] == sum(statuses.values()):
            raise CalendarReadError(
                f"{resource.name}: all {statuses[DayProbe.ERROR]} probed days failed"
            )

        logging.debug(
            "%s: probe summary %s",
            resource.name,
            {status.value: count for status, count in statuses.items()},
        )
        return availability
