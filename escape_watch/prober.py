from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Tuple

from .config import ScanSettings
from .models import Resource, date_key, day_selector, slot_label
from .pacing import Clock, RateLimiter, jitter_ms, sleep_ms, with_retries
from .page import InteractivePage, ListItem

DISABLED_DAY_CLASSES = frozenset({"disabled", "unavailable"})
UNAVAILABLE_SLOT_CLASSES = frozenset({"disabled", "unavailable", "list-group-item-danger"})
NOT_AVAILABLE_MARKER = "not available"


class DayProbe(enum.Enum):
    FOUND = "found"
    EMPTY = "empty"
    NOT_FOUND = "not_found"
    DISABLED = "disabled"
    CLICK_FAILED = "click_failed"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class DayResult:
    day: date
    status: DayProbe
    slots: Tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return date_key(self.day)


def extract_slots(items: Iterable[ListItem]) -> Tuple[str, ...]:
    slots = []
    for item in items:
        text = item.text.strip()
        if not text or NOT_AVAILABLE_MARKER in text.lower():
            continue
        if item.aria_disabled or item.classes & UNAVAILABLE_SLOT_CLASSES:
            continue
        slots.append(slot_label(text))
    return tuple(slots)


class DayProber:
    """Selects calendar days on one open page and reads the slot list.

    The page gives no signal when the slot list has been refreshed after a
    click, so each probe diffs the list container's HTML against the content
    seen after the previous probe, bounded by ``time_list_wait_ms``. A probe
    that times out still reads whatever the list shows.
    """

    def __init__(
        self,
        page: InteractivePage,
        resource: Resource,
        limiter: RateLimiter,
        settings: ScanSettings,
        clock: Clock = time.monotonic,
    ) -> None:
        self._page = page
        self._resource = resource
        self._limiter = limiter
        self._settings = settings
        self._clock = clock
        self._baseline = ""

    @property
    def baseline(self) -> str:
        return self._baseline

    async def capture_baseline(self) -> str:
        self._baseline = await self._page.inner_html(self._settings.time_list_selector)
        return self._baseline

    async def probe(self, day: date) -> DayResult:
        started = self._clock()
        try:
            return await self._probe(day)
        except Exception as exc:
            logging.warning(
                "%s - %s: probe failed, skipping day: %s", self._resource.name, date_key(day), exc
            )
            logging.debug("Probe failure details", exc_info=True)
            return DayResult(day, DayProbe.ERROR)
        finally:
            await self._pace(started)

    async def _probe(self, day: date) -> DayResult:
        settings = self._settings
        element = await self._page.query(day_selector(day))
        if element is None:
            logging.debug("%s - %s: day not on calendar", self._resource.name, date_key(day))
            return DayResult(day, DayProbe.NOT_FOUND)

        classes = await element.class_names()
        aria_disabled = await element.get_attribute("aria-disabled")
        if classes & DISABLED_DAY_CLASSES or aria_disabled == "true":
            logging.debug("%s - %s: day disabled", self._resource.name, date_key(day))
            return DayResult(day, DayProbe.DISABLED)

        await element.scroll_into_view()
        await sleep_ms(settings.click_pause_ms + jitter_ms(settings.click_jitter_ms))

        try:
            await self._limiter.gate()
            await with_retries(
                element.click,
                max_attempts=settings.click_attempts,
                base_delay=settings.click_retry_delay_ms / 1000,
                jitter=settings.retry_jitter_ms / 1000,
            )
        except Exception as exc:
            logging.warning(
                "Click failed for %s on %s: %s", date_key(day), self._resource.name, exc
            )
            return DayResult(day, DayProbe.CLICK_FAILED)

        changed = await self._page.await_content_change(
            settings.time_list_selector, self._baseline, settings.time_list_wait_ms
        )
        if not changed:
            logging.debug(
                "%s - %s: slot list unchanged after %dms, reading current content",
                self._resource.name,
                date_key(day),
                settings.time_list_wait_ms,
            )
        self._baseline = await self._page.inner_html(settings.time_list_selector)

        slots = extract_slots(await self._page.list_items(settings.time_list_selector))
        if not slots:
            return DayResult(day, DayProbe.EMPTY)
        logging.info("%s - %s: slots -> %s", self._resource.name, date_key(day), ", ".join(slots))
        return DayResult(day, DayProbe.FOUND, slots)

    async def _pace(self, started: float) -> None:
        settings = self._settings
        elapsed_ms = (self._clock() - started) * 1000
        target_ms = settings.day_check_base_ms + jitter_ms(settings.day_check_jitter_ms)
        await sleep_ms(max(settings.day_check_min_ms, target_ms - elapsed_ms))
