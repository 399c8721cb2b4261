from __future__ import annotations

import asyncio
import logging
from typing import AsyncContextManager, Callable, List, Protocol, Sequence

from .config import ScanSettings
from .models import Availability, Failed, Found, Resource, ScanOutcome, ScanResult
from .pacing import jitter_ms, sleep_ms, with_retries
from .page import InteractivePage

SessionFactory = Callable[[], AsyncContextManager[InteractivePage]]


class Scanner(Protocol):
    async def scan(self, page: InteractivePage, resource: Resource) -> Availability: ...


class ScanOrchestrator:
    """Runs one scan per resource under a bounded pool.

    A resource's failure is turned into a ``Failed`` outcome and never reaches
    its siblings. Results come back in input order.
    """

    def __init__(
        self,
        scanner: Scanner,
        session_factory: SessionFactory,
        settings: ScanSettings,
    ) -> None:
        self._scanner = scanner
        self._session_factory = session_factory
        self._settings = settings

    async def run_all(self, resources: Sequence[Resource]) -> List[ScanResult]:
        slots = asyncio.Semaphore(max(self._settings.max_concurrent_rooms, 1))
        logging.info(
            "Checking %d resources (max %d at once)",
            len(resources),
            self._settings.max_concurrent_rooms,
        )
        results = await asyncio.gather(
            *(self._run_one(resource, slots) for resource in resources)
        )
        _log_summary(results)
        return list(results)

    async def _run_one(self, resource: Resource, slots: asyncio.Semaphore) -> ScanResult:
        settings = self._settings
        async with slots:
            await sleep_ms(settings.stagger_start_ms + jitter_ms(settings.random_extra_delay_ms))
            outcome = await self._scan_isolated(resource)
            await sleep_ms(
                settings.min_delay_between_rooms_ms + jitter_ms(settings.random_extra_delay_ms)
            )
        return ScanResult(resource.name, outcome)

    async def _scan_isolated(self, resource: Resource) -> ScanOutcome:
        settings = self._settings
        try:
            async with self._session_factory() as page:

                async def scan() -> Availability:
                    return await self._scanner.scan(page, resource)

                availability = await with_retries(
                    scan,
                    max_attempts=settings.scan_attempts,
                    base_delay=settings.scan_retry_delay_ms / 1000,
                    jitter=settings.retry_jitter_ms / 1000,
                )
        except Exception as exc:
            logging.error("Fatal error checking %s: %s", resource.name, exc, exc_info=True)
            return Failed(reason=f"{type(exc).__name__}: {exc}")
        return Found(availability)


def _log_summary(results: Sequence[ScanResult]) -> None:
    with_slots = sum(1 for result in results if result.has_slots)
    failed = sum(1 for result in results if result.failed)
    logging.info(
        "Check complete: %d with open slots, %d with nothing open, %d failed",
        with_slots,
        len(results) - with_slots - failed,
        failed,
    )
