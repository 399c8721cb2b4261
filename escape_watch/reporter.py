from __future__ import annotations

import html
import logging
from typing import List, Sequence

from .models import Found, ScanResult
from .notifiers import BaseNotifier

SLOT_SEPARATOR = ", "


def render_message(result: ScanResult) -> str | None:
    outcome = result.outcome
    if not isinstance(outcome, Found) or not outcome.availability:
        return None

    lines = [f"🏠 <b>{html.escape(result.name)}</b>", "", "Available slots:", ""]
    for key, slots in outcome.availability.items():
        lines.append(f"<b>{key}</b>: {SLOT_SEPARATOR.join(html.escape(slot) for slot in slots)}")
    return "\n".join(lines)


class Reporter:
    def __init__(self, notifiers: Sequence[BaseNotifier]) -> None:
        self._notifiers = list(notifiers)

    async def report(self, results: Sequence[ScanResult]) -> List[str]:
        notified: List[str] = []
        for result in results:
            message = render_message(result)
            if message is None:
                if result.failed:
                    logging.warning("Check failed for %s, skipping message", result.name)
                else:
                    logging.info("No availability found for %s, skipping message", result.name)
                continue

            if not self._notifiers:
                logging.warning("No notifier configured; message for %s:\n%s", result.name, message)
                continue

            if await self._send(result.name, message):
                notified.append(result.name)
        return notified

    async def _send(self, name: str, message: str) -> bool:
        delivered = False
        for notifier in self._notifiers:
            try:
                sent = await notifier.send(message)
            except Exception:
                logging.exception("Failed to send notification for %s via %s", name, notifier.name)
                continue
            if sent:
                delivered = True
            else:
                logging.warning("Notifier %s did not deliver message for %s", notifier.name, name)
        return delivered
