from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import FrozenSet, List, Protocol, Sequence

from playwright.async_api import (
    Browser,
    CDPSession,
    ElementHandle,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:123.0) Gecko/20100101 Firefox/123.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_3) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.3 Safari/605.1.15",
)


def generate_user_agent() -> str:
    return random.choice(USER_AGENTS)


@dataclass(frozen=True, slots=True)
class ListItem:
    text: str
    classes: FrozenSet[str] = frozenset()
    aria_disabled: bool = False


class PageElement(Protocol):
    async def class_names(self) -> FrozenSet[str]: ...

    async def get_attribute(self, name: str) -> str | None: ...

    async def scroll_into_view(self) -> None: ...

    async def click(self) -> None: ...


class InteractivePage(Protocol):
    """What the scanning engine needs from a rendered, clickable page."""

    async def set_user_agent(self, user_agent: str) -> None: ...

    async def goto(self, url: str, timeout_ms: int) -> None: ...

    async def wait_for_any(self, selectors: Sequence[str], timeout_ms: int) -> bool: ...

    async def query(self, selector: str) -> PageElement | None: ...

    async def inner_html(self, selector: str) -> str: ...

    async def await_content_change(self, selector: str, baseline: str, timeout_ms: int) -> bool: ...

    async def list_items(self, selector: str) -> List[ListItem]: ...


_CONTENT_CHANGED_JS = """
([selector, baseline]) => {
  const el = document.querySelector(selector);
  return !!el && el.innerHTML !== baseline;
}
"""

_LIST_ITEMS_JS = """
(containers) => {
  const items = [];
  for (const container of containers) {
    for (const li of container.querySelectorAll('li')) {
      if (!items.includes(li)) items.push(li);
    }
  }
  return items.map((li) => ({
    text: (li.textContent || '').trim(),
    classes: Array.from(li.classList),
    ariaDisabled: li.getAttribute('aria-disabled') === 'true',
  }));
}
"""


class PlaywrightElement:
    def __init__(self, handle: ElementHandle) -> None:
        self._handle = handle

    async def class_names(self) -> FrozenSet[str]:
        classes = await self._handle.evaluate("(el) => Array.from(el.classList)")
        return frozenset(classes or [])

    async def get_attribute(self, name: str) -> str | None:
        return await self._handle.get_attribute(name)

    async def scroll_into_view(self) -> None:
        await self._handle.evaluate(
            "(el) => el.scrollIntoView({behavior: 'smooth', block: 'center', inline: 'center'})"
        )

    async def click(self) -> None:
        await self._handle.click()


class PlaywrightPage:
    def __init__(self, page: Page) -> None:
        self._page = page
        self._cdp: CDPSession | None = None

    async def set_user_agent(self, user_agent: str) -> None:
        # Overrides both the request header and navigator.userAgent. The
        # override lives as long as the CDP session, so keep a reference.
        if self._cdp is None:
            self._cdp = await self._page.context.new_cdp_session(self._page)
        await self._cdp.send("Network.setUserAgentOverride", {"userAgent": user_agent})

    async def goto(self, url: str, timeout_ms: int) -> None:
        await self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)

    async def wait_for_any(self, selectors: Sequence[str], timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_selector(", ".join(selectors), timeout=timeout_ms)
        except PlaywrightTimeoutError:
            return False
        return True

    async def query(self, selector: str) -> PlaywrightElement | None:
        handle = await self._page.query_selector(selector)
        return PlaywrightElement(handle) if handle else None

    async def inner_html(self, selector: str) -> str:
        handle = await self._page.query_selector(selector)
        if not handle:
            return ""
        return await handle.inner_html()

    async def await_content_change(self, selector: str, baseline: str, timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_function(
                _CONTENT_CHANGED_JS, arg=[selector, baseline], timeout=timeout_ms
            )
        except PlaywrightTimeoutError:
            return False
        return True

    async def list_items(self, selector: str) -> List[ListItem]:
        raw_items = await self._page.eval_on_selector_all(selector, _LIST_ITEMS_JS)
        return [
            ListItem(
                text=item.get("text") or "",
                classes=frozenset(item.get("classes") or []),
                aria_disabled=bool(item.get("ariaDisabled")),
            )
            for item in raw_items or []
        ]


class PlaywrightSession:
    """One isolated browser per resource, torn down on exit."""

    def __init__(self, headless: bool = True) -> None:
        self._headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def __aenter__(self) -> PlaywrightPage:
        playwright = await async_playwright().start()
        self._playwright = playwright
        try:
            self._browser = await playwright.chromium.launch(
                headless=self._headless,
                args=[
                    "--no-sandbox",
                    "--disable-setuid-sandbox",
                    "--disable-blink-features=AutomationControlled",
                ],
            )
            page = await self._browser.new_page()
        except BaseException:
            # __aexit__ is not called when __aenter__ raises.
            await self.__aexit__(None, None, None)
            raise
        return PlaywrightPage(page)

    async def __aexit__(self, exc_type, exc, tb) -> None:
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None
        if browser:
            try:
                await browser.close()
            except Exception:
                logging.debug("Browser close failed", exc_info=True)
        if playwright:
            await playwright.stop()
