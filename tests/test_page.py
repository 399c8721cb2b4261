from __future__ import annotations

import pytest

from escape_watch.page import ListItem, PlaywrightPage


class RecordingCDPSession:
    def __init__(self) -> None:
        self.sent = []

    async def send(self, method, params=None):
        self.sent.append((method, params))
        return {}


class StubContext:
    def __init__(self) -> None:
        self.sessions = []

    async def new_cdp_session(self, page):
        session = RecordingCDPSession()
        self.sessions.append((page, session))
        return session


class StubPage:
    """Just enough of a Playwright page to drive the adapter."""

    def __init__(self, raw_items=None) -> None:
        self.context = StubContext()
        self.raw_items = raw_items or []
        self.evaluated = []

    async def eval_on_selector_all(self, selector, script):
        self.evaluated.append(selector)
        return self.raw_items


@pytest.mark.asyncio
async def test_user_agent_is_overridden_for_the_whole_page():
    stub = StubPage()
    page = PlaywrightPage(stub)

    await page.set_user_agent("Mozilla/5.0 test")
    await page.set_user_agent("Mozilla/5.0 other")

    [(target, session)] = stub.context.sessions
    assert target is stub
    assert session.sent == [
        ("Network.setUserAgentOverride", {"userAgent": "Mozilla/5.0 test"}),
        ("Network.setUserAgentOverride", {"userAgent": "Mozilla/5.0 other"}),
    ]


@pytest.mark.asyncio
async def test_list_items_queries_every_container_of_a_selector_list():
    stub = StubPage(
        [
            {"text": "10:00", "classes": ["list-group-item"], "ariaDisabled": False},
            {"text": "11:00", "classes": [], "ariaDisabled": True},
        ]
    )

    items = await PlaywrightPage(stub).list_items(".time-selection, #slots")

    assert stub.evaluated == [".time-selection, #slots"]
    assert items == [
        ListItem("10:00", frozenset({"list-group-item"})),
        ListItem("11:00", frozenset(), aria_disabled=True),
    ]
