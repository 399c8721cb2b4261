from __future__ import annotations

from datetime import date

import pytest

from escape_watch.exceptions import CalendarReadError
from escape_watch.models import Resource
from escape_watch.pacing import RateLimiter
from escape_watch.page import USER_AGENTS
from escape_watch.scanner import ResourceScanner, day_window

from tests.fakes import FakeDay, FakePage, fast_settings, slot_items

TODAY = date(2026, 3, 30)
ROOM = Resource(name="Haunted Library", url="https://bookings.example.com/library")


class CountingLimiter(RateLimiter):
    def __init__(self) -> None:
        super().__init__(0)
        self.gates = 0

    async def gate(self) -> float:
        self.gates += 1
        return await super().gate()


def make_scanner(limiter=None, **overrides):
    return ResourceScanner(limiter or RateLimiter(0), fast_settings(**overrides), today=lambda: TODAY)


def test_day_window_includes_today_and_crosses_months():
    assert list(day_window(TODAY, 2)) == [date(2026, 3, 30), date(2026, 3, 31), date(2026, 4, 1)]
    assert list(day_window(TODAY, 0)) == [TODAY]


@pytest.mark.asyncio
async def test_disabled_and_empty_days_are_left_out():
    page = FakePage(
        {
            date(2026, 3, 30): FakeDay(slot_items("09:00"), classes=frozenset({"dateCell", "disabled"})),
            date(2026, 3, 31): FakeDay(slot_items("10:00", "14:30")),
            date(2026, 4, 1): FakeDay([]),
        }
    )

    availability = await make_scanner(days_ahead=2).scan(page, ROOM)

    assert availability == {"31/03/2026": ("10:00", "14:30")}


@pytest.mark.asyncio
async def test_days_are_probed_in_ascending_order():
    days = [date(2026, 3, 30), date(2026, 3, 31), date(2026, 4, 1), date(2026, 4, 2)]
    page = FakePage({day: FakeDay(slot_items(f"1{index}:00")) for index, day in enumerate(reversed(days))})

    availability = await make_scanner(days_ahead=3).scan(page, ROOM)

    assert page.clicks == days
    assert list(availability) == ["30/03/2026", "31/03/2026", "01/04/2026", "02/04/2026"]


@pytest.mark.asyncio
async def test_missing_calendar_returns_empty_availability():
    page = FakePage({date(2026, 3, 31): FakeDay(slot_items("10:00"))}, calendar_present=False)

    availability = await make_scanner().scan(page, ROOM)

    assert availability == {}
    assert page.clicks == []


@pytest.mark.asyncio
async def test_navigation_recovers_after_two_failures():
    page = FakePage({date(2026, 3, 31): FakeDay(slot_items("10:00"))}, goto_failures=2)

    availability = await make_scanner(navigation_attempts=3).scan(page, ROOM)

    assert page.goto_calls == [ROOM.url] * 3
    assert availability == {"31/03/2026": ("10:00",)}


@pytest.mark.asyncio
async def test_navigation_failure_after_all_attempts_propagates():
    page = FakePage(goto_failures=5)

    with pytest.raises(RuntimeError, match="ERR_TIMED_OUT"):
        await make_scanner(navigation_attempts=3).scan(page, ROOM)

    assert len(page.goto_calls) == 3


@pytest.mark.asyncio
async def test_client_identity_is_set_before_navigation():
    page = FakePage()

    await make_scanner().scan(page, ROOM)

    assert len(page.user_agents) == 1
    assert page.user_agents[0] in USER_AGENTS


@pytest.mark.asyncio
async def test_navigation_and_each_click_pass_the_gate():
    page = FakePage(
        {
            date(2026, 3, 30): FakeDay(slot_items("09:00")),
            date(2026, 3, 31): FakeDay(slot_items("10:00"), classes=frozenset({"dateCell", "disabled"})),
            date(2026, 4, 1): FakeDay(slot_items("11:00")),
        },
        goto_failures=1,
    )
    limiter = CountingLimiter()

    await make_scanner(limiter=limiter, days_ahead=2).scan(page, ROOM)

    # two navigation attempts plus two clickable days
    assert limiter.gates == 4


@pytest.mark.asyncio
async def test_single_bad_day_does_not_fail_scan():
    page = FakePage(
        {
            date(2026, 3, 30): FakeDay(slot_items("09:00"), click_failures=10),
            date(2026, 3, 31): FakeDay(slot_items("10:00")),
        }
    )

    availability = await make_scanner(days_ahead=1).scan(page, ROOM)

    assert availability == {"31/03/2026": ("10:00",)}


@pytest.mark.asyncio
async def test_disabled_day_counts_as_a_calendar_read():
    page = FakePage(
        {
            date(2026, 3, 30): FakeDay(slot_items("09:00"), classes=frozenset({"dateCell", "disabled"})),
            date(2026, 3, 31): FakeDay(slot_items("10:00")),
        },
        list_error=RuntimeError("Execution context was destroyed"),
    )

    availability = await make_scanner(days_ahead=1).scan(page, ROOM)

    assert availability == {}


@pytest.mark.asyncio
async def test_unreadable_calendar_raises():
    page = FakePage(
        {date(2026, 3, 30): FakeDay(slot_items("09:00")), date(2026, 3, 31): FakeDay(slot_items("10:00"))},
        list_error=RuntimeError("Execution context was destroyed"),
    )

    with pytest.raises(CalendarReadError):
        await make_scanner(days_ahead=1).scan(page, ROOM)


@pytest.mark.asyncio
async def test_every_stored_date_has_slots():
    page = FakePage(
        {
            date(2026, 3, 30): FakeDay(slot_items("Not available")),
            date(2026, 3, 31): FakeDay([]),
            date(2026, 4, 1): FakeDay(slot_items("", "16:45")),
        }
    )

    availability = await make_scanner(days_ahead=2).scan(page, ROOM)

    assert availability == {"01/04/2026": ("16:45",)}
    assert all(slots for slots in availability.values())
