from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

SLOT_LABEL_WIDTH = 5

Availability = Dict[str, Tuple[str, ...]]


@dataclass(frozen=True, slots=True)
class Resource:
    name: str
    url: str


def date_key(day: date) -> str:
    return day.strftime("%d/%m/%Y")


def day_selector(day: date) -> str:
    # Calendar cells carry unpadded attributes, e.g. data-day="5" data-month="3".
    return f'[data-day="{day.day}"][data-month="{day.month}"][data-year="{day.year}"]'


def slot_label(raw_text: str) -> str:
    return raw_text.strip()[:SLOT_LABEL_WIDTH]


@dataclass(frozen=True, slots=True)
class Found:
    """The calendar was read; an empty mapping means nothing is open."""

    availability: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Read-only view over a private copy.
        object.__setattr__(self, "availability", MappingProxyType(dict(self.availability)))


@dataclass(frozen=True, slots=True)
class Failed:
    """The calendar could not be read at all; no conclusion should be drawn."""

    reason: str = ""


ScanOutcome = Found | Failed


@dataclass(frozen=True, slots=True)
class ScanResult:
    name: str
    outcome: ScanOutcome

    @property
    def failed(self) -> bool:
        return isinstance(self.outcome, Failed)

    @property
    def has_slots(self) -> bool:
        return isinstance(self.outcome, Found) and bool(self.outcome.availability)
