from __future__ import annotations

from typing import Protocol


class AvailabilityProvider(Protocol):
    def get_available_slots(self, date: str) -> list[str]:
        ...


class EventCreator(Protocol):
    def create_event(self, date: str, slot: str, summary: str, description: str) -> str:
        ...


class CalendarClient(AvailabilityProvider, EventCreator, Protocol):
    name: str


DEFAULT_DAY_TEMPLATE: tuple[str, ...] = tuple(f"{hour:02d}:00 - {hour + 1:02d}:00" for hour in range(6, 22))
