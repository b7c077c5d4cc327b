from __future__ import annotations

from typing import Any, Iterable
from uuid import uuid4

from booking.slots import dedupe_labels, normalize_slot_label
from calendars.base import DEFAULT_DAY_TEMPLATE
from core.errors import CalendarUnavailableError


class StaticCalendar:
    """In-memory calendar: fixed per-date availability, booked slots removed on event creation."""

    name = "static"

    def __init__(
        self,
        availability: dict[str, Iterable[str]] | None = None,
        default_slots: Iterable[str] | None = DEFAULT_DAY_TEMPLATE,
    ) -> None:
        self._availability: dict[str, list[str]] = {
            str(date): dedupe_labels(slots) for date, slots in (availability or {}).items()
        }
        self._default_slots = dedupe_labels(DEFAULT_DAY_TEMPLATE if default_slots is None else default_slots)
        self.events: list[dict[str, Any]] = []
        self.available = True
        self.event_creation_available = True

    def set_available(self, date: str, slots: Iterable[str]) -> None:
        self._availability[date] = dedupe_labels(slots)

    def remove_slot(self, date: str, slot: str) -> None:
        wanted = normalize_slot_label(slot)
        self._availability[date] = [label for label in self._slots_for(date) if label != wanted]

    def get_available_slots(self, date: str) -> list[str]:
        if not self.available:
            raise CalendarUnavailableError("static calendar marked unavailable")
        return list(self._slots_for(date))

    def create_event(self, date: str, slot: str, summary: str, description: str) -> str:
        if not self.event_creation_available:
            raise CalendarUnavailableError("static calendar refused event creation")
        event_id = f"evt_{uuid4().hex[:12]}"
        self.events.append(
            {"id": event_id, "date": date, "slot": slot, "summary": summary, "description": description}
        )
        self.remove_slot(date, slot)
        return event_id

    def _slots_for(self, date: str) -> list[str]:
        if date in self._availability:
            return self._availability[date]
        return list(self._default_slots)
