from __future__ import annotations

from booking.slots import dedupe_labels, slot_is_listed
from calendars.base import AvailabilityProvider
from core.enums import RecheckStatus
from core.errors import CalendarUnavailableError
from core.models import AvailabilitySnapshot, RecheckResult


class ConfirmationChecker:
    """Reads live availability and re-verifies a chosen slot against it."""

    def __init__(self, calendar: AvailabilityProvider) -> None:
        self.calendar = calendar

    def fetch(self, date: str) -> AvailabilitySnapshot:
        try:
            labels = self.calendar.get_available_slots(date)
        except CalendarUnavailableError as exc:
            print(f"availability-unavailable date={date} error={exc}")
            return AvailabilitySnapshot(date=date, labels=[], ok=False)
        return AvailabilitySnapshot(date=date, labels=dedupe_labels(labels or []), ok=True)

    def recheck(self, date: str, slot: str) -> RecheckResult:
        snapshot = self.fetch(date)
        if not snapshot.ok:
            status = RecheckStatus.UNKNOWN
        elif slot_is_listed(slot, snapshot.labels):
            status = RecheckStatus.AVAILABLE
        else:
            status = RecheckStatus.TAKEN
        return RecheckResult(status=status, slot=slot, snapshot=snapshot)
