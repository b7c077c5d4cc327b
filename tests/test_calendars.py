from __future__ import annotations

import unittest
from unittest import mock

from booking.confirmation import ConfirmationChecker
from calendars.factory import CalendarConfigError, create_calendar_client
from calendars.google_calendar import GoogleCalendarClient
from calendars.static_calendar import StaticCalendar
from core.enums import RecheckStatus
from core.errors import CalendarUnavailableError

TEMPLATE = ["17:00 - 18:00", "18:00 - 19:00", "19:00 - 20:00"]


def _google_with_service(service: mock.Mock) -> GoogleCalendarClient:
    return GoogleCalendarClient(
        client_id="id",
        client_secret="secret",
        refresh_token="refresh",
        day_template=TEMPLATE,
        service=service,
    )


class GoogleCalendarClientTest(unittest.TestCase):
    def test_busy_ranges_remove_overlapping_slots(self) -> None:
        service = mock.Mock()
        service.freebusy.return_value.query.return_value.execute.return_value = {
            "calendars": {
                "primary": {"busy": [{"start": "2026-03-20T12:30:00Z", "end": "2026-03-20T13:30:00Z"}]}
            }
        }
        client = _google_with_service(service)
        # 12:30Z-13:30Z is 18:00-19:00 in Asia/Kolkata
        self.assertEqual(client.get_available_slots("2026-03-20"), ["17:00 - 18:00", "19:00 - 20:00"])
        body = service.freebusy.return_value.query.call_args.kwargs["body"]
        self.assertEqual(body["timeMin"], "2026-03-20T00:00:00+05:30")
        self.assertEqual(body["items"], [{"id": "primary"}])

    def test_query_failure_is_unavailable(self) -> None:
        service = mock.Mock()
        service.freebusy.return_value.query.return_value.execute.side_effect = OSError("timeout")
        with self.assertRaises(CalendarUnavailableError):
            _google_with_service(service).get_available_slots("2026-03-20")

    def test_create_event_uses_slot_times(self) -> None:
        service = mock.Mock()
        service.events.return_value.insert.return_value.execute.return_value = {"id": "evt-1"}
        event_id = _google_with_service(service).create_event("2026-03-20", "18:00 - 19:00", "Padel", "details")
        self.assertEqual(event_id, "evt-1")
        body = service.events.return_value.insert.call_args.kwargs["body"]
        self.assertEqual(body["start"]["dateTime"], "2026-03-20T18:00:00+05:30")
        self.assertEqual(body["end"]["dateTime"], "2026-03-20T19:00:00+05:30")

    def test_missing_credentials_is_unavailable(self) -> None:
        client = GoogleCalendarClient(client_id="", client_secret="", refresh_token="")
        with self.assertRaises(CalendarUnavailableError):
            client.get_available_slots("2026-03-20")


class StaticCalendarTest(unittest.TestCase):
    def test_event_creation_removes_slot(self) -> None:
        calendar = StaticCalendar(availability={"2026-03-20": ["18:00–19:00", "19:00 - 20:00"]})
        self.assertEqual(calendar.get_available_slots("2026-03-20"), ["18:00 - 19:00", "19:00 - 20:00"])
        calendar.create_event("2026-03-20", "18:00 - 19:00", "Padel", "")
        self.assertEqual(calendar.get_available_slots("2026-03-20"), ["19:00 - 20:00"])

    def test_unlisted_dates_use_default_template(self) -> None:
        calendar = StaticCalendar(default_slots=["06:00 - 07:00"])
        self.assertEqual(calendar.get_available_slots("2026-04-01"), ["06:00 - 07:00"])


class ConfirmationCheckerTest(unittest.TestCase):
    def test_recheck_outcomes(self) -> None:
        calendar = StaticCalendar(availability={"2026-03-20": ["18:00 - 19:00"]}, default_slots=[])
        checker = ConfirmationChecker(calendar)
        self.assertEqual(checker.recheck("2026-03-20", "18:00–19:00").status, RecheckStatus.AVAILABLE)
        self.assertEqual(checker.recheck("2026-03-20", "19:00 - 20:00").status, RecheckStatus.TAKEN)
        calendar.available = False
        result = checker.recheck("2026-03-20", "18:00 - 19:00")
        self.assertEqual(result.status, RecheckStatus.UNKNOWN)
        self.assertFalse(result.snapshot.ok)


class CalendarFactoryTest(unittest.TestCase):
    def test_static_by_default(self) -> None:
        self.assertIsInstance(create_calendar_client({}), StaticCalendar)

    def test_google_provider(self) -> None:
        config = {"calendar": {"provider": "google", "google": {"calendar_id": "courts@example.com"}}}
        client = create_calendar_client(config)
        self.assertIsInstance(client, GoogleCalendarClient)
        self.assertEqual(client.calendar_id, "courts@example.com")

    def test_unknown_provider(self) -> None:
        with self.assertRaises(CalendarConfigError):
            create_calendar_client({"calendar": {"provider": "outlook"}})


if __name__ == "__main__":
    unittest.main()
