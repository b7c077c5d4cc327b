from __future__ import annotations

from datetime import date as date_type
from datetime import datetime, time, timedelta
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from booking.slots import dedupe_labels, parse_slot_times
from calendars.base import DEFAULT_DAY_TEMPLATE
from core.errors import CalendarUnavailableError

CALENDAR_SCOPES = ("https://www.googleapis.com/auth/calendar",)
TOKEN_URI = "https://oauth2.googleapis.com/token"


class GoogleCalendarClient:
    name = "google"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        calendar_id: str = "primary",
        timezone_name: str = "Asia/Kolkata",
        day_template: Iterable[str] | None = None,
        service: Any | None = None,
    ) -> None:
        self.client_id = (client_id or "").strip()
        self.client_secret = (client_secret or "").strip()
        self.refresh_token = (refresh_token or "").strip()
        self.calendar_id = (calendar_id or "primary").strip()
        self.timezone_name = timezone_name or "Asia/Kolkata"
        self.tz = ZoneInfo(self.timezone_name)
        self.day_template = dedupe_labels(day_template or DEFAULT_DAY_TEMPLATE)
        self._service = service

    def get_available_slots(self, date: str) -> list[str]:
        day = _parse_date(date)
        day_start = datetime.combine(day, time.min, tzinfo=self.tz)
        day_end = day_start + timedelta(days=1)
        body = {
            "timeMin": day_start.isoformat(),
            "timeMax": day_end.isoformat(),
            "timeZone": self.timezone_name,
            "items": [{"id": self.calendar_id}],
        }
        try:
            response = self._ensure_service().freebusy().query(body=body).execute()
        except CalendarUnavailableError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise CalendarUnavailableError(f"freebusy query failed: {exc}") from exc

        calendar = response.get("calendars", {}).get(self.calendar_id, {})
        if calendar.get("errors"):
            raise CalendarUnavailableError(f"freebusy errors: {calendar.get('errors')}")
        busy = [_parse_busy(row) for row in calendar.get("busy", [])]
        busy_ranges = [pair for pair in busy if pair is not None]

        available: list[str] = []
        for label in self.day_template:
            interval = self._interval(day, label)
            if interval is None:
                continue
            start, end = interval
            if any(start < busy_end and end > busy_start for busy_start, busy_end in busy_ranges):
                continue
            available.append(label)
        return available

    def create_event(self, date: str, slot: str, summary: str, description: str) -> str:
        day = _parse_date(date)
        interval = self._interval(day, slot)
        if interval is None:
            raise ValueError(f"slot is not a time range: {slot}")
        start, end = interval
        body = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": start.isoformat(), "timeZone": self.timezone_name},
            "end": {"dateTime": end.isoformat(), "timeZone": self.timezone_name},
        }
        try:
            created = self._ensure_service().events().insert(calendarId=self.calendar_id, body=body).execute()
        except CalendarUnavailableError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise CalendarUnavailableError(f"event insert failed: {exc}") from exc
        return str(created.get("id", "") or "")

    def _interval(self, day: date_type, label: str) -> tuple[datetime, datetime] | None:
        times = parse_slot_times(label)
        if times is None:
            return None
        start = datetime.combine(day, _parse_clock(times[0]), tzinfo=self.tz)
        end = datetime.combine(day, _parse_clock(times[1]), tzinfo=self.tz)
        if end <= start:
            end += timedelta(days=1)
        return start, end

    def _ensure_service(self) -> Any:
        if self._service is not None:
            return self._service
        if not self.client_id or not self.client_secret or not self.refresh_token:
            raise CalendarUnavailableError("calendar.google client_id, client_secret and refresh_token are required")
        try:
            from google.oauth2.credentials import Credentials  # type: ignore
            from googleapiclient.discovery import build  # type: ignore
        except Exception as exc:
            raise CalendarUnavailableError(
                "google-api-python-client and google-auth are required for the google calendar provider"
            ) from exc

        credentials = Credentials(
            token=None,
            refresh_token=self.refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=list(CALENDAR_SCOPES),
        )
        self._service = build("calendar", "v3", credentials=credentials, cache_discovery=False)
        return self._service


def _parse_date(value: str) -> date_type:
    try:
        return date_type.fromisoformat(str(value))
    except ValueError as exc:
        raise ValueError(f"invalid date: {value}") from exc


def _parse_clock(text: str) -> time:
    hour, minute = text.split(":")
    if int(hour) >= 24:
        return time(23, 59)
    return time(int(hour), int(minute))


def _parse_busy(row: Any) -> tuple[datetime, datetime] | None:
    if not isinstance(row, dict):
        return None
    start = _parse_timestamp(row.get("start"))
    end = _parse_timestamp(row.get("end"))
    if start is None or end is None:
        return None
    return start, end


def _parse_timestamp(value: Any) -> datetime | None:
    text = str(value or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None
