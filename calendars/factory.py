from __future__ import annotations

from typing import Any

from calendars.base import CalendarClient
from calendars.google_calendar import GoogleCalendarClient
from calendars.static_calendar import StaticCalendar


class CalendarConfigError(RuntimeError):
    pass


def create_calendar_client(config: dict[str, Any]) -> CalendarClient:
    cal_conf = config.get("calendar", {})
    provider = str(cal_conf.get("provider", "static") or "static").strip().lower()
    day_template = cal_conf.get("day_template")
    if not isinstance(day_template, list) or not day_template:
        day_template = None

    if provider == "google":
        gconf = cal_conf.get("google", {})
        return GoogleCalendarClient(
            client_id=str(gconf.get("client_id", "") or ""),
            client_secret=str(gconf.get("client_secret", "") or ""),
            refresh_token=str(gconf.get("refresh_token", "") or ""),
            calendar_id=str(gconf.get("calendar_id", "primary") or "primary"),
            timezone_name=str(cal_conf.get("timezone", "Asia/Kolkata") or "Asia/Kolkata"),
            day_template=day_template,
        )

    if provider == "static":
        sconf = cal_conf.get("static", {})
        availability = sconf.get("availability", {})
        return StaticCalendar(
            availability=availability if isinstance(availability, dict) else {},
            default_slots=day_template,
        )

    raise CalendarConfigError(f"unsupported calendar provider: {provider}")
