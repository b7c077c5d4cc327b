from __future__ import annotations

import sqlite3
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from booking.dynamo_repository import DynamoBookingRepository
from booking.repository import BookingRepository
from booking.repository_interface import BookingRepositoryProtocol

# backend failures that mean the session store itself is unreachable
STORAGE_ERRORS: tuple[type[Exception], ...] = (sqlite3.Error, BotoCoreError, ClientError)


def create_booking_repository(config: dict[str, Any]) -> BookingRepositoryProtocol:
    booking_conf = config.get("booking", {})
    backend = str(booking_conf.get("backend", "sqlite") or "sqlite").strip().lower()

    if backend == "dynamodb":
        ddb_conf = booking_conf.get("dynamodb", {}) if isinstance(booking_conf, dict) else {}
        tables = ddb_conf.get("tables", {}) if isinstance(ddb_conf, dict) else {}
        return DynamoBookingRepository(
            region_name=_as_optional_str(ddb_conf.get("region")),
            table_prefix=str(ddb_conf.get("table_prefix", "bookingbot")),
            sessions_table_name=_as_optional_str(tables.get("sessions")),
            reconciliation_table_name=_as_optional_str(tables.get("reconciliation")),
        )

    sqlite_path = str(booking_conf.get("sqlite_path", "data/booking/bookingbot.db"))
    return BookingRepository(sqlite_path=sqlite_path)


def _as_optional_str(value: Any) -> str | None:
    text = str(value or "").strip()
    return text or None
