from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Mapping

from core.models import BookingSession, working_state_from_dict, working_state_to_dict

SESSION_COLUMNS = (
    "identity",
    "step",
    "sport",
    "venue",
    "booking_date",
    "time_slot",
    "player_count",
    "add_ons_json",
    "contact_name",
    "paid",
    "total_amount",
    "last_processed_message_id",
    "working_state_json",
    "confirmed_event_id",
    "payment_reference",
    "payment_link",
    "payment_id",
    "version",
    "created_at",
    "updated_at",
)


def session_to_record(session: BookingSession) -> dict[str, Any]:
    working_state = working_state_to_dict(session.working_state)
    return {
        "identity": session.identity,
        "step": str(session.step),
        "sport": session.sport,
        "venue": session.venue,
        "booking_date": session.date,
        "time_slot": session.time_slot,
        "player_count": session.player_count,
        "add_ons_json": json.dumps(list(session.add_ons), ensure_ascii=False),
        "contact_name": session.contact_name,
        "paid": bool(session.paid),
        "total_amount": int(session.total_amount or 0),
        "last_processed_message_id": session.last_processed_message_id,
        "working_state_json": json.dumps(working_state, ensure_ascii=False) if working_state else None,
        "confirmed_event_id": session.confirmed_event_id,
        "payment_reference": session.payment_reference,
        "payment_link": session.payment_link,
        "payment_id": session.payment_id,
        "version": int(session.version),
        "created_at": session.created_at,
        "updated_at": session.updated_at,
    }


def session_from_record(row: Mapping[str, Any]) -> BookingSession:
    add_ons = _load_json(row.get("add_ons_json"))
    return BookingSession(
        identity=str(row["identity"]),
        step=str(row.get("step") or ""),
        sport=_optional_str(row.get("sport")),
        venue=_optional_str(row.get("venue")),
        date=_optional_str(row.get("booking_date")),
        time_slot=_optional_str(row.get("time_slot")),
        player_count=_optional_int(row.get("player_count")),
        add_ons=[str(code) for code in add_ons] if isinstance(add_ons, list) else [],
        contact_name=_optional_str(row.get("contact_name")),
        paid=bool(row.get("paid")),
        total_amount=_optional_int(row.get("total_amount")) or 0,
        last_processed_message_id=_optional_str(row.get("last_processed_message_id")),
        working_state=working_state_from_dict(_load_json(row.get("working_state_json"))),
        confirmed_event_id=_optional_str(row.get("confirmed_event_id")),
        payment_reference=_optional_str(row.get("payment_reference")),
        payment_link=_optional_str(row.get("payment_link")),
        payment_id=_optional_str(row.get("payment_id")),
        version=_optional_int(row.get("version")) or 0,
        created_at=str(row.get("created_at") or ""),
        updated_at=str(row.get("updated_at") or ""),
    )


def _load_json(text: Any) -> Any:
    if not text:
        return None
    try:
        return json.loads(str(text))
    except ValueError:
        return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, Decimal)):
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        return None
