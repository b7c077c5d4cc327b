from __future__ import annotations

from typing import Any, Iterable

from booking.slots import MAX_BUTTONS, MAX_LIST_ROWS, presentation_for
from core.enums import Presentation

MAX_TEXT_LENGTH = 4096
MAX_BUTTON_TITLE = 20
MAX_ROW_TITLE = 24
MAX_ROW_DESCRIPTION = 72


def option(option_id: str, title: str, description: str | None = None) -> dict[str, Any]:
    row: dict[str, Any] = {"id": option_id[:200], "title": title}
    if description:
        row["description"] = description[:MAX_ROW_DESCRIPTION]
    return row


def text_message(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text[:MAX_TEXT_LENGTH]}


def buttons_message(body: str, options: Iterable[dict[str, Any]]) -> dict[str, Any]:
    buttons = [
        {"id": item["id"], "title": str(item["title"])[:MAX_BUTTON_TITLE]}
        for item in list(options)[:MAX_BUTTONS]
    ]
    return {"type": "buttons", "body": body[:1024], "buttons": buttons}


def list_message(
    body: str,
    options: Iterable[dict[str, Any]],
    button_text: str = "Choose",
    section_title: str = "Options",
) -> dict[str, Any]:
    rows = []
    for item in list(options)[:MAX_LIST_ROWS]:
        row = {"id": item["id"], "title": str(item["title"])[:MAX_ROW_TITLE]}
        if item.get("description"):
            row["description"] = item["description"]
        rows.append(row)
    return {
        "type": "list",
        "body": body[:1024],
        "button": button_text[:MAX_BUTTON_TITLE],
        "sections": [{"title": section_title[:MAX_ROW_TITLE], "rows": rows}],
    }


def options_message(
    body: str,
    options: list[dict[str, Any]],
    button_text: str = "Choose",
    section_title: str = "Options",
) -> dict[str, Any]:
    """Buttons for up to three options, a list for more, plain text for none."""
    presentation = presentation_for(len(options))
    if presentation == Presentation.BUTTONS:
        return buttons_message(body, options)
    if presentation == Presentation.LIST:
        return list_message(body, options, button_text=button_text, section_title=section_title)
    return text_message(body)
