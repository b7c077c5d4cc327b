from __future__ import annotations

from typing import Any, Iterator

from core.models import InboundMessage

REPLY_TEXT = "text"
REPLY_BUTTON = "button_reply"
REPLY_LIST = "list_reply"


def parse_inbound(message: dict[str, Any]) -> InboundMessage | None:
    """Reduce one Cloud API message object to a canonical token.

    The reply forms present on the message decide the token, whatever its
    ``type`` says: list id, then button id, then list title, then button
    title, then the trimmed text body. Messages carrying none of them
    (media, reactions, locations) return None.
    """
    if not isinstance(message, dict):
        return None
    sender = str(message.get("from", "") or "").strip()
    message_id = str(message.get("id", "") or "").strip()
    if not sender:
        return None

    interactive = _as_dict(message.get("interactive"))
    list_reply = _as_dict(interactive.get(REPLY_LIST))
    button_reply = _as_dict(interactive.get(REPLY_BUTTON))
    # quick-reply buttons on template messages
    template_button = _as_dict(message.get("button"))

    list_id = _clean(list_reply.get("id"))
    button_id = _clean(button_reply.get("id")) or _clean(template_button.get("payload"))
    list_title = _clean(list_reply.get("title"))
    button_title = _clean(button_reply.get("title")) or _clean(template_button.get("text"))
    body = _clean(_as_dict(message.get("text")).get("body"))

    candidates = (
        (list_id, REPLY_LIST, list_title),
        (button_id, REPLY_BUTTON, button_title),
        (list_title, REPLY_LIST, list_title),
        (button_title, REPLY_BUTTON, button_title),
        (body, REPLY_TEXT, ""),
    )
    for token, kind, title in candidates:
        if token:
            return InboundMessage(sender=sender, message_id=message_id, token=token, reply_kind=kind, title=title)
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _clean(value: Any) -> str:
    return str(value or "").strip()


def iter_inbound_messages(payload: dict[str, Any]) -> Iterator[dict[str, Any]]:
    entries = payload.get("entry", []) if isinstance(payload, dict) else []
    for entry in entries if isinstance(entries, list) else []:
        if not isinstance(entry, dict):
            continue
        for change in entry.get("changes", []) or []:
            if not isinstance(change, dict):
                continue
            value = change.get("value") or {}
            messages = value.get("messages", []) if isinstance(value, dict) else []
            for message in messages if isinstance(messages, list) else []:
                yield message
