from __future__ import annotations

import hashlib
import hmac
import json
import tempfile
import unittest
from pathlib import Path
from typing import Any

from booking.repository import BookingRepository
from calendars.static_calendar import StaticCalendar
from core.enums import Step
from core.errors import WhatsAppApiError
from payments.static_links import StaticPaymentLinks
from whatsapp.webhook_handler import WhatsAppWebhookHandler

SENDER = "919800000001"


class _DummyReplyClient:
    def __init__(self, fail: bool = False) -> None:
        self.calls: list[tuple[str, list[dict[str, Any]]]] = []
        self.fail = fail

    def send(self, to: str, messages: list[dict[str, Any]]) -> None:
        self.calls.append((to, messages))
        if self.fail:
            raise WhatsAppApiError("whatsapp api error: status=500")


class WhatsAppWebhookHandlerTest(unittest.TestCase):
    def _handler(self, tmp: str, reply_client: _DummyReplyClient, **overrides: Any) -> WhatsAppWebhookHandler:
        config = _build_config(tmp)
        config["whatsapp"].update(overrides)
        return WhatsAppWebhookHandler(
            config=config,
            reply_client=reply_client,
            repository=BookingRepository(config["booking"]["sqlite_path"]),
            calendar=StaticCalendar(default_slots=[]),
            payments=StaticPaymentLinks(),
        )

    def test_handle_invalid_signature(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            handler = self._handler(tmp, _DummyReplyClient())
            status, payload = handler.handle(body=b'{"entry":[]}', signature="sha256=invalid")
            self.assertEqual(status, 401)
            self.assertFalse(payload["ok"])

    def test_handle_disabled(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            handler = self._handler(tmp, _DummyReplyClient(), enabled=False)
            status, _ = handler.handle(body=b"{}", signature=None)
            self.assertEqual(status, 503)

    def test_handle_invalid_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            handler = self._handler(tmp, _DummyReplyClient())
            body = b"not json"
            status, _ = handler.handle(body=body, signature=_signature("app-secret", body))
            self.assertEqual(status, 400)

    def test_first_text_message_gets_welcome(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            reply_client = _DummyReplyClient()
            handler = self._handler(tmp, reply_client)
            body = _body([_text_message("wamid.1", "hi")])
            status, payload = handler.handle(body=body, signature=_signature("app-secret", body))

            self.assertEqual(status, 200)
            self.assertTrue(payload["ok"])
            self.assertEqual(payload["handled"], 1)
            to, messages = reply_client.calls[0]
            self.assertEqual(to, SENDER)
            self.assertIn("Welcome", messages[0]["body"])
            self.assertEqual(handler.repository.get_session(SENDER).current_step, Step.SPORT)

    def test_button_reply_uses_option_id(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            reply_client = _DummyReplyClient()
            handler = self._handler(tmp, reply_client)
            first = _body([_text_message("wamid.1", "hi")])
            handler.handle(body=first, signature=_signature("app-secret", first))
            second = _body([_button_message("wamid.2", "sport_padel", "Padel")])
            handler.handle(body=second, signature=_signature("app-secret", second))

            session = handler.repository.get_session(SENDER)
            self.assertEqual(session.current_step, Step.VENUE)
            self.assertEqual(session.sport, "Padel")

    def test_redelivered_message_sends_no_second_reply(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            reply_client = _DummyReplyClient()
            handler = self._handler(tmp, reply_client)
            body = _body([_text_message("wamid.1", "hi")])
            handler.handle(body=body, signature=_signature("app-secret", body))
            handler.handle(body=body, signature=_signature("app-secret", body))
            second = _body([_text_message("wamid.1", "hi")])
            handler.handle(body=second, signature=_signature("app-secret", second))
            self.assertEqual(len(reply_client.calls), 1)

    def test_status_updates_are_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            reply_client = _DummyReplyClient()
            handler = self._handler(tmp, reply_client)
            payload = {
                "entry": [
                    {"changes": [{"value": {"statuses": [{"id": "wamid.1", "status": "delivered"}]}}]}
                ]
            }
            body = json.dumps(payload).encode("utf-8")
            status, result = handler.handle(body=body, signature=_signature("app-secret", body))
            self.assertEqual(status, 200)
            self.assertEqual(result["handled"], 0)
            self.assertEqual(reply_client.calls, [])

    def test_unsupported_message_type_is_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            handler = self._handler(tmp, _DummyReplyClient())
            body = _body([{"from": SENDER, "id": "wamid.9", "type": "image", "image": {"id": "media-1"}}])
            _, result = handler.handle(body=body, signature=_signature("app-secret", body))
            self.assertEqual(result["skipped"], 1)

    def test_sender_outside_allow_list_is_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            reply_client = _DummyReplyClient()
            handler = self._handler(tmp, reply_client, allowed_numbers=["+919800000002"])
            body = _body([_text_message("wamid.1", "hi")])
            _, result = handler.handle(body=body, signature=_signature("app-secret", body))
            self.assertEqual(result["skipped"], 1)
            self.assertEqual(reply_client.calls, [])

    def test_reply_failure_does_not_fail_delivery(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            handler = self._handler(tmp, _DummyReplyClient(fail=True))
            body = _body([_text_message("wamid.1", "hi")])
            status, payload = handler.handle(body=body, signature=_signature("app-secret", body))
            self.assertEqual(status, 200)
            self.assertTrue(payload["ok"])

    def test_verify_subscription(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            handler = self._handler(tmp, _DummyReplyClient())
            self.assertEqual(handler.verify_subscription("subscribe", "verify-me", "12345"), (200, "12345"))
            self.assertEqual(handler.verify_subscription("subscribe", "wrong", "12345")[0], 403)
            self.assertEqual(handler.verify_subscription("unsubscribe", "verify-me", "12345")[0], 403)


def _text_message(message_id: str, text: str) -> dict[str, Any]:
    return {"from": SENDER, "id": message_id, "timestamp": "1", "type": "text", "text": {"body": text}}


def _button_message(message_id: str, option_id: str, title: str) -> dict[str, Any]:
    return {
        "from": SENDER,
        "id": message_id,
        "type": "interactive",
        "interactive": {"type": "button_reply", "button_reply": {"id": option_id, "title": title}},
    }


def _body(messages: list[dict[str, Any]]) -> bytes:
    payload = {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "waba-1",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"phone_number_id": "pn-1"},
                            "messages": messages,
                        },
                    }
                ],
            }
        ],
    }
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def _build_config(tmp_dir: str) -> dict[str, Any]:
    return {
        "whatsapp": {
            "enabled": True,
            "app_secret": "app-secret",
            "verify_token": "verify-me",
            "access_token": "token",
            "phone_number_id": "pn-1",
        },
        "booking": {"sqlite_path": str(Path(tmp_dir) / "booking.db")},
        "catalog": {
            "sports": [
                {"id": "sport_pickleball", "title": "Pickleball"},
                {"id": "sport_padel", "title": "Padel"},
            ],
            "venues": [{"id": "centre_jw", "title": "JW Marriott"}],
        },
    }


def _signature(secret: str, body: bytes) -> str:
    return "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


if __name__ == "__main__":
    unittest.main()
