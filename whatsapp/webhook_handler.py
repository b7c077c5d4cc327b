from __future__ import annotations

import hmac
import json
from typing import Any

from booking.conversation_service import ConversationService
from booking.repository_factory import STORAGE_ERRORS, create_booking_repository
from booking.repository_interface import BookingRepositoryProtocol
from calendars.base import CalendarClient
from calendars.factory import create_calendar_client
from core.errors import SessionConflictError, WhatsAppApiError
from payments.base import PaymentLinkProvider
from payments.factory import create_payment_provider
from whatsapp.inbound import iter_inbound_messages, parse_inbound
from whatsapp.reply_client import WhatsAppReplyClient
from whatsapp.signature import verify_meta_signature


class WhatsAppWebhookHandler:
    def __init__(
        self,
        config: dict[str, Any],
        reply_client: WhatsAppReplyClient | None = None,
        repository: BookingRepositoryProtocol | None = None,
        calendar: CalendarClient | None = None,
        payments: PaymentLinkProvider | None = None,
        conversation_service: ConversationService | None = None,
    ) -> None:
        self.config = config
        self.wa_conf = config.get("whatsapp", {})
        self.enabled = bool(self.wa_conf.get("enabled", False))
        self.app_secret = str(self.wa_conf.get("app_secret", "") or "").strip()
        self.verify_token = str(self.wa_conf.get("verify_token", "") or "").strip()
        allowed = self.wa_conf.get("allowed_numbers", [])
        self.allowed_numbers = {
            str(number).strip().lstrip("+")
            for number in (allowed if isinstance(allowed, list) else [])
            if str(number).strip()
        }

        self.repository = repository or create_booking_repository(config)
        self.conversation_service = conversation_service or ConversationService(
            repository=self.repository,
            calendar=calendar or create_calendar_client(config),
            payments=payments or create_payment_provider(config),
            config=config,
        )
        self.reply_client = reply_client or WhatsAppReplyClient(
            access_token=str(self.wa_conf.get("access_token", "") or ""),
            phone_number_id=str(self.wa_conf.get("phone_number_id", "") or ""),
            api_base_url=str(self.wa_conf.get("api_base_url", "https://graph.facebook.com")),
            api_version=str(self.wa_conf.get("api_version", "v20.0")),
            timeout_sec=float(self.wa_conf.get("timeout_sec", 10)),
        )

    def verify_subscription(self, mode: str | None, token: str | None, challenge: str | None) -> tuple[int, str]:
        if (mode or "") != "subscribe" or not self.verify_token:
            return 403, "forbidden"
        if not hmac.compare_digest(self.verify_token, (token or "").strip()):
            return 403, "forbidden"
        return 200, str(challenge or "")

    def handle(self, body: bytes, signature: str | None) -> tuple[int, dict[str, Any]]:
        if not self.enabled:
            return 503, {"ok": False, "error": "whatsapp.enabled is false"}
        if not verify_meta_signature(self.app_secret, body, signature):
            return 401, {"ok": False, "error": "invalid signature"}

        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            return 400, {"ok": False, "error": "invalid json payload"}
        if not isinstance(payload, dict):
            return 400, {"ok": False, "error": "payload must be object"}

        handled = 0
        skipped = 0
        errors: list[str] = []
        for raw in iter_inbound_messages(payload):
            message = parse_inbound(raw)
            if message is None:
                skipped += 1
                continue
            if self.allowed_numbers and message.sender.lstrip("+") not in self.allowed_numbers:
                skipped += 1
                continue
            try:
                replies = self.conversation_service.handle_message(message)
            except SessionConflictError as exc:
                print(f"session-conflict identity={message.sender} message_id={message.message_id} error={exc}")
                errors.append(str(exc))
                continue
            except STORAGE_ERRORS as exc:
                print(f"session-store-unavailable identity={message.sender} error={exc}")
                return 500, {"ok": False, "error": "session store unavailable"}
            self._reply(message.sender, replies)
            handled += 1
        return 200, {"ok": len(errors) == 0, "handled": handled, "skipped": skipped, "errors": errors}

    def _reply(self, to: str, messages: list[dict[str, Any]]) -> None:
        if not messages:
            return
        try:
            self.reply_client.send(to=to, messages=messages)
        except WhatsAppApiError as exc:
            print(f"whatsapp-reply-failed to={to} error={exc}")
