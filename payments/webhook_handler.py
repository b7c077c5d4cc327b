from __future__ import annotations

import json
from typing import Any

from booking.conversation_service import ConversationService
from booking.repository_factory import STORAGE_ERRORS
from core.errors import CollaboratorUnavailableError, SessionConflictError, WhatsAppApiError
from core.models import PaymentConfirmation
from payments.signature import verify_payment_signature
from whatsapp.reply_client import WhatsAppReplyClient

CONFIRMING_EVENTS = ("payment_link.paid", "payment.captured", "order.paid")


def parse_payment_event(payload: dict[str, Any]) -> PaymentConfirmation | None:
    """Extract the booking reference from a gateway event, or None for events that do not confirm payment."""
    event_type = str(payload.get("event", "") or "")
    if event_type not in CONFIRMING_EVENTS:
        return None
    body = payload.get("payload") or {}
    payment = (body.get("payment") or {}).get("entity") or {}
    payment_id = str(payment.get("id", "") or "") or None

    reference = ""
    if event_type == "payment_link.paid":
        link = (body.get("payment_link") or {}).get("entity") or {}
        reference = str(link.get("reference_id", "") or "")
        if not reference:
            reference = str((link.get("notes") or {}).get("reference", "") or "")
    if not reference:
        notes = payment.get("notes") or {}
        if isinstance(notes, dict):
            reference = str(notes.get("reference", "") or "")
    if not reference:
        order = (body.get("order") or {}).get("entity") or {}
        reference = str(order.get("receipt", "") or "")
    return PaymentConfirmation(reference=reference.strip(), payment_id=payment_id, event_type=event_type)


class PaymentWebhookHandler:
    def __init__(
        self,
        config: dict[str, Any],
        conversation_service: ConversationService,
        reply_client: WhatsAppReplyClient,
    ) -> None:
        self.pay_conf = config.get("payments", {})
        self.webhook_secret = str(self.pay_conf.get("webhook_secret", "") or "").strip()
        self.conversation_service = conversation_service
        self.reply_client = reply_client

    def handle(self, body: bytes, signature: str | None) -> tuple[int, dict[str, Any]]:
        if not verify_payment_signature(self.webhook_secret, body, signature):
            return 401, {"ok": False, "error": "invalid signature"}
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            return 400, {"ok": False, "error": "invalid json payload"}
        if not isinstance(payload, dict):
            return 400, {"ok": False, "error": "payload must be object"}

        confirmation = parse_payment_event(payload)
        if confirmation is None:
            return 200, {"ok": True, "handled": 0, "skipped": 1}

        try:
            identity, messages = self.conversation_service.handle_payment_confirmed(confirmation)
        except CollaboratorUnavailableError as exc:
            print(f"payment-commit-deferred reference={confirmation.reference} error={exc}")
            return 503, {"ok": False, "error": "availability unknown, retry later"}
        except SessionConflictError as exc:
            print(f"payment-commit-conflict reference={confirmation.reference} error={exc}")
            return 409, {"ok": False, "error": "session changed concurrently, retry later"}
        except STORAGE_ERRORS as exc:
            print(f"session-store-unavailable reference={confirmation.reference} error={exc}")
            return 500, {"ok": False, "error": "session store unavailable"}

        if identity and messages:
            try:
                self.reply_client.send(to=identity, messages=messages)
            except WhatsAppApiError as exc:
                print(f"whatsapp-reply-failed to={identity} error={exc}")
        return 200, {"ok": True, "handled": 1 if identity else 0, "skipped": 0 if identity else 1}
