from __future__ import annotations

import base64
from typing import Any

from core.errors import HttpRequestError, PaymentLinkError
from core.http_client import HttpJsonClient, UrllibHttpJsonClient
from core.models import BookingSession, PaymentLink


class RazorpayPaymentLinks:
    name = "razorpay"

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_base_url: str = "https://api.razorpay.com",
        currency: str = "INR",
        callback_url: str | None = None,
        timeout_sec: float = 10.0,
        http_client: HttpJsonClient | None = None,
    ) -> None:
        self.key_id = (key_id or "").strip()
        self.key_secret = (key_secret or "").strip()
        self.api_base_url = (api_base_url or "https://api.razorpay.com").rstrip("/")
        self.currency = (currency or "INR").upper()
        self.callback_url = (callback_url or "").strip() or None
        self.timeout_sec = float(timeout_sec)
        self.http_client = http_client or UrllibHttpJsonClient()

    def create_payment_link(self, session: BookingSession, amount: int, reference: str) -> PaymentLink:
        if not self.key_id or not self.key_secret:
            raise PaymentLinkError("payments.razorpay.key_id and key_secret are required")
        payload: dict[str, Any] = {
            # smallest currency unit
            "amount": int(amount) * 100,
            "currency": self.currency,
            "reference_id": reference,
            "description": _description(session),
            "customer": {"name": session.contact_name or "", "contact": f"+{session.identity.lstrip('+')}"},
            "notify": {"sms": False, "email": False},
            "notes": {"reference": reference, "identity": session.identity},
        }
        if self.callback_url:
            payload["callback_url"] = self.callback_url
            payload["callback_method"] = "get"

        token = base64.b64encode(f"{self.key_id}:{self.key_secret}".encode("utf-8")).decode("ascii")
        try:
            response = self.http_client.post_json(
                f"{self.api_base_url}/v1/payment_links",
                payload,
                headers={"Authorization": f"Basic {token}"},
                timeout_sec=self.timeout_sec,
            )
        except HttpRequestError as exc:
            raise PaymentLinkError(f"razorpay payment link failed: {exc}") from exc

        url = str(response.get("short_url", "") or "").strip()
        if not url:
            raise PaymentLinkError("razorpay response has no short_url")
        return PaymentLink(url=url, reference=reference, link_id=str(response.get("id", "") or "") or None)


def _description(session: BookingSession) -> str:
    parts = [session.sport, session.venue, session.date, session.time_slot]
    return " | ".join(str(part) for part in parts if part)[:2048] or "Court booking"
