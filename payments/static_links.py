from __future__ import annotations

from urllib.parse import urlencode

from core.models import BookingSession, PaymentLink

DEFAULT_BASE_URL = "https://example-payments.local/pay"


class StaticPaymentLinks:
    """Builds a deterministic link per reference; the gateway is expected to echo the reference back."""

    name = "static"

    def __init__(self, base_url: str = DEFAULT_BASE_URL) -> None:
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("?")
        self.issued: list[PaymentLink] = []

    def create_payment_link(self, session: BookingSession, amount: int, reference: str) -> PaymentLink:
        query = urlencode({"ref": reference, "amount": int(amount)})
        link = PaymentLink(url=f"{self.base_url}?{query}", reference=reference)
        self.issued.append(link)
        return link
