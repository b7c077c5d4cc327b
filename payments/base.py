from __future__ import annotations

from typing import Protocol

from core.models import BookingSession, PaymentLink


class PaymentLinkProvider(Protocol):
    name: str

    def create_payment_link(self, session: BookingSession, amount: int, reference: str) -> PaymentLink:
        ...
