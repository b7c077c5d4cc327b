from __future__ import annotations

from booking.repository_interface import BookingRepositoryProtocol
from core.models import BookingSession


class IdempotencyGuard:
    def __init__(self, repository: BookingRepositoryProtocol) -> None:
        self.repository = repository

    def admit(self, session: BookingSession, message_id: str | None) -> bool:
        """Record ``message_id`` on the session, or reject it as a redelivery.

        The record is written before the transition runs so that any external
        call made while handling the message happens at most once.
        """
        key = (message_id or "").strip()
        if not key:
            return True
        if session.last_processed_message_id == key:
            print(f"duplicate-delivery-ignored identity={session.identity} message_id={key}")
            return False
        if not self.repository.record_message_id(session.identity, key):
            print(f"duplicate-delivery-ignored identity={session.identity} message_id={key} raced=true")
            return False
        session.last_processed_message_id = key
        return True
