from __future__ import annotations

from typing import Any, Protocol

from core.models import BookingSession, ReconciliationFlag


class BookingRepositoryProtocol(Protocol):
    def get_session(self, identity: str) -> BookingSession | None: ...

    def create_session(self, identity: str) -> BookingSession: ...

    def save_session(self, session: BookingSession) -> None: ...

    def delete_session(self, identity: str) -> None: ...

    def record_message_id(self, identity: str, message_id: str) -> bool: ...

    def find_session_by_payment_reference(self, reference: str) -> BookingSession | None: ...

    def flag_for_reconciliation(self, identity: str, reason: str, details: dict[str, Any]) -> str: ...

    def list_reconciliation_flags(self, identity: str | None = None) -> list[ReconciliationFlag]: ...
