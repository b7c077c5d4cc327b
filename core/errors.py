from __future__ import annotations


class BookingError(RuntimeError):
    pass


class SessionConflictError(BookingError):
    """Raised when a session was modified by another writer since it was loaded."""


class CollaboratorUnavailableError(BookingError):
    pass


class CalendarUnavailableError(CollaboratorUnavailableError):
    pass


class PaymentLinkError(CollaboratorUnavailableError):
    pass


class WhatsAppApiError(BookingError):
    pass


class HttpRequestError(RuntimeError):
    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body
