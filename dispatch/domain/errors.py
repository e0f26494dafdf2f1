"""
Error taxonomy shared by the lifecycle engine, the HTTP routes and the
real-time channel.

Each error carries the HTTP status it maps to; the API layer renders
``{"detail": message}`` and the WebSocket layer sends ``booking-error``.
"""

from __future__ import annotations


class DispatchError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(DispatchError):
    status_code = 401
    default_message = "Token is not valid"


class Forbidden(DispatchError):
    status_code = 403
    default_message = "Not authorized"


class NotFound(DispatchError):
    status_code = 404
    default_message = "Booking not found"


class Conflict(DispatchError):
    status_code = 409
    default_message = "Booking is no longer available"


class InvalidStateTransition(DispatchError):
    """Raised when a booking status change violates the state machine."""

    status_code = 422
    default_message = "Invalid status transition"


class DeliveryError(DispatchError):
    """Push notification could not be delivered.  Never surfaced to callers."""

    status_code = 502
    default_message = "Notification delivery failed"
