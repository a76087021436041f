"""
Custom exceptions for the booking engine.
Raised in engine.py / lifecycle.py / guest_access.py and caught in views.py
for clean error handling. Each carries the HTTP status the views answer with.
"""


class BookingEngineError(Exception):
    """Base exception for all booking engine errors."""
    status_code = 400


class ValidationError(BookingEngineError):
    """Raised when a request is malformed or misses a required field."""
    status_code = 400


class NotFoundError(BookingEngineError):
    """Raised when a business, service, staff member, booking or guest token does not resolve."""
    status_code = 404


class PermissionDenied(BookingEngineError):
    """Raised when the caller does not own the booking it is acting on."""
    status_code = 403


class SlotUnavailable(BookingEngineError):
    """Raised when an active booking already occupies part of the requested interval."""
    status_code = 409


class DuplicateBookingError(BookingEngineError):
    """Raised when the same party already holds an active booking that day at that business."""
    status_code = 409


class InvalidTransition(BookingEngineError):
    """Raised when a lifecycle event is not allowed from the booking's current status."""
    status_code = 409


class AlreadyCancelled(InvalidTransition):
    """Raised when cancelling a booking that is already CANCELLED."""
    status_code = 409


class PastDateError(BookingEngineError):
    """Raised when creating or rescheduling into a date before today."""
    status_code = 400


class ActionNotAllowed(BookingEngineError):
    """Raised when the guest gateway is asked for anything other than view or cancel."""
    status_code = 400


class ExhaustedRetries(BookingEngineError):
    """Raised when a unique identifier could not be issued within the retry budget."""
    status_code = 503
