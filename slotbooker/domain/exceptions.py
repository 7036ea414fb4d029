"""
Domain-specific exception hierarchy for the booking application.
"""


class BookingError(Exception):
    """Base class for all application-level errors."""


class ConfigurationError(BookingError, ValueError):
    """Raised when business configuration (services, staff hours) is malformed."""


class StorageError(BookingError):
    """Raised when booking data cannot be fetched, parsed or stored."""


class NotFoundError(StorageError):
    """Raised when a requested record does not exist in the store."""


class AuthenticationError(BookingError):
    """Raised when the session is missing or rejected by the API."""


class BookingConflictError(BookingError):
    """Raised when a booking clashes with an existing appointment."""


class SlotUnavailableError(BookingConflictError):
    """Raised when the requested slot is no longer offered."""
