"""
Domain-specific exception hierarchy for the booking application.
"""


class BookingError(Exception):
    """Base class for all application-level errors."""


class StoreConfigurationError(BookingError):
    """Raised when the booking store is missing or misconfigured."""


class BookingStoreError(BookingError):
    """Raised when booking data cannot be fetched or saved."""


class SlotConflictError(BookingStoreError):
    """Raised when the store rejects an insert because the slot is taken."""


class BookingStateError(BookingError):
    """Raised when an action is not permitted in the current session state."""


class SessionBusyError(BookingStateError):
    """Raised when an action would overlap with a pending request."""
