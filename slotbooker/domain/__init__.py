"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityResolver, UnavailableReason
from .calendar_grid import CalendarGridBuilder, month_bounds, shift_month
from .models import (
    BookedSlots,
    BookingConfirmation,
    BookingRecord,
    CalendarDay,
    FormData,
    SubmissionOutcome,
    SubmissionStatus,
    TimeSlot,
    date_key,
)
from .validation import FormValidator

__all__ = [
    "AvailabilityResolver",
    "UnavailableReason",
    "CalendarGridBuilder",
    "month_bounds",
    "shift_month",
    "BookedSlots",
    "BookingConfirmation",
    "BookingRecord",
    "CalendarDay",
    "FormData",
    "SubmissionOutcome",
    "SubmissionStatus",
    "TimeSlot",
    "date_key",
    "FormValidator",
]
