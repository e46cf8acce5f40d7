"""
Availability rules for a selected date.
"""

from enum import Enum
from typing import List, Optional, Sequence

import pendulum
from pendulum import Date

from .models import BookedSlots, TimeSlot, date_key

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class UnavailableReason(str, Enum):
    """Why a date cannot be booked, in order of precedence."""
    PAST = "past"
    FULLY_BOOKED = "fully_booked"
    CLOSED_DAY = "closed_day"


class AvailabilityResolver:
    """
    Decides which dates and slots can still be booked.

    The resolver reads a ``BookedSlots`` map owned by the caller, so an
    optimistic update to that map is visible on the next query.
    """

    def __init__(
        self,
        time_slots: Sequence[TimeSlot],
        booked_slots: Optional[BookedSlots] = None,
        closed_weekdays: Sequence[int] = (6,),
        timezone: str = "Asia/Kolkata",
    ):
        self.time_slots = list(time_slots)
        self.booked_slots = booked_slots if booked_slots is not None else BookedSlots()
        self.closed_weekdays = tuple(closed_weekdays)  # 0=Monday, 6=Sunday
        self.timezone = timezone

    def today(self) -> Date:
        return pendulum.today(self.timezone).date()

    def is_date_fully_booked(self, day: Date) -> bool:
        return self.booked_slots.count(date_key(day)) >= len(self.time_slots)

    def is_past(self, day: Date, today: Optional[Date] = None) -> bool:
        # No cut-off within the current day: today stays bookable.
        return day < (today or self.today())

    def is_closed_day(self, day: Date) -> bool:
        return day.weekday() in self.closed_weekdays

    def is_booking_allowed(self, day: Date, today: Optional[Date] = None) -> bool:
        return self.unavailable_reason(day, today=today) is None

    def unavailable_reason(self, day: Date, today: Optional[Date] = None) -> Optional[UnavailableReason]:
        """
        Return the single reason a date is not bookable, or None.

        Precedence is past, then fully booked, then closed weekday.
        """
        if self.is_past(day, today=today):
            return UnavailableReason.PAST
        if self.is_date_fully_booked(day):
            return UnavailableReason.FULLY_BOOKED
        if self.is_closed_day(day):
            return UnavailableReason.CLOSED_DAY
        return None

    def unavailable_message(self, day: Date, today: Optional[Date] = None) -> str:
        """Human-readable explanation for a view-only date ("" if bookable)."""
        reason = self.unavailable_reason(day, today=today)
        if reason is UnavailableReason.PAST:
            return "This date is in the past and cannot be booked."
        if reason is UnavailableReason.FULLY_BOOKED:
            return "This date is fully booked."
        if reason is UnavailableReason.CLOSED_DAY:
            return self.closed_day_message()
        return ""

    def available_slots_for_date(self, day: Date) -> List[TimeSlot]:
        booked = self.booked_slots.for_date(date_key(day))
        return [slot for slot in self.time_slots if slot.id not in booked]

    def booked_slots_for_date(self, day: Date) -> List[TimeSlot]:
        booked = self.booked_slots.for_date(date_key(day))
        return [slot for slot in self.time_slots if slot.id in booked]

    def find_slot(self, slot_id: str) -> Optional[TimeSlot]:
        for slot in self.time_slots:
            if slot.id == slot_id:
                return slot
        return None

    def closed_day_message(self) -> str:
        return f"Bookings are not available on {self._closed_day_names()}."

    def _closed_day_names(self) -> str:
        names = [f"{WEEKDAY_NAMES[day]}s" for day in sorted(self.closed_weekdays)]
        if len(names) <= 1:
            return "".join(names)
        return ", ".join(names[:-1]) + " and " + names[-1]
