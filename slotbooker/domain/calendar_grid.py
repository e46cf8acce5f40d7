"""
Month grid generation for the booking calendar.

Pure domain logic: given a reference day, produce the 42 cells of a
Sunday-first 6x7 grid with their display flags.
"""

from typing import List, Optional, Sequence, Tuple

import pendulum
from pendulum import Date

from .models import CalendarDay, date_key, sunday_index

GRID_ROWS = 6
GRID_COLUMNS = 7
GRID_SIZE = GRID_ROWS * GRID_COLUMNS


def month_bounds(reference: Date) -> Tuple[Date, Date]:
    """Return the first and last day of the reference month."""
    first = reference.start_of("month")
    last = first.add(days=first.days_in_month - 1)
    return first, last


def shift_month(reference: Date, direction: int) -> Date:
    """
    Move to the first day of a neighbouring month.

    ``direction`` is +1 for the next month and -1 for the previous one.
    """
    first = reference.start_of("month")
    if direction >= 0:
        return first.add(months=direction)
    return first.subtract(months=-direction)


class CalendarGridBuilder:
    """
    Builds the month view shown by the calendar.

    Algorithm:
    1. Left-pad with trailing days of the previous month so the 1st lands
       in its weekday column (Sunday is column 0)
    2. Emit every day of the reference month
    3. Right-pad with the following days until the grid holds 42 cells
    """

    def __init__(self, closed_weekdays: Sequence[int] = (6,), timezone: str = "Asia/Kolkata"):
        self.closed_weekdays = tuple(closed_weekdays)  # 0=Monday, 6=Sunday
        self.timezone = timezone

    def today(self) -> Date:
        return pendulum.today(self.timezone).date()

    def build(self, reference: Date, today: Optional[Date] = None) -> List[CalendarDay]:
        """
        Build the 42 grid cells for the month containing ``reference``.

        Args:
            reference: Any day within the month to display
            today: Day treated as today; defaults to the current day in the
                configured timezone

        Returns:
            List of CalendarDay objects, row by row
        """
        today = today or self.today()
        first, last = month_bounds(reference)

        days: List[CalendarDay] = []

        left_pad = sunday_index(first)
        current = first.subtract(days=left_pad)
        for _ in range(left_pad):
            days.append(self._make_day(current, today, in_month=False))
            current = current.add(days=1)

        current = first
        while current <= last:
            days.append(self._make_day(current, today, in_month=True))
            current = current.add(days=1)

        # Walk forward one day at a time; a short month may need more
        # than one following month's worth of cells.
        while len(days) < GRID_SIZE:
            days.append(self._make_day(current, today, in_month=False))
            current = current.add(days=1)

        return days

    def rows(self, reference: Date, today: Optional[Date] = None) -> List[List[CalendarDay]]:
        """Return the grid split into weeks."""
        days = self.build(reference, today=today)
        return [days[i:i + GRID_COLUMNS] for i in range(0, GRID_SIZE, GRID_COLUMNS)]

    def _make_day(self, day: Date, today: Date, in_month: bool) -> CalendarDay:
        return CalendarDay(
            date=day,
            is_current_month=in_month,
            is_today=date_key(day) == date_key(today),
            is_past=day < today,
            is_weekend=day.weekday() in self.closed_weekdays,
        )
