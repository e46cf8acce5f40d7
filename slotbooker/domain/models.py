"""
Domain models for calendar days, time slots and bookings.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Set

from pendulum import Date


DATE_KEY_FORMAT = "YYYY-MM-DD"


def date_key(day: Date) -> str:
    """Return the canonical ``YYYY-MM-DD`` key for a day."""
    return day.format(DATE_KEY_FORMAT)


def sunday_index(day: Date) -> int:
    """Weekday index with Sunday as 0 and Saturday as 6."""
    return day.isoweekday() % 7


@dataclass(frozen=True)
class TimeSlot:
    """
    A fixed reservation window within one business day.
    """
    id: str
    label: str


@dataclass(frozen=True)
class CalendarDay:
    """
    One cell of the month grid.
    """
    date: Date
    is_current_month: bool
    is_today: bool
    is_past: bool
    is_weekend: bool

    @property
    def key(self) -> str:
        return date_key(self.date)


@dataclass
class BookedSlots:
    """
    Slot ids already reserved, keyed by date key.

    Invariant: a date key is present only if at least one slot is booked
    for that day. Slot ids per day are held in a set, so duplicate rows
    coming back from the store are counted once.
    """
    _slots: Dict[str, Set[str]] = field(default_factory=dict)

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, str]]) -> "BookedSlots":
        """
        Reduce store rows of the form ``{"date": ..., "slot_id": ...}``.
        """
        booked = cls()
        for row in rows:
            booked.record(row["date"], row["slot_id"])
        return booked

    def for_date(self, key: str) -> Set[str]:
        """Return a copy of the booked slot ids for a date key."""
        return set(self._slots.get(key, ()))

    def count(self, key: str) -> int:
        return len(self._slots.get(key, ()))

    def record(self, key: str, slot_id: str) -> None:
        """
        Mark a slot as taken in the local cache.

        Used both when reducing fetched rows and as the optimistic update
        after a successful insert. A later month reload replaces the whole
        map and is authoritative.
        """
        self._slots.setdefault(key, set()).add(slot_id)

    def as_dict(self) -> Dict[str, List[str]]:
        return {key: sorted(ids) for key, ids in self._slots.items()}

    def __contains__(self, key: object) -> bool:
        return key in self._slots

    def __iter__(self) -> Iterator[str]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)


@dataclass
class FormData:
    """Contact details entered by the person booking."""
    name: str = ""
    email: str = ""
    contact_number: str = ""
    college: str = ""


@dataclass(frozen=True)
class BookingRecord:
    """
    A row of the bookings table as sent to the store.
    """
    date: str  # YYYY-MM-DD
    slot_id: str
    name: str
    email: str
    contact_number: str
    college: str

    def to_row(self) -> Dict[str, str]:
        return {
            "date": self.date,
            "slot_id": self.slot_id,
            "name": self.name,
            "email": self.email,
            "contact_number": self.contact_number,
            "college": self.college,
        }


@dataclass(frozen=True)
class BookingConfirmation:
    """Summary shown after a booking was saved."""
    name: str
    date_label: str
    slot_label: str


class SubmissionStatus(str, Enum):
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class SubmissionOutcome:
    """Result of a single submit attempt."""
    status: SubmissionStatus
    message: str
    confirmation: Optional[BookingConfirmation] = None

    @property
    def confirmed(self) -> bool:
        return self.status is SubmissionStatus.CONFIRMED
