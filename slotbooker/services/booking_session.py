"""
Application service driving one booking screen.

The session coordinates the bookings store adapter with the domain-level
grid builder, availability resolver and form validator. The store is
injected through a small protocol so the hosted REST client and the
in-memory store are interchangeable, and tests can stub it.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Sequence

import pendulum
from pendulum import Date

from ..config import AppConfig
from ..domain.availability import AvailabilityResolver
from ..domain.calendar_grid import CalendarGridBuilder, month_bounds, shift_month
from ..domain.exceptions import (
    BookingStateError,
    BookingStoreError,
    SessionBusyError,
    SlotConflictError,
)
from ..domain.models import (
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
from ..domain.validation import FormErrors, FormValidator

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = (
    "This time slot has just been booked by someone else. Please select another slot."
)
FAILURE_MESSAGE = "Could not save your booking. Please try again."
CONFIRMED_MESSAGE = "Booking confirmed."


class BookingStoreProtocol(Protocol):
    """Protocol describing the store behaviour needed by the session."""

    async def fetch_bookings(self, first_day: str, last_day: str) -> List[Dict[str, str]]:
        """Return ``(date, slot_id)`` rows within the inclusive range."""

    async def insert_booking(self, record: BookingRecord) -> None:
        """Insert one row, raising SlotConflictError on a duplicate slot."""


class SessionState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    CONFIRMED = "confirmed"


class BookingSession:
    """
    Holds the transient state of one booking screen.

    Month loading and submission are the only operations that wait on the
    store. While a month is loading, navigation and selection are refused;
    while a booking is being submitted, a second submit is refused.
    """

    def __init__(
        self,
        store: BookingStoreProtocol,
        time_slots: Sequence[TimeSlot],
        validator: Optional[FormValidator] = None,
        closed_weekdays: Sequence[int] = (6,),
        timezone: str = "Asia/Kolkata",
        clock: Optional[Callable[[], Date]] = None,
    ) -> None:
        self._store = store
        self._clock = clock or (lambda: pendulum.today(timezone).date())
        self.timezone = timezone
        self.validator = validator or FormValidator()
        self.grid_builder = CalendarGridBuilder(closed_weekdays=closed_weekdays, timezone=timezone)
        self.resolver = AvailabilityResolver(
            time_slots=time_slots,
            closed_weekdays=closed_weekdays,
            timezone=timezone,
        )

        self.month: Date = self.today().start_of("month")
        self.state = SessionState.IDLE
        self.is_loading = False
        self.selected_date: Optional[Date] = None
        self.selected_slot: Optional[str] = None
        self.form = FormData()
        self.terms_accepted = False
        self.confirmation: Optional[BookingConfirmation] = None
        self.last_error: Optional[str] = None

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        store: BookingStoreProtocol,
        clock: Optional[Callable[[], Date]] = None,
    ) -> "BookingSession":
        validator = FormValidator(
            email_domain=config.email_domain,
            contact_number_digits=config.contact_number_digits,
        )
        return cls(
            store=store,
            time_slots=config.get_time_slots(),
            validator=validator,
            closed_weekdays=config.closed_weekdays,
            timezone=config.timezone,
            clock=clock,
        )

    def today(self) -> Date:
        return self._clock()

    @property
    def booked_slots(self) -> BookedSlots:
        return self.resolver.booked_slots

    # Month data

    async def load_month(self) -> BookedSlots:
        """
        Fetch the booked slots for the visible month.

        A failed fetch is logged and treated as "no bookings known"; the
        store's uniqueness constraint still guards against double booking.
        """
        self._ensure_not_loading()
        self.is_loading = True
        self.selected_date = None
        self.selected_slot = None

        first, last = month_bounds(self.month)
        try:
            rows = await self._store.fetch_bookings(date_key(first), date_key(last))
            booked = BookedSlots.from_rows(rows)
        except BookingStoreError as e:
            logger.warning("Could not load bookings for %s: %s", self.month.format("YYYY-MM"), e)
            booked = BookedSlots()
        finally:
            self.is_loading = False

        self.resolver.booked_slots = booked
        logger.debug("Loaded %d booked day(s) for %s", len(booked), self.month.format("YYYY-MM"))
        return booked

    async def change_month(self, direction: int) -> BookedSlots:
        """Navigate to the previous (-1) or next (+1) month and reload."""
        self._ensure_not_loading()
        self.month = shift_month(self.month, direction)
        return await self.load_month()

    async def go_to_month(self, reference: Date) -> BookedSlots:
        self._ensure_not_loading()
        self.month = reference.start_of("month")
        return await self.load_month()

    def calendar(self) -> List[CalendarDay]:
        return self.grid_builder.build(self.month, today=self.today())

    # Selection

    def select_date(self, day: Date) -> None:
        """
        Select a day of the visible month.

        Past and fully booked days can be selected to view their bookings;
        days outside the month and closed weekdays cannot.
        """
        self._ensure_not_loading()
        if day.year != self.month.year or day.month != self.month.month:
            raise BookingStateError(f"{date_key(day)} is not in the displayed month")
        if self.resolver.is_closed_day(day):
            raise BookingStateError(self.resolver.closed_day_message())

        self.selected_date = day
        self.selected_slot = None

    def select_slot(self, slot_id: str) -> None:
        self._ensure_not_loading()
        if self.selected_date is None:
            raise BookingStateError("Select a date before choosing a time slot")
        if not self.is_booking_allowed():
            raise BookingStateError(self.unavailable_message())

        slot = self.resolver.find_slot(slot_id)
        if slot is None:
            raise BookingStateError(f"Unknown time slot: {slot_id}")
        if slot not in self.available_slots():
            raise BookingStateError(f"Time slot {slot.label} is already booked")

        self.selected_slot = slot_id

    def is_booking_allowed(self) -> bool:
        if self.selected_date is None:
            return False
        return self.resolver.is_booking_allowed(self.selected_date, today=self.today())

    def unavailable_message(self) -> str:
        if self.selected_date is None:
            return ""
        return self.resolver.unavailable_message(self.selected_date, today=self.today())

    def available_slots(self) -> List[TimeSlot]:
        if self.selected_date is None:
            return []
        return self.resolver.available_slots_for_date(self.selected_date)

    # Form

    def update_form(self, **fields: str) -> FormErrors:
        """Set form fields and return the resulting inline errors."""
        for name, value in fields.items():
            if not hasattr(self.form, name):
                raise ValueError(f"Unknown form field: {name}")
            setattr(self.form, name, value)
        return self.errors

    def accept_terms(self, accepted: bool = True) -> None:
        self.terms_accepted = accepted

    @property
    def errors(self) -> FormErrors:
        return self.validator.validate(self.form)

    @property
    def missing_fields(self) -> List[str]:
        return self.validator.missing_fields(self.form, self.selected_date, self.selected_slot)

    @property
    def can_submit(self) -> bool:
        return (
            self.state is SessionState.IDLE
            and not self.is_loading
            and self.is_booking_allowed()
            and self.validator.can_submit(
                self.form,
                self.terms_accepted,
                self.selected_date,
                self.selected_slot,
            )
        )

    # Submission

    async def submit(self) -> SubmissionOutcome:
        """
        Save the booking with exactly one store write.

        Raises:
            SessionBusyError: If a submission is already in flight
            BookingStateError: If the submit gate is closed
        """
        if self.state is SessionState.SUBMITTING:
            raise SessionBusyError("A booking is already being submitted")
        if not self.can_submit:
            raise BookingStateError(self.blocked_reason)

        day = self.selected_date
        slot = self.resolver.find_slot(self.selected_slot)
        record = BookingRecord(
            date=date_key(day),
            slot_id=slot.id,
            name=self.form.name.strip(),
            email=self.form.email.strip(),
            contact_number=self.form.contact_number,
            college=self.form.college,
        )

        self.state = SessionState.SUBMITTING
        self.last_error = None
        try:
            await self._store.insert_booking(record)
        except SlotConflictError as e:
            logger.warning("Booking conflict: %s", e)
            return self._fail(CONFLICT_MESSAGE)
        except BookingStoreError as e:
            logger.error("Booking could not be saved: %s", e)
            return self._fail(FAILURE_MESSAGE)
        except Exception:
            logger.exception("Unexpected error while saving booking")
            return self._fail(FAILURE_MESSAGE)

        # Optimistic update until the next month reload.
        self.booked_slots.record(record.date, record.slot_id)
        self.confirmation = BookingConfirmation(
            name=record.name,
            date_label=day.format("dddd, MMMM D"),
            slot_label=slot.label,
        )
        self.state = SessionState.CONFIRMED
        logger.info("Booking confirmed for %s %s", record.date, record.slot_id)

        return SubmissionOutcome(
            status=SubmissionStatus.CONFIRMED,
            message=CONFIRMED_MESSAGE,
            confirmation=self.confirmation,
        )

    def reset(self) -> None:
        """Start another booking; cached month data is kept."""
        if self.state is SessionState.SUBMITTING:
            raise SessionBusyError("Cannot reset while a booking is being submitted")
        self.state = SessionState.IDLE
        self.selected_date = None
        self.selected_slot = None
        self.form = FormData()
        self.terms_accepted = False
        self.confirmation = None
        self.last_error = None

    def _fail(self, message: str) -> SubmissionOutcome:
        self.state = SessionState.IDLE
        self.last_error = message
        return SubmissionOutcome(status=SubmissionStatus.FAILED, message=message)

    @property
    def blocked_reason(self) -> str:
        """Why the submit gate is closed, for display."""
        if self.state is SessionState.CONFIRMED:
            return "Booking already confirmed; start a new booking first"
        if self.is_loading:
            return "Bookings are still loading"
        if self.selected_date is not None and not self.is_booking_allowed():
            return self.unavailable_message()
        missing = self.missing_fields
        if missing:
            return f"Missing required fields: {', '.join(missing)}"
        errors = self.errors
        if errors:
            return "; ".join(errors.values())
        if not self.terms_accepted:
            return "The terms and conditions must be accepted"
        return "Booking cannot be submitted"

    def _ensure_not_loading(self) -> None:
        if self.is_loading:
            raise SessionBusyError("Bookings for the month are still loading")
