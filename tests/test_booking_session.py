"""
Tests for the BookingSession orchestration layer.
"""

import asyncio
from typing import Dict, List

import pendulum
import pytest

from slotbooker.adapters.memory_store import InMemoryBookingStore
from slotbooker.config import AppConfig
from slotbooker.domain.exceptions import (
    BookingStateError,
    BookingStoreError,
    SessionBusyError,
    SlotConflictError,
)
from slotbooker.domain.models import BookingRecord, SubmissionStatus
from slotbooker.services.booking_session import (
    CONFLICT_MESSAGE,
    FAILURE_MESSAGE,
    BookingSession,
    SessionState,
)

TODAY = pendulum.date(2025, 8, 4)  # Monday
WEDNESDAY = pendulum.date(2025, 8, 6)
SLOT_IDS = ["09-10", "10-11", "11-12", "14-15", "15-16", "16-17"]


class StubBookingStore:
    """Minimal stub matching BookingStoreProtocol."""

    def __init__(self, rows: List[Dict[str, str]] = None, insert_error: Exception = None,
                 fetch_error: Exception = None):
        self._rows = rows or []
        self._insert_error = insert_error
        self._fetch_error = fetch_error
        self.fetch_calls: List[tuple] = []
        self.inserted: List[BookingRecord] = []

    async def fetch_bookings(self, first_day, last_day):
        self.fetch_calls.append((first_day, last_day))
        if self._fetch_error:
            raise self._fetch_error
        return list(self._rows)

    async def insert_booking(self, record):
        self.inserted.append(record)
        if self._insert_error:
            raise self._insert_error


class BlockingStore(StubBookingStore):
    """Store whose fetch waits until released."""

    def __init__(self):
        super().__init__()
        self.release = None

    async def fetch_bookings(self, first_day, last_day):
        self.release = asyncio.Event()
        await self.release.wait()
        return await super().fetch_bookings(first_day, last_day)


class BlockingInsertStore(StubBookingStore):
    """Store whose insert waits until released."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def insert_booking(self, record):
        self.inserted.append(record)
        await self.release.wait()


def _build_session(store) -> BookingSession:
    return BookingSession.from_config(AppConfig(), store, clock=lambda: TODAY)


def _fill(session: BookingSession, day=WEDNESDAY, slot_id="09-10", name="Asha") -> None:
    session.select_date(day)
    session.select_slot(slot_id)
    session.update_form(
        name=name,
        email="asha@jkkn.ac.in",
        contact_number="9876543210",
        college="JKKN College of Pharmacy",
    )
    session.accept_terms()


def _rows(day_key: str, slot_ids) -> List[Dict[str, str]]:
    return [{"date": day_key, "slot_id": slot_id} for slot_id in slot_ids]


class TestMonthLoading:
    """Tests for fetching a month's bookings."""

    def test_load_month_queries_month_bounds(self):
        store = StubBookingStore(rows=_rows("2025-08-06", ["09-10"]))
        session = _build_session(store)

        booked = asyncio.run(session.load_month())

        assert store.fetch_calls == [("2025-08-01", "2025-08-31")]
        assert booked.for_date("2025-08-06") == {"09-10"}
        assert not session.is_loading

    def test_change_month_refetches_next_month(self):
        store = StubBookingStore()
        session = _build_session(store)

        asyncio.run(session.load_month())
        asyncio.run(session.change_month(1))
        asyncio.run(session.change_month(-2))

        assert store.fetch_calls[1] == ("2025-09-01", "2025-09-30")
        assert store.fetch_calls[2] == ("2025-07-01", "2025-07-31")

    def test_fetch_error_degrades_to_empty_map(self):
        store = StubBookingStore(fetch_error=BookingStoreError("boom"))
        session = _build_session(store)

        booked = asyncio.run(session.load_month())

        assert len(booked) == 0
        assert not session.is_loading

    def test_load_month_clears_selection(self):
        session = _build_session(StubBookingStore())
        asyncio.run(session.load_month())
        session.select_date(WEDNESDAY)

        asyncio.run(session.change_month(1))

        assert session.selected_date is None

    def test_selection_refused_while_loading(self):
        """Navigation and selection are disabled during a fetch."""
        store = BlockingStore()
        session = _build_session(store)

        async def scenario():
            task = asyncio.create_task(session.load_month())
            await asyncio.sleep(0)
            assert session.is_loading
            with pytest.raises(SessionBusyError):
                session.select_date(WEDNESDAY)
            with pytest.raises(SessionBusyError):
                await session.change_month(1)
            store.release.set()
            await task

        asyncio.run(scenario())

        assert not session.is_loading
        assert store.fetch_calls == [("2025-08-01", "2025-08-31")]

    def test_calendar_uses_visible_month(self):
        session = _build_session(StubBookingStore())

        days = session.calendar()

        assert len(days) == 42
        assert sum(day.is_today for day in days) == 1


class TestSelection:
    """Tests for date and slot selection."""

    def test_date_outside_month_is_refused(self):
        session = _build_session(StubBookingStore())
        asyncio.run(session.load_month())

        with pytest.raises(BookingStateError):
            session.select_date(pendulum.date(2025, 9, 3))

    def test_sunday_is_refused(self):
        session = _build_session(StubBookingStore())
        asyncio.run(session.load_month())

        with pytest.raises(BookingStateError, match="Sundays"):
            session.select_date(pendulum.date(2025, 8, 10))

    def test_past_date_is_view_only(self):
        session = _build_session(StubBookingStore())
        asyncio.run(session.load_month())

        session.select_date(pendulum.date(2025, 8, 1))

        assert not session.is_booking_allowed()
        assert session.unavailable_message() == "This date is in the past and cannot be booked."
        with pytest.raises(BookingStateError):
            session.select_slot("09-10")

    def test_booked_slot_cannot_be_selected(self):
        session = _build_session(StubBookingStore(rows=_rows("2025-08-06", ["09-10"])))
        asyncio.run(session.load_month())
        session.select_date(WEDNESDAY)

        with pytest.raises(BookingStateError, match="already booked"):
            session.select_slot("09-10")

        session.select_slot("10-11")
        assert session.selected_slot == "10-11"

    def test_unknown_form_field_is_rejected(self):
        session = _build_session(StubBookingStore())

        with pytest.raises(ValueError):
            session.update_form(event_name="x")

    def test_update_form_returns_inline_errors(self):
        session = _build_session(StubBookingStore())

        errors = session.update_form(email="a@gmail.com")

        assert errors == {"email": "Email must end with @jkkn.ac.in"}


class TestSubmission:
    """Tests for the submission state machine."""

    def test_successful_submit_confirms_and_updates_cache(self):
        store = StubBookingStore()
        session = _build_session(store)
        asyncio.run(session.load_month())
        _fill(session)

        assert session.can_submit
        outcome = asyncio.run(session.submit())

        assert outcome.status is SubmissionStatus.CONFIRMED
        assert session.state is SessionState.CONFIRMED
        assert len(store.inserted) == 1
        assert store.inserted[0].date == "2025-08-06"
        assert store.inserted[0].slot_id == "09-10"
        assert session.booked_slots.for_date("2025-08-06") == {"09-10"}
        assert outcome.confirmation.name == "Asha"
        assert outcome.confirmation.date_label == "Wednesday, August 6"
        assert outcome.confirmation.slot_label == "9:00 AM - 10:00 AM"
        assert not session.can_submit

    def test_last_slot_makes_date_fully_booked_without_refetch(self):
        store = StubBookingStore(rows=_rows("2025-08-06", SLOT_IDS[:5]))
        session = _build_session(store)
        asyncio.run(session.load_month())
        session.select_date(WEDNESDAY)

        assert session.is_booking_allowed()
        assert [slot.id for slot in session.available_slots()] == ["16-17"]

        _fill(session, slot_id="16-17")
        asyncio.run(session.submit())

        assert session.resolver.is_date_fully_booked(WEDNESDAY)
        assert not session.resolver.is_booking_allowed(WEDNESDAY, today=TODAY)
        assert len(store.fetch_calls) == 1

    def test_conflict_returns_to_idle_with_conflict_message(self):
        store = StubBookingStore(insert_error=SlotConflictError("taken"))
        session = _build_session(store)
        asyncio.run(session.load_month())
        _fill(session)

        outcome = asyncio.run(session.submit())

        assert outcome.status is SubmissionStatus.FAILED
        assert outcome.message == CONFLICT_MESSAGE
        assert session.state is SessionState.IDLE
        assert session.last_error == CONFLICT_MESSAGE
        assert session.booked_slots.for_date("2025-08-06") == set()

    def test_other_store_error_is_generic_and_retryable(self):
        store = StubBookingStore(insert_error=BookingStoreError("HTTP 500"))
        session = _build_session(store)
        asyncio.run(session.load_month())
        _fill(session)

        outcome = asyncio.run(session.submit())

        assert outcome.message == FAILURE_MESSAGE
        assert session.state is SessionState.IDLE
        assert session.can_submit
        assert len(store.inserted) == 1  # no automatic retry

    def test_submit_refused_when_gate_closed(self):
        store = StubBookingStore()
        session = _build_session(store)
        asyncio.run(session.load_month())
        _fill(session)
        session.accept_terms(False)

        with pytest.raises(BookingStateError, match="terms"):
            asyncio.run(session.submit())
        assert store.inserted == []

    def test_submit_refused_without_slot(self):
        session = _build_session(StubBookingStore())
        asyncio.run(session.load_month())
        session.select_date(WEDNESDAY)

        with pytest.raises(BookingStateError, match="slot"):
            asyncio.run(session.submit())

    def test_reset_clears_transient_state_but_keeps_cache(self):
        store = StubBookingStore()
        session = _build_session(store)
        asyncio.run(session.load_month())
        _fill(session)
        asyncio.run(session.submit())

        session.reset()

        assert session.state is SessionState.IDLE
        assert session.selected_date is None
        assert session.selected_slot is None
        assert session.form.name == ""
        assert not session.terms_accepted
        assert session.confirmation is None
        assert session.booked_slots.for_date("2025-08-06") == {"09-10"}
        assert len(store.fetch_calls) == 1

    def test_concurrent_submissions_for_same_slot(self):
        """Two sessions racing for one slot: one confirmed, one conflict."""
        store = InMemoryBookingStore()
        first = _build_session(store)
        second = _build_session(store)

        async def scenario():
            await first.load_month()
            await second.load_month()
            _fill(first, name="Asha")
            _fill(second, name="Ravi")
            return await asyncio.gather(first.submit(), second.submit())

        outcomes = asyncio.run(scenario())

        statuses = sorted(outcome.status.value for outcome in outcomes)
        assert statuses == ["confirmed", "failed"]
        failed = next(outcome for outcome in outcomes if not outcome.confirmed)
        assert failed.message == CONFLICT_MESSAGE
        assert len(store.rows) == 1

    def test_unexpected_store_error_returns_to_idle(self):
        """Errors outside the store hierarchy still end in a retryable failure."""
        store = StubBookingStore(insert_error=ConnectionResetError("socket closed"))
        session = _build_session(store)
        asyncio.run(session.load_month())
        _fill(session)

        outcome = asyncio.run(session.submit())

        assert outcome.status is SubmissionStatus.FAILED
        assert outcome.message == FAILURE_MESSAGE
        assert session.state is SessionState.IDLE
        assert session.can_submit
        session.reset()
        assert session.state is SessionState.IDLE

    def test_second_submit_refused_while_first_in_flight(self):
        """The submit control stays disabled until the write completes."""
        store = BlockingInsertStore()
        session = _build_session(store)
        asyncio.run(session.load_month())
        _fill(session)

        async def scenario():
            task = asyncio.create_task(session.submit())
            await asyncio.sleep(0)
            assert session.state is SessionState.SUBMITTING
            assert not session.can_submit
            with pytest.raises(SessionBusyError):
                await session.submit()
            store.release.set()
            return await task

        outcome = asyncio.run(scenario())

        assert outcome.confirmed
        assert len(store.inserted) == 1

    def test_blocked_reason_names_invalid_field(self):
        session = _build_session(StubBookingStore())
        asyncio.run(session.load_month())
        _fill(session)
        session.update_form(email="asha@gmail.com")

        assert not session.can_submit
        assert session.blocked_reason == "Email must end with @jkkn.ac.in"
