"""
REST client for the hosted bookings table (PostgREST / Supabase style API).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Union

import requests

from ..config import StoreConfig
from ..domain.exceptions import BookingStoreError, SlotConflictError, StoreConfigurationError
from ..domain.models import BookingRecord

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def mask_email(email: str) -> str:
    """Mask an email address for log output (``u***@example.com``)."""
    if not email or "@" not in email:
        return "***"
    local, domain = email.split("@", 1)
    return f"{local[:1]}***@{domain}"


class RestBookingStore:
    """
    Client for the ``bookings`` table exposed over a REST endpoint.

    The table must carry a unique constraint over ``(date, slot_id)``;
    a violation is reported as HTTP 409 with error code ``23505`` and is
    surfaced as ``SlotConflictError``.
    """

    REST_PATH = "/rest/v1"

    def __init__(self, config: StoreConfig):
        """
        Initialize the store client.

        Args:
            config: Store connection settings

        Raises:
            StoreConfigurationError: If URL or API key is missing
        """
        if not config.is_configured():
            raise StoreConfigurationError(
                "Store URL or API key is missing. Cannot connect to the database."
            )
        self.config = config
        self.base_url = f"{config.url}{self.REST_PATH}/{config.table}"
        self.headers = {
            "apikey": config.api_key,
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }

    async def fetch_bookings(self, first_day: str, last_day: str) -> List[Dict[str, str]]:
        """
        Fetch ``(date, slot_id)`` rows with ``first_day <= date <= last_day``.

        Args:
            first_day: Inclusive lower bound as ``YYYY-MM-DD``
            last_day: Inclusive upper bound as ``YYYY-MM-DD``

        Returns:
            List of rows with ``date`` and ``slot_id`` keys

        Raises:
            BookingStoreError: If the request fails
        """
        return await asyncio.to_thread(self._fetch_bookings, first_day, last_day)

    async def insert_booking(self, record: BookingRecord) -> None:
        """
        Insert one booking row.

        Raises:
            SlotConflictError: If the (date, slot_id) pair is already taken
            BookingStoreError: If the request fails for any other reason
        """
        await asyncio.to_thread(self._insert_booking, record)

    def _fetch_bookings(self, first_day: str, last_day: str) -> List[Dict[str, str]]:
        params = [
            ("select", "date,slot_id"),
            ("date", f"gte.{first_day}"),
            ("date", f"lte.{last_day}"),
        ]
        logger.debug("Fetching bookings for %s to %s", first_day, last_day)

        try:
            response = requests.get(
                self.base_url,
                headers=self.headers,
                params=params,
                timeout=self.config.timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise BookingStoreError(f"Failed to fetch bookings: {e}") from e
        except ValueError as e:
            raise BookingStoreError(f"Invalid response while fetching bookings: {e}") from e

        return self._parse_rows(data)

    def _insert_booking(self, record: BookingRecord) -> None:
        headers = {**self.headers, "Prefer": "return=minimal"}
        logger.info(
            "Saving booking %s %s for %s",
            record.date,
            record.slot_id,
            mask_email(record.email),
        )

        try:
            response = requests.post(
                self.base_url,
                headers=headers,
                json=record.to_row(),
                timeout=self.config.timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise BookingStoreError(f"Failed to save booking: {e}") from e

        if response.ok:
            return

        error = self._error_body(response)
        if response.status_code == 409 or error.get("code") == UNIQUE_VIOLATION:
            raise SlotConflictError(
                f"Slot {record.slot_id} on {record.date} is already booked"
            )

        raise BookingStoreError(
            f"Failed to save booking: HTTP {response.status_code} {error.get('message', '')}".rstrip()
        )

    def check_connection(self) -> Dict[str, Any]:
        """
        Test the connection by reading at most one row.

        Raises:
            BookingStoreError: If connection test fails
        """
        try:
            response = requests.get(
                self.base_url,
                headers=self.headers,
                params={"select": "date", "limit": "1"},
                timeout=self.config.timeout_seconds,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise BookingStoreError(f"Connection test failed: {e}") from e

        return {"url": self.config.url, "table": self.config.table, "status": response.status_code}

    @staticmethod
    def _parse_rows(data: Any) -> List[Dict[str, str]]:
        """
        Keep well-formed rows only.

        Response format:
        [
            {"date": "2025-08-06", "slot_id": "09-10"},
            ...
        ]
        """
        if not isinstance(data, list):
            raise BookingStoreError(f"Unexpected bookings payload: {type(data).__name__}")

        rows: List[Dict[str, str]] = []
        for item in data:
            try:
                rows.append({"date": str(item["date"]), "slot_id": str(item["slot_id"])})
            except (KeyError, TypeError) as e:
                logger.warning("Skipping malformed booking row %r: %s", item, e)
        return rows

    @staticmethod
    def _error_body(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}


@dataclass(frozen=True)
class StoreUnavailable:
    """Stand-in for a store that could not be configured."""
    reason: str


def open_store(config: StoreConfig) -> Union[RestBookingStore, StoreUnavailable]:
    """
    Build the REST store, or describe why it is unavailable.
    """
    try:
        return RestBookingStore(config)
    except StoreConfigurationError as e:
        logger.error("Booking store unavailable: %s", e)
        return StoreUnavailable(reason=str(e))
