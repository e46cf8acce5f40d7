"""
In-memory bookings store for running without a hosted database.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ..domain.exceptions import SlotConflictError
from ..domain.models import BookingRecord

logger = logging.getLogger(__name__)


class InMemoryBookingStore:
    """
    Mock store that keeps rows in a list.

    It enforces the same ``(date, slot_id)`` uniqueness as the hosted table,
    so concurrent sessions sharing one instance see real conflicts. Rows can
    be seeded from a JSON file containing a list of booking objects.
    """

    def __init__(self, rows: Optional[Iterable[Dict[str, str]]] = None, seed_file: Optional[Path] = None):
        self.rows: List[Dict[str, str]] = []
        self._keys: set[Tuple[str, str]] = set()

        if seed_file is not None:
            rows = list(rows or []) + self._load_seed_file(seed_file)

        for row in rows or []:
            self._add(dict(row))

    @staticmethod
    def _load_seed_file(seed_file: Path) -> List[Dict[str, str]]:
        """Load seed rows from JSON file."""
        if not seed_file.exists():
            logger.warning("Seed file %s not found, starting empty", seed_file)
            return []

        with open(seed_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, list):
            raise ValueError(f"Seed file {seed_file} must contain a list of bookings")
        return data

    def _add(self, row: Dict[str, str]) -> None:
        key = (row["date"], row["slot_id"])
        if key in self._keys:
            raise SlotConflictError(f"Slot {key[1]} on {key[0]} is already booked")
        self._keys.add(key)
        self.rows.append(row)

    async def fetch_bookings(self, first_day: str, last_day: str) -> List[Dict[str, str]]:
        """Return ``(date, slot_id)`` rows inside the inclusive date range."""
        await asyncio.sleep(0)
        # Date keys are zero-padded, so string order is date order.
        return [
            {"date": row["date"], "slot_id": row["slot_id"]}
            for row in self.rows
            if first_day <= row["date"] <= last_day
        ]

    async def insert_booking(self, record: BookingRecord) -> None:
        """Insert a row, rejecting duplicates like a unique index would."""
        await asyncio.sleep(0)
        self._add(record.to_row())

    def check_connection(self) -> Dict[str, object]:
        return {"url": "memory://", "table": "bookings", "rows": len(self.rows)}
