"""
Adapters layer - External integrations (hosted bookings table).
"""

from .memory_store import InMemoryBookingStore
from .rest_store import RestBookingStore, StoreUnavailable, open_store

__all__ = ["InMemoryBookingStore", "RestBookingStore", "StoreUnavailable", "open_store"]
