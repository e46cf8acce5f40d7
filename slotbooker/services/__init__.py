"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_session import BookingSession, BookingStoreProtocol, SessionState

__all__ = ["BookingSession", "BookingStoreProtocol", "SessionState"]
