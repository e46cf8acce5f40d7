"""
slotbooker - Reserve a time slot on a shared booking calendar.
"""

__version__ = "1.0.0"
