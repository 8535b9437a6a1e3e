"""
Booking Module

Public scheduling for booking types:
- slots.py: pure slot generation (availability rules + bookings + buffers)
- service.py: database-backed slot lookup and booking creation
- routes.py: /booking endpoints
"""

from .slots import (
    AvailabilityRule,
    Booking,
    BookingTypeConfig,
    Slot,
    compute_slots,
    day_of_week,
    is_blocked,
    overlaps,
    parse_time_of_day,
)

__all__ = [
    "AvailabilityRule",
    "Booking",
    "BookingTypeConfig",
    "Slot",
    "compute_slots",
    "day_of_week",
    "is_blocked",
    "overlaps",
    "parse_time_of_day",
]
