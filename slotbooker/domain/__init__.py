"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import (
    AvailabilityEngine,
    compute_available_slots,
    day_range,
    eligible_staff,
    find_booking_conflict,
    start_of_day,
)
from .models import (
    Appointment,
    AppointmentStatus,
    AvailabilityInputs,
    BookingRequest,
    BusinessHours,
    Client,
    OverlapMode,
    Service,
    SlotSettings,
    StaffMember,
    TimeRange,
    TimeSlot,
    WeeklyAvailability,
)

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "AvailabilityInputs",
    "AvailabilityEngine",
    "BookingRequest",
    "BusinessHours",
    "Client",
    "OverlapMode",
    "Service",
    "SlotSettings",
    "StaffMember",
    "TimeRange",
    "TimeSlot",
    "WeeklyAvailability",
    "compute_available_slots",
    "day_range",
    "eligible_staff",
    "find_booking_conflict",
    "start_of_day",
]
