"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking import BookingBackendProtocol, BookingService, build_booking_request

__all__ = ["BookingBackendProtocol", "BookingService", "build_booking_request"]
