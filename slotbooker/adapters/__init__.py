"""
Adapters layer - Storage backends (REST API and in-memory mock).
"""

from .api_backend import ApiBookingBackend
from .mock_backend import MockBookingBackend
from .session import ApiSession

__all__ = ["ApiBookingBackend", "ApiSession", "MockBookingBackend"]
