"""
Booking backend that talks to the business's REST API.
"""

import asyncio
import logging
from datetime import date as date_type
from typing import Any, Dict, List, Optional

import requests

from ..domain.availability import day_range, find_booking_conflict
from ..domain.exceptions import (
    AuthenticationError,
    BookingConflictError,
    NotFoundError,
    StorageError,
)
from ..domain.models import (
    Appointment,
    AvailabilityInputs,
    BookingRequest,
    Service,
    StaffMember,
    TimeRange,
)
from .payloads import (
    booking_request_to_payload,
    parse_appointment,
    parse_list,
    parse_service,
    parse_staff_member,
)
from .session import ApiSession

logger = logging.getLogger(__name__)


class ApiBookingBackend:
    """
    Client for the booking REST API.

    Uses ``/services``, ``/staff`` and ``/appointments``. The blocking
    ``requests`` calls run in a worker thread so the backend satisfies the
    awaitable backend protocol.
    """

    def __init__(
        self,
        session: ApiSession,
        timezone: str = "UTC",
        http: Optional[requests.Session] = None,
        buffer_minutes: int = 0
    ):
        """
        Initialize the API backend.

        Args:
            session: Base URL and bearer token of the API
            timezone: Frame into which returned timestamps are converted
            http: Optional requests session (a fresh one is created otherwise)
            buffer_minutes: Gap required after each appointment when booking
        """
        self.session = session
        self.timezone = timezone
        self.http = http or requests.Session()
        self.buffer_minutes = buffer_minutes

    async def list_services(self) -> List[Service]:
        return await asyncio.to_thread(self._get_services)

    async def list_staff(self) -> List[StaffMember]:
        return await asyncio.to_thread(self._get_staff)

    async def fetch_availability_inputs(self, service_id: str, date: date_type) -> AvailabilityInputs:
        """
        Fetch the service, its staff and the day's appointments.

        Raises:
            NotFoundError: If the service does not exist
            StorageError: If any request fails
        """
        return await asyncio.to_thread(self._fetch_availability_inputs, service_id, date)

    async def commit_appointment(self, request: BookingRequest) -> Appointment:
        """
        Create an appointment.

        The day's appointments are re-checked first; the API enforces the
        same rule and answers 409 when it loses a race.

        Raises:
            BookingConflictError: If the slot is already taken
        """
        return await asyncio.to_thread(self._commit_appointment, request)

    def _fetch_availability_inputs(self, service_id: str, date: date_type) -> AvailabilityInputs:
        service = self._find_service(service_id)
        staff = [member for member in self._get_staff() if member.id in service.staff_ids]
        staff_ids = {member.id for member in staff}

        appointments = [
            appointment for appointment in self._get_appointments(day_range(date, self.timezone))
            if appointment.staff_id in staff_ids
        ]

        logger.debug(
            "Fetched service %s with %d staff and %d appointment(s)",
            service_id, len(staff), len(appointments)
        )
        return AvailabilityInputs(service=service, staff=tuple(staff), appointments=tuple(appointments))

    def _commit_appointment(self, request: BookingRequest) -> Appointment:
        existing = self._get_appointments(day_range(request.start_time, self.timezone))
        conflict = find_booking_conflict(
            request.staff_id, request.time_range, existing, buffer_minutes=self.buffer_minutes
        )
        if conflict is not None:
            raise BookingConflictError(
                f"Staff {request.staff_id} is already booked from "
                f"{conflict.start_time.format('HH:mm')} to {conflict.end_time.format('HH:mm')}"
            )

        data = self._request("POST", "/appointments", json=booking_request_to_payload(request))
        appointment = parse_appointment(data, timezone=self.timezone)
        logger.info("Booked appointment %s for staff %s", appointment.id, appointment.staff_id)
        return appointment

    def _find_service(self, service_id: str) -> Service:
        for service in self._get_services():
            if service.id == service_id:
                return service
        raise NotFoundError(f"Unknown service: {service_id}")

    def _get_services(self) -> List[Service]:
        return parse_list(self._request("GET", "/services"), parse_service)

    def _get_staff(self) -> List[StaffMember]:
        return parse_list(self._request("GET", "/staff"), parse_staff_member)

    def _get_appointments(self, time_range: TimeRange) -> List[Appointment]:
        params = {
            "startDate": time_range.start.in_timezone("UTC").to_iso8601_string(),
            "endDate": time_range.end.in_timezone("UTC").to_iso8601_string(),
        }
        data = self._request("GET", "/appointments", params=params)
        return parse_list(data, parse_appointment, timezone=self.timezone)

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Perform a request and decode the JSON body.

        Raises:
            AuthenticationError: On 401/403
            NotFoundError: On 404
            BookingConflictError: On 409
            StorageError: On any other failure
        """
        url = self.session.url(path)
        logger.debug("%s %s", method, url)

        try:
            response = self.http.request(
                method,
                url,
                headers=self.session.headers,
                params=params,
                json=json,
                timeout=self.session.timeout
            )
        except requests.exceptions.RequestException as e:
            raise StorageError(f"Request to {url} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError(f"Not authorized for {method} {path}; log in again")
        if response.status_code == 404:
            raise NotFoundError(f"Not found: {method} {path}")
        if response.status_code == 409:
            raise BookingConflictError(self._error_message(response) or "Time slot is no longer available")

        try:
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            raise StorageError(f"{method} {path} failed: {self._error_message(response) or e}") from e
        except ValueError as e:
            raise StorageError(f"{method} {path} returned invalid JSON: {e}") from e

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return ""
        if isinstance(body, dict):
            return str(body.get("error") or body.get("message") or "")
        return ""
