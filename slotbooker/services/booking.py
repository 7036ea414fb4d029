"""
Application services for browsing availability and booking appointments.

The service fetches a snapshot of the business's records through a backend
adapter and delegates the slot computation to the domain-level
``AvailabilityEngine``. Any storage backend that follows
``BookingBackendProtocol`` can be plugged in: the REST API client in
production, the in-memory mock in demos and tests.
"""

from __future__ import annotations

import logging
from datetime import date as date_type
from typing import Dict, List, Optional, Protocol

from pendulum import Date, DateTime

from ..domain.availability import AvailabilityEngine, eligible_staff, start_of_day
from ..domain.exceptions import SlotUnavailableError
from ..domain.models import (
    Appointment,
    AvailabilityInputs,
    BookingRequest,
    Service,
    SlotSettings,
    StaffMember,
    TimeSlot,
)

logger = logging.getLogger(__name__)


class BookingBackendProtocol(Protocol):
    """Protocol describing the storage behaviour needed by the booking service."""

    async def fetch_availability_inputs(self, service_id: str, date: date_type) -> AvailabilityInputs:
        """Return the service, its staff and the appointments on that day."""

    async def commit_appointment(self, request: BookingRequest) -> Appointment:
        """Store an appointment, rejecting it if it clashes with an existing one."""

    async def list_services(self) -> List[Service]:
        """Return all services."""

    async def list_staff(self) -> List[StaffMember]:
        """Return the staff roster."""


def build_booking_request(
    service: Service,
    slot: TimeSlot,
    *,
    client_name: str,
    client_email: str,
    client_phone: str = "",
    notes: str = "",
) -> BookingRequest:
    """Turn a chosen slot into a booking request lasting the service's duration."""
    return BookingRequest(
        service_id=service.id,
        staff_id=slot.staff_id,
        start_time=slot.start_time,
        end_time=slot.start_time.add(minutes=service.duration),
        client_name=client_name,
        client_email=client_email,
        client_phone=client_phone,
        notes=notes,
    )


class BookingService:
    """
    Orchestrates snapshot retrieval, slot computation and booking.

    Slots returned here are advisory: the backend repeats the conflict check
    when the appointment is committed.
    """

    def __init__(self, backend: BookingBackendProtocol, settings: SlotSettings) -> None:
        self._backend = backend
        self._settings = settings
        self._engine = AvailabilityEngine(settings)

    @property
    def settings(self) -> SlotSettings:
        return self._settings

    async def list_services(self, active_only: bool = True) -> List[Service]:
        services = await self._backend.list_services()
        return [service for service in services if service.is_active or not active_only]

    async def list_staff(self, active_only: bool = True) -> List[StaffMember]:
        staff = await self._backend.list_staff()
        return [member for member in staff if member.is_active or not active_only]

    async def find_slots(
        self,
        service_id: str,
        date: date_type,
        *,
        now: Optional[DateTime] = None,
        available_only: bool = True,
    ) -> List[TimeSlot]:
        """
        Compute the slots for a service on one day.

        Args:
            service_id: Service to book
            date: Requested day
            now: Reference instant for lead-time filtering
            available_only: Drop slots that clash with existing appointments

        Returns:
            Slots grouped by staff member, ascending within each staff member
        """
        inputs = await self._backend.fetch_availability_inputs(service_id, date)
        return self.calculate_slots(inputs, date, now=now, available_only=available_only)

    async def find_slots_for_days(
        self,
        service_id: str,
        start_date: date_type,
        days: int = 14,
        *,
        now: Optional[DateTime] = None,
        available_only: bool = True,
    ) -> Dict[Date, List[TimeSlot]]:
        """Compute slots for consecutive days, keyed by date."""
        first_day = start_of_day(start_date, self._settings.timezone)
        result: Dict[Date, List[TimeSlot]] = {}

        for offset in range(days):
            day = first_day.add(days=offset)
            result[day.date()] = await self.find_slots(
                service_id, day, now=now, available_only=available_only
            )

        return result

    def calculate_slots(
        self,
        inputs: AvailabilityInputs,
        date: date_type,
        *,
        now: Optional[DateTime] = None,
        available_only: bool = True,
    ) -> List[TimeSlot]:
        """Run the availability engine on an already fetched snapshot."""
        candidates = eligible_staff(inputs.service, inputs.staff)

        slots = self._engine.compute_available_slots(
            service=inputs.service,
            candidate_staff=candidates,
            appointments=inputs.appointments,
            date=date,
            now=now,
        )

        if available_only:
            slots = [slot for slot in slots if slot.is_available]

        logger.debug(
            "Service %s on %s: %d slot(s) across %d staff",
            inputs.service.id, start_of_day(date, self._settings.timezone).to_date_string(),
            len(slots), len(candidates)
        )
        return slots

    async def book(self, request: BookingRequest, *, now: Optional[DateTime] = None) -> Appointment:
        """
        Book an appointment after confirming the slot is still offered.

        The request must match an offered slot exactly: same staff member,
        same start and the service's own end. The day is looked up in the
        business timezone whatever frame the request was written in.

        Raises:
            SlotUnavailableError: If the slot is no longer in the availability
            BookingConflictError: If the backend rejects the commit
        """
        local_start = request.start_time.in_timezone(self._settings.timezone)
        offered = await self.find_slots(request.service_id, local_start, now=now)
        matching = [
            slot for slot in offered
            if slot.staff_id == request.staff_id
            and slot.start_time == request.start_time
            and slot.end_time == request.end_time
        ]

        if not matching:
            raise SlotUnavailableError(
                f"{local_start.format('YYYY-MM-DD HH:mm')} is not available "
                f"with staff {request.staff_id}; please choose another time"
            )

        return await self._backend.commit_appointment(request)
