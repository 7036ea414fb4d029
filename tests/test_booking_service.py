"""
Tests for the BookingService orchestration layer.
"""

import asyncio
from typing import List

import pendulum
import pytest

from slotbooker.domain.exceptions import BookingConflictError, NotFoundError, SlotUnavailableError
from slotbooker.domain.models import (
    Appointment,
    AvailabilityInputs,
    BookingRequest,
    Service,
    SlotSettings,
    StaffMember,
    WeeklyAvailability,
)
from slotbooker.services.booking import BookingService, build_booking_request

TZ = "America/New_York"


class StubBackend:
    """Minimal stub matching BookingBackendProtocol."""

    def __init__(self, services: List[Service], staff: List[StaffMember], appointments: List[Appointment]):
        self._services = services
        self._staff = staff
        self._appointments = appointments
        self.fetch_calls: List[tuple] = []
        self.committed: List[BookingRequest] = []
        self.reject_commit = False

    async def fetch_availability_inputs(self, service_id, date):
        self.fetch_calls.append((service_id, date.format("YYYY-MM-DD")))
        service = next((s for s in self._services if s.id == service_id), None)
        if service is None:
            raise NotFoundError(service_id)
        return AvailabilityInputs(
            service=service,
            staff=tuple(self._staff),
            appointments=tuple(self._appointments),
        )

    async def commit_appointment(self, request):
        if self.reject_commit:
            raise BookingConflictError("taken")
        self.committed.append(request)
        return Appointment(
            id="appointment-new",
            staff_id=request.staff_id,
            start_time=request.start_time,
            end_time=request.end_time,
            service_id=request.service_id,
        )

    async def list_services(self):
        return list(self._services)

    async def list_staff(self):
        return list(self._staff)


def _staff(staff_id: str, days=range(1, 6), is_active: bool = True) -> StaffMember:
    return StaffMember(
        id=staff_id,
        name=staff_id,
        availability=tuple(WeeklyAvailability.from_strings(day, "09:00", "12:00") for day in days),
        is_active=is_active,
    )


MASSAGE = Service(id="service-1", name="Massage", duration=60, staff_ids={"staff-1", "staff-2", "staff-3"})
RETIRED = Service(id="service-9", name="Retired", duration=30, staff_ids={"staff-1"}, is_active=False)


def _build_service(appointments: List[Appointment] = None, **settings) -> BookingService:
    backend = StubBackend(
        services=[MASSAGE, RETIRED],
        staff=[_staff("staff-1"), _staff("staff-2", is_active=False), _staff("staff-4")],
        appointments=appointments or [],
    )
    return BookingService(backend=backend, settings=SlotSettings(slot_duration=30, timezone=TZ, **settings))


def _appointment(start: str, end: str, staff_id: str = "staff-1") -> Appointment:
    return Appointment(
        id=f"appointment-{start}",
        staff_id=staff_id,
        start_time=pendulum.parse(f"2024-11-25 {start}", tz=TZ),
        end_time=pendulum.parse(f"2024-11-25 {end}", tz=TZ),
    )


def test_find_slots_uses_only_eligible_active_staff():
    """Inactive staff and staff outside the service's list contribute nothing."""
    service = _build_service()

    slots = asyncio.run(service.find_slots("service-1", pendulum.date(2024, 11, 25)))

    assert {slot.staff_id for slot in slots} == {"staff-1"}
    assert [slot.start_time.format("HH:mm") for slot in slots] == ["09:00", "09:30", "10:00", "10:30", "11:00"]


def test_find_slots_filters_booked_by_default():
    service = _build_service(appointments=[_appointment("10:00", "11:00")])

    available = asyncio.run(service.find_slots("service-1", pendulum.date(2024, 11, 25)))
    everything = asyncio.run(
        service.find_slots("service-1", pendulum.date(2024, 11, 25), available_only=False)
    )

    assert [slot.start_time.format("HH:mm") for slot in available] == ["09:00", "09:30", "11:00"]
    assert len(everything) == 5
    assert [slot.is_available for slot in everything] == [True, True, False, False, True]


def test_find_slots_closed_day_is_empty_not_error():
    service = _build_service()

    assert asyncio.run(service.find_slots("service-1", pendulum.date(2024, 11, 24))) == []


def test_find_slots_unknown_service_propagates():
    service = _build_service()

    with pytest.raises(NotFoundError):
        asyncio.run(service.find_slots("service-404", pendulum.date(2024, 11, 25)))


def test_find_slots_for_days_keys_by_date():
    service = _build_service()

    by_day = asyncio.run(service.find_slots_for_days("service-1", pendulum.date(2024, 11, 23), days=3))

    assert [day.isoformat() for day in by_day] == ["2024-11-23", "2024-11-24", "2024-11-25"]
    assert by_day[pendulum.date(2024, 11, 23)] == []
    assert by_day[pendulum.date(2024, 11, 24)] == []
    assert len(by_day[pendulum.date(2024, 11, 25)]) == 5


def test_list_services_hides_inactive():
    service = _build_service()

    assert [s.id for s in asyncio.run(service.list_services())] == ["service-1"]
    assert len(asyncio.run(service.list_services(active_only=False))) == 2


def test_book_commits_offered_slot():
    service = _build_service()
    slots = asyncio.run(service.find_slots("service-1", pendulum.date(2024, 11, 25)))
    request = build_booking_request(
        MASSAGE, slots[0], client_name="John Smith", client_email="john.smith@email.com"
    )

    appointment = asyncio.run(service.book(request))

    assert appointment.start_time == pendulum.datetime(2024, 11, 25, 9, tz=TZ)
    assert appointment.end_time == pendulum.datetime(2024, 11, 25, 10, tz=TZ)
    assert service._backend.committed == [request]


def test_book_rejects_slot_no_longer_offered():
    service = _build_service(appointments=[_appointment("10:00", "11:00")])
    request = BookingRequest(
        service_id="service-1",
        staff_id="staff-1",
        start_time=pendulum.datetime(2024, 11, 25, 10, tz=TZ),
        end_time=pendulum.datetime(2024, 11, 25, 11, tz=TZ),
        client_name="Emily Davis",
        client_email="emily.davis@email.com",
    )

    with pytest.raises(SlotUnavailableError):
        asyncio.run(service.book(request))

    assert service._backend.committed == []


def test_book_propagates_backend_conflict():
    """A race lost at commit time reaches the caller as a conflict."""
    service = _build_service()
    service._backend.reject_commit = True
    request = BookingRequest(
        service_id="service-1",
        staff_id="staff-1",
        start_time=pendulum.datetime(2024, 11, 25, 9, tz=TZ),
        end_time=pendulum.datetime(2024, 11, 25, 10, tz=TZ),
        client_name="Emily Davis",
        client_email="emily.davis@email.com",
    )

    with pytest.raises(BookingConflictError):
        asyncio.run(service.book(request))


def test_book_respects_lead_time():
    service = _build_service(booking_lead_time=2, enforce_lead_time=True)
    request = BookingRequest(
        service_id="service-1",
        staff_id="staff-1",
        start_time=pendulum.datetime(2024, 11, 25, 9, tz=TZ),
        end_time=pendulum.datetime(2024, 11, 25, 10, tz=TZ),
        client_name="Emily Davis",
        client_email="emily.davis@email.com",
    )

    with pytest.raises(SlotUnavailableError):
        asyncio.run(service.book(request, now=pendulum.datetime(2024, 11, 25, 8, tz=TZ)))


def test_book_rejects_request_running_past_offered_slot():
    """An 11:00 start is offered, but only for the service's 60 minutes."""
    service = _build_service()
    request = BookingRequest(
        service_id="service-1",
        staff_id="staff-1",
        start_time=pendulum.datetime(2024, 11, 25, 11, tz=TZ),
        end_time=pendulum.datetime(2024, 11, 25, 16, tz=TZ),
        client_name="Emily Davis",
        client_email="emily.davis@email.com",
    )

    with pytest.raises(SlotUnavailableError):
        asyncio.run(service.book(request))

    assert service._backend.committed == []


def test_book_checks_utc_request_against_local_hours():
    """10:00 UTC is 05:00 in New York, before the staff member starts."""
    service = _build_service()
    start = pendulum.datetime(2024, 11, 25, 10, tz="UTC")
    request = BookingRequest(
        service_id="service-1",
        staff_id="staff-1",
        start_time=start,
        end_time=start.add(minutes=60),
        client_name="Emily Davis",
        client_email="emily.davis@email.com",
    )

    with pytest.raises(SlotUnavailableError):
        asyncio.run(service.book(request))

    assert service._backend.fetch_calls == [("service-1", "2024-11-25")]
    assert service._backend.committed == []


def test_book_accepts_offered_slot_written_in_utc():
    """14:00 UTC is 09:00 in New York, the first offered slot."""
    service = _build_service()
    start = pendulum.datetime(2024, 11, 25, 14, tz="UTC")
    request = BookingRequest(
        service_id="service-1",
        staff_id="staff-1",
        start_time=start,
        end_time=start.add(minutes=60),
        client_name="Emily Davis",
        client_email="emily.davis@email.com",
    )

    asyncio.run(service.book(request))

    assert service._backend.committed == [request]
