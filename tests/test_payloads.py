"""
Tests for JSON payload conversion.
"""

import pendulum
import pytest

from slotbooker.adapters.payloads import (
    booking_request_to_payload,
    parse_appointment,
    parse_business_hours,
    parse_datetime,
    parse_service,
    parse_slot_settings,
    parse_staff_member,
    time_slot_to_payload,
)
from slotbooker.domain.exceptions import ConfigurationError, StorageError
from slotbooker.domain.models import AppointmentStatus, BookingRequest, OverlapMode, SlotSettings, TimeSlot

TZ = "America/New_York"


def test_parse_service():
    service = parse_service({
        "id": "service-5",
        "name": "Hot Stone Therapy",
        "duration": 75,
        "price": 140,
        "staffIds": ["staff-1"],
        "isActive": False,
    })

    assert service.duration == 75
    assert service.staff_ids == frozenset({"staff-1"})
    assert not service.is_active
    assert service.price == 140.0


def test_parse_service_missing_duration():
    with pytest.raises(StorageError, match="service-1"):
        parse_service({"id": "service-1", "name": "Massage"})


def test_parse_service_zero_duration_is_configuration_error():
    with pytest.raises(ConfigurationError):
        parse_service({"id": "service-1", "name": "Massage", "duration": 0})


def test_parse_staff_member_with_availability():
    member = parse_staff_member({
        "id": "staff-3",
        "name": "Sarah Johnson",
        "role": "Esthetician",
        "availability": [
            {"dayOfWeek": 0, "startTime": "10:00", "endTime": "18:00"},
            {"dayOfWeek": 5, "startTime": "13:00", "endTime": "21:00"},
        ],
    })

    assert member.is_active
    assert member.availability_for(5).start_time.hour == 13
    assert member.availability_for(1) is None


def test_parse_staff_member_inverted_window():
    """An inverted window is reported as a configuration problem."""
    with pytest.raises(ConfigurationError, match="Monday"):
        parse_staff_member({
            "id": "staff-1",
            "name": "Maria",
            "availability": [{"dayOfWeek": 1, "startTime": "17:00", "endTime": "09:00"}],
        })


def test_parse_staff_member_incomplete_entry():
    with pytest.raises(StorageError, match="staff-1"):
        parse_staff_member({"id": "staff-1", "availability": [{"dayOfWeek": 1}]})


def test_parse_appointment_converts_timezone():
    appointment = parse_appointment(
        {
            "id": "apt-1",
            "staffId": "staff-1",
            "startTime": "2024-11-25T15:00:00.000Z",
            "endTime": "2024-11-25T16:00:00.000Z",
            "status": "no-show",
        },
        timezone=TZ,
    )

    assert appointment.start_time == pendulum.datetime(2024, 11, 25, 10, tz=TZ)
    assert appointment.start_time.timezone_name == TZ
    assert appointment.status is AppointmentStatus.NO_SHOW


def test_parse_appointment_unknown_status():
    with pytest.raises(StorageError):
        parse_appointment({
            "id": "apt-1",
            "staffId": "staff-1",
            "startTime": "2024-11-25T15:00:00Z",
            "endTime": "2024-11-25T16:00:00Z",
            "status": "maybe",
        })


def test_parse_datetime_rejects_garbage():
    with pytest.raises(StorageError):
        parse_datetime("not a date")


def test_booking_request_payload():
    request = BookingRequest(
        service_id="service-1",
        staff_id="staff-1",
        start_time=pendulum.datetime(2024, 11, 25, 9, tz=TZ),
        end_time=pendulum.datetime(2024, 11, 25, 10, tz=TZ),
        client_name="John Smith",
        client_email="john.smith@email.com",
        notes="Prefers firm pressure",
    )

    payload = booking_request_to_payload(request)

    assert payload["clientName"] == "John Smith"
    assert payload["notes"] == "Prefers firm pressure"
    assert "clientId" not in payload
    assert pendulum.parse(payload["endTime"]) == request.end_time


def test_time_slot_payload():
    slot = TimeSlot(
        start_time=pendulum.datetime(2024, 11, 25, 9, tz=TZ),
        end_time=pendulum.datetime(2024, 11, 25, 10, tz=TZ),
        is_available=False,
        staff_id="staff-2",
    )

    payload = time_slot_to_payload(slot)

    assert payload["isAvailable"] is False
    assert payload["staffId"] == "staff-2"


def test_parse_slot_settings():
    settings = parse_slot_settings({
        "slotDuration": 15,
        "bufferTime": 15,
        "bookingLeadTime": 2,
        "timeZone": TZ,
        "cancellationPolicy": "Free cancellation up to 24 hours before appointment",
    })

    assert settings == SlotSettings(slot_duration=15, buffer_time=15, booking_lead_time=2, timezone=TZ)
    assert settings.overlap_mode is OverlapMode.START_INSTANT
    assert settings.effective_buffer_time == 0


def test_parse_slot_settings_opt_in_flags():
    settings = parse_slot_settings({"overlapMode": "interval", "applyBuffer": True, "bufferTime": 10})

    assert settings.overlap_mode is OverlapMode.INTERVAL
    assert settings.effective_buffer_time == 10


@pytest.mark.parametrize(
    "data",
    [{"slotDuration": 0}, {"bufferTime": "lots"}, {"overlapMode": "fuzzy"}],
)
def test_parse_slot_settings_invalid(data):
    with pytest.raises(ConfigurationError):
        parse_slot_settings(data)


def test_parse_business_hours():
    hours = parse_business_hours({"dayOfWeek": 6, "openTime": "10:00", "closeTime": "18:00", "isClosed": False})

    assert hours.day_of_week == 6
    assert str(hours) == "10:00-18:00"


def test_parse_business_hours_closed_day():
    hours = parse_business_hours({"dayOfWeek": 0, "isClosed": True})

    assert hours.is_closed
    assert hours.open_time is None


def test_parse_business_hours_missing_day():
    with pytest.raises(StorageError):
        parse_business_hours({"openTime": "09:00", "closeTime": "17:00"})
