"""
Conversion between the booking API's camelCase JSON payloads and domain models.
"""

from typing import Any, Dict, List

import pendulum
from pendulum import DateTime

from ..domain.exceptions import ConfigurationError, StorageError
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    BookingRequest,
    BusinessHours,
    Client,
    Service,
    SlotSettings,
    StaffMember,
    TimeSlot,
    WeeklyAvailability,
    parse_wall_clock,
)


def parse_datetime(value: str, timezone: str = "UTC") -> DateTime:
    """
    Parse an ISO 8601 timestamp into a pendulum DateTime in the given timezone.

    Raises:
        StorageError: If the value is not a timestamp
    """
    try:
        parsed = pendulum.parse(value, tz=timezone)
    except (TypeError, ValueError) as exc:
        raise StorageError(f"Could not parse datetime: {value!r}") from exc

    if not isinstance(parsed, DateTime):
        raise StorageError(f"Expected a date and time, got: {value!r}")

    return parsed.in_timezone(timezone)


def parse_service(data: Dict[str, Any]) -> Service:
    """Parse a service record."""
    try:
        return Service(
            id=str(data["id"]),
            name=data.get("name", ""),
            duration=int(data["duration"]),
            staff_ids=frozenset(str(staff_id) for staff_id in data.get("staffIds", [])),
            is_active=bool(data.get("isActive", True)),
            description=data.get("description", ""),
            price=float(data.get("price", 0)),
            color=data.get("color", ""),
        )
    except ConfigurationError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise StorageError(f"Malformed service record {data.get('id')!r}: {exc}") from exc


def parse_staff_member(data: Dict[str, Any]) -> StaffMember:
    """
    Parse a staff record, including its weekly availability.

    Availability entries are validated here; a malformed window raises
    ConfigurationError so it can be surfaced to whoever edits staff hours.
    """
    try:
        availability_data = data.get("availability", [])
        staff_id = str(data["id"])
    except (KeyError, AttributeError) as exc:
        raise StorageError(f"Malformed staff record: {exc}") from exc

    availability = tuple(_parse_availability_entry(staff_id, entry) for entry in availability_data)

    return StaffMember(
        id=staff_id,
        name=data.get("name", ""),
        availability=availability,
        is_active=bool(data.get("isActive", True)),
        email=data.get("email", ""),
        phone=data.get("phone", ""),
        role=data.get("role", ""),
        color=data.get("color", ""),
    )


def _parse_availability_entry(staff_id: str, entry: Dict[str, Any]) -> WeeklyAvailability:
    try:
        day_of_week = int(entry["dayOfWeek"])
        start_time = entry["startTime"]
        end_time = entry["endTime"]
    except (KeyError, TypeError, ValueError) as exc:
        raise StorageError(f"Malformed availability entry for staff {staff_id!r}: {exc}") from exc

    return WeeklyAvailability.from_strings(day_of_week, start_time, end_time)


def parse_appointment(data: Dict[str, Any], timezone: str = "UTC") -> Appointment:
    """Parse an appointment record."""
    try:
        return Appointment(
            id=str(data["id"]),
            staff_id=str(data["staffId"]),
            start_time=parse_datetime(data["startTime"], timezone),
            end_time=parse_datetime(data["endTime"], timezone),
            status=AppointmentStatus(data.get("status", AppointmentStatus.CONFIRMED.value)),
            service_id=str(data.get("serviceId", "")),
            client_id=str(data.get("clientId", "")),
            notes=data.get("notes", "") or "",
        )
    except (KeyError, ValueError) as exc:
        raise StorageError(f"Malformed appointment record {data.get('id')!r}: {exc}") from exc


def parse_client(data: Dict[str, Any]) -> Client:
    """Parse a client record."""
    try:
        return Client(
            id=str(data["id"]),
            name=data.get("name", ""),
            email=data.get("email", ""),
            phone=data.get("phone", ""),
            notes=data.get("notes", "") or "",
        )
    except KeyError as exc:
        raise StorageError(f"Malformed client record: {exc}") from exc


def parse_business_hours(data: Dict[str, Any]) -> BusinessHours:
    """Parse one day of the business's opening hours."""
    try:
        day_of_week = int(data["dayOfWeek"])
    except (KeyError, TypeError, ValueError) as exc:
        raise StorageError(f"Malformed business hours entry: {exc}") from exc

    is_closed = bool(data.get("isClosed", False))
    if is_closed:
        return BusinessHours(day_of_week=day_of_week, is_closed=True)

    return BusinessHours(
        day_of_week=day_of_week,
        open_time=parse_wall_clock(data.get("openTime")),
        close_time=parse_wall_clock(data.get("closeTime")),
    )


def parse_slot_settings(data: Dict[str, Any]) -> SlotSettings:
    """
    Parse the business's booking settings.

    Missing keys fall back to the SlotSettings defaults. Out-of-range values
    raise ConfigurationError.
    """
    defaults = SlotSettings()
    try:
        return SlotSettings(
            slot_duration=int(data.get("slotDuration", defaults.slot_duration)),
            buffer_time=int(data.get("bufferTime", defaults.buffer_time)),
            booking_lead_time=int(data.get("bookingLeadTime", defaults.booking_lead_time)),
            timezone=str(data.get("timeZone", defaults.timezone)),
            overlap_mode=data.get("overlapMode", defaults.overlap_mode),
            apply_buffer=bool(data.get("applyBuffer", defaults.apply_buffer)),
            enforce_lead_time=bool(data.get("enforceLeadTime", defaults.enforce_lead_time)),
            ignore_cancelled=bool(data.get("ignoreCancelled", defaults.ignore_cancelled)),
        )
    except ConfigurationError:
        raise
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid business settings: {exc}") from exc


def parse_list(items: Any, parser, **kwargs) -> List[Any]:
    """Apply a record parser to a JSON array."""
    if not isinstance(items, list):
        raise StorageError(f"Expected a JSON array, got {type(items).__name__}")
    return [parser(item, **kwargs) for item in items]


def booking_request_to_payload(request: BookingRequest) -> Dict[str, Any]:
    """Serialize a booking request into the body of ``POST /appointments``."""
    payload: Dict[str, Any] = {
        "serviceId": request.service_id,
        "staffId": request.staff_id,
        "clientName": request.client_name,
        "clientEmail": request.client_email,
        "clientPhone": request.client_phone,
        "startTime": request.start_time.to_iso8601_string(),
        "endTime": request.end_time.to_iso8601_string(),
        "notes": request.notes,
    }
    if request.client_id:
        payload["clientId"] = request.client_id
    return payload


def time_slot_to_payload(slot: TimeSlot) -> Dict[str, Any]:
    """Serialize a slot for JSON output."""
    return {
        "startTime": slot.start_time.to_iso8601_string(),
        "endTime": slot.end_time.to_iso8601_string(),
        "isAvailable": slot.is_available,
        "staffId": slot.staff_id,
    }
