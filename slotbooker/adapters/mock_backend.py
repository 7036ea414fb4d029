"""
In-memory booking backend for demos and tests without a running API.
"""

import asyncio
import json
import logging
import random
import re
from datetime import date as date_type
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pendulum import DateTime

from ..domain.availability import day_range, find_booking_conflict, start_of_day
from ..domain.exceptions import BookingConflictError, NotFoundError, StorageError
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    AvailabilityInputs,
    BookingRequest,
    BusinessHours,
    Client,
    Service,
    SlotSettings,
    StaffMember,
)
from .payloads import (
    parse_appointment,
    parse_business_hours,
    parse_client,
    parse_list,
    parse_service,
    parse_slot_settings,
    parse_staff_member,
)

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_business_data.json"


def _next_id(prefix: str, records: Iterable[Any]) -> str:
    """Return ``{prefix}-{n}`` numbered one past the highest existing ``{prefix}-{n}`` id."""
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
    numbers = [int(match.group(1)) for match in (pattern.match(record.id) for record in records) if match]
    return f"{prefix}-{max(numbers, default=0) + 1}"


class MockBookingBackend:
    """
    Backend that keeps the business's records in memory.

    Records are either passed in directly or loaded from a JSON file in the
    same camelCase format the REST API returns. Bookings are checked against
    the stored appointments under a lock, so two concurrent bookings of the
    same slot cannot both succeed.
    """

    def __init__(
        self,
        data_file: Optional[Path] = None,
        *,
        services: Optional[Iterable[Service]] = None,
        staff: Optional[Iterable[StaffMember]] = None,
        appointments: Optional[Iterable[Appointment]] = None,
        clients: Optional[Iterable[Client]] = None,
        settings: Optional[SlotSettings] = None,
        timezone: Optional[str] = None
    ):
        """
        Initialize the mock backend.

        Args:
            data_file: JSON file to load when no records are passed in
            services: Services offered
            staff: Staff roster
            appointments: Existing appointments
            clients: Known clients
            settings: Business settings, overriding those in the data file
            timezone: Frame for parsed timestamps, defaults to the settings' timezone
        """
        self.business_name = "Mock Business"
        self.business_hours: Tuple[BusinessHours, ...] = ()
        self._services: List[Service] = []
        self._staff: List[StaffMember] = []
        self._appointments: List[Appointment] = []
        self._clients: List[Client] = []
        self._lock = asyncio.Lock()

        data: Optional[Dict[str, Any]] = None
        file_settings: Optional[SlotSettings] = None
        if services is None and staff is None:
            data = self._read_data_file(data_file or DEFAULT_DATA_FILE)
            file_settings = self._load_business_data(data)

        self.settings = settings or file_settings or SlotSettings()
        self.timezone = timezone or self.settings.timezone

        if data is not None:
            self._appointments = parse_list(
                data.get("appointments", []), parse_appointment, timezone=self.timezone
            )

        if services is not None:
            self._services = list(services)
        if staff is not None:
            self._staff = list(staff)
        if appointments is not None:
            self._appointments = list(appointments)
        if clients is not None:
            self._clients = list(clients)

    @staticmethod
    def _read_data_file(data_file: Path) -> Dict[str, Any]:
        if not data_file.exists():
            raise FileNotFoundError(f"Mock data file not found: {data_file}")

        try:
            with open(data_file, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Invalid JSON in {data_file}: {exc}") from exc

    def _load_business_data(self, data: Dict[str, Any]) -> Optional[SlotSettings]:
        """Load the business records, returning the settings found in the file."""
        business = data.get("business", {})
        self.business_name = business.get("name", self.business_name)
        self.business_hours = tuple(parse_list(business.get("hours", []), parse_business_hours))
        self._services = parse_list(data.get("services", []), parse_service)
        self._staff = parse_list(data.get("staff", []), parse_staff_member)
        self._clients = parse_list(data.get("clients", []), parse_client)

        if "settings" in data:
            return parse_slot_settings(data["settings"])
        return None

    @property
    def appointments(self) -> List[Appointment]:
        return list(self._appointments)

    @property
    def clients(self) -> List[Client]:
        return list(self._clients)

    async def list_services(self) -> List[Service]:
        return list(self._services)

    async def list_staff(self) -> List[StaffMember]:
        return list(self._staff)

    async def fetch_availability_inputs(self, service_id: str, date: date_type) -> AvailabilityInputs:
        service = self._find_service(service_id)
        staff = tuple(member for member in self._staff if member.id in service.staff_ids)
        staff_ids = {member.id for member in staff}
        day = day_range(date, self.timezone)

        appointments = tuple(
            appointment for appointment in self._appointments
            if appointment.staff_id in staff_ids
            and appointment.start_time < day.end
            and appointment.end_time > day.start
        )

        return AvailabilityInputs(service=service, staff=staff, appointments=appointments)

    async def commit_appointment(self, request: BookingRequest) -> Appointment:
        """
        Store a new appointment after re-checking it against existing ones.

        Raises:
            NotFoundError: If the service or staff member is unknown
            BookingConflictError: If the staff member is already booked
        """
        service = self._find_service(request.service_id)
        if request.staff_id not in service.staff_ids:
            raise NotFoundError(f"Staff {request.staff_id} does not offer service {service.id}")

        async with self._lock:
            conflict = find_booking_conflict(
                request.staff_id,
                request.time_range,
                self._appointments,
                buffer_minutes=self.settings.effective_buffer_time,
            )
            if conflict is not None:
                logger.info("Rejected booking for %s: clashes with %s", request.staff_id, conflict.id)
                raise BookingConflictError(
                    f"Staff {request.staff_id} is already booked from "
                    f"{conflict.start_time.format('HH:mm')} to {conflict.end_time.format('HH:mm')}"
                )

            client = self._find_or_create_client(request)
            appointment = Appointment(
                id=_next_id("appointment", self._appointments),
                staff_id=request.staff_id,
                start_time=request.start_time,
                end_time=request.end_time,
                status=AppointmentStatus.CONFIRMED,
                service_id=request.service_id,
                client_id=client.id,
                notes=request.notes,
            )
            self._appointments.append(appointment)

        logger.info("Booked appointment %s for staff %s", appointment.id, appointment.staff_id)
        return appointment

    def generate_sample_appointments(
        self,
        start: date_type,
        days: int = 30,
        seed: int = 0,
        now: Optional[DateTime] = None
    ) -> List[Appointment]:
        """
        Fill the calendar with reproducible sample appointments.

        Each day gets 2-5 appointments starting on the hour between 09:00 and
        17:00, assigned to the first staff member of a randomly chosen
        service. Most Sundays are left empty.
        """
        rng = random.Random(seed)
        reference = now or start_of_day(start, self.timezone)
        generated: List[Appointment] = []

        if not self._services:
            return generated

        for offset in range(days):
            day = start_of_day(start, self.timezone).add(days=offset)

            if day.isoweekday() == 7 and rng.random() > 0.3:
                continue

            for _ in range(rng.randint(2, 5)):
                service = rng.choice(self._services)
                staff_id = sorted(service.staff_ids)[0] if service.staff_ids else None
                if staff_id is None:
                    continue

                start_time = day.set(hour=9 + rng.randint(0, 8))
                end_time = start_time.add(minutes=service.duration)

                generated.append(
                    Appointment(
                        id=_next_id("appointment", [*self._appointments, *generated]),
                        staff_id=staff_id,
                        start_time=start_time,
                        end_time=end_time,
                        status=AppointmentStatus.COMPLETED if end_time < reference else AppointmentStatus.CONFIRMED,
                        service_id=service.id,
                        client_id=f"client-{rng.randint(1, max(len(self._clients), 1))}",
                    )
                )

        self._appointments.extend(generated)
        self._appointments.sort(key=lambda a: a.start_time)
        return generated

    def _find_service(self, service_id: str) -> Service:
        for service in self._services:
            if service.id == service_id:
                return service
        raise NotFoundError(f"Unknown service: {service_id}")

    def _find_or_create_client(self, request: BookingRequest) -> Client:
        clients_by_id: Dict[str, Client] = {client.id: client for client in self._clients}
        if request.client_id and request.client_id in clients_by_id:
            return clients_by_id[request.client_id]

        for client in self._clients:
            if request.client_email and client.email.lower() == request.client_email.lower():
                return client

        client = Client(
            id=_next_id("client", self._clients),
            name=request.client_name,
            email=request.client_email,
            phone=request.client_phone,
        )
        self._clients.append(client)
        return client
