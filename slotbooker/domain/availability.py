"""
Core business logic for computing bookable appointment slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

import logging
from datetime import date as date_type
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

import pendulum
from pendulum import DateTime

from .models import (
    Appointment,
    OverlapMode,
    Service,
    SlotSettings,
    StaffMember,
    TimeRange,
    TimeSlot,
    sunday_based_weekday,
)

logger = logging.getLogger(__name__)


def start_of_day(date: date_type, timezone: str = "UTC") -> DateTime:
    """
    Anchor a date to midnight in its own frame.

    An aware datetime (pendulum or stdlib) keeps its timezone; a plain date
    or a naive datetime uses the given one.
    """
    if isinstance(date, datetime) and date.tzinfo is not None:
        return pendulum.instance(date).start_of("day")

    return pendulum.datetime(date.year, date.month, date.day, tz=timezone)


def day_range(date: date_type, timezone: str = "UTC") -> TimeRange:
    """Return the range covering the whole calendar day."""
    start = start_of_day(date, timezone)
    return TimeRange(start=start, end=start.add(days=1))


def eligible_staff(service: Service, staff: Iterable[StaffMember]) -> List[StaffMember]:
    """
    Return the active staff members able to perform a service, in roster order.
    """
    return [
        member for member in staff
        if member.is_active and member.id in service.staff_ids
    ]


class AvailabilityEngine:
    """
    Computes the candidate slots for a service on a single day.

    Algorithm, per candidate staff member:
    1. Look up the staff member's working window for the day of week
    2. Walk start times from the window start in ``slot_duration`` steps
       while the service still fits before the window end
    3. Mark each candidate unavailable if it clashes with an appointment
    4. Emit every candidate with its availability flag

    Results are grouped by staff member in the order the staff were given.
    The same staff member's slots are in ascending start order.
    """

    def __init__(self, settings: SlotSettings):
        self.settings = settings

    def compute_available_slots(
        self,
        service: Service,
        candidate_staff: Sequence[StaffMember],
        appointments: Iterable[Appointment],
        date: date_type,
        now: Optional[DateTime] = None
    ) -> List[TimeSlot]:
        """
        Compute the slots each candidate staff member could take on a date.

        Args:
            service: The service being booked (its duration sizes each slot)
            candidate_staff: Active staff eligible for the service
            appointments: Existing appointments, filtered here per staff member
            date: The requested day; any time-of-day component is ignored
            now: Reference instant for lead-time filtering

        Returns:
            List of TimeSlot objects, available and unavailable alike
        """
        if not candidate_staff:
            return []

        day = start_of_day(date, self.settings.timezone)
        day_of_week = sunday_based_weekday(day)
        appointment_list = list(appointments)
        earliest_start = self._earliest_bookable_start(now)

        slots: List[TimeSlot] = []

        for member in candidate_staff:
            staff_slots = self._slots_for_staff(
                member=member,
                service=service,
                appointments=appointment_list,
                day=day,
                day_of_week=day_of_week,
                earliest_start=earliest_start,
            )
            logger.debug(
                "Staff %s: %d slot(s) on %s for service %s",
                member.id, len(staff_slots), day.to_date_string(), service.id
            )
            slots.extend(staff_slots)

        return slots

    def _slots_for_staff(
        self,
        member: StaffMember,
        service: Service,
        appointments: List[Appointment],
        day: DateTime,
        day_of_week: int,
        earliest_start: Optional[DateTime]
    ) -> List[TimeSlot]:
        availability = member.availability_for(day_of_week)

        if availability is None:
            return []

        window = availability.window_on(day)
        busy = self._blocking_ranges(member.id, appointments, window)

        slots: List[TimeSlot] = []
        candidate_start = window.start

        while candidate_start.add(minutes=service.duration) <= window.end:
            candidate_end = candidate_start.add(minutes=service.duration)

            if earliest_start is None or candidate_start >= earliest_start:
                slots.append(
                    TimeSlot(
                        start_time=candidate_start,
                        end_time=candidate_end,
                        is_available=not self._conflicts(candidate_start, candidate_end, busy),
                        staff_id=member.id,
                    )
                )

            candidate_start = candidate_start.add(minutes=self.settings.slot_duration)

        return slots

    def _blocking_ranges(
        self,
        staff_id: str,
        appointments: List[Appointment],
        window: TimeRange
    ) -> List[TimeRange]:
        """
        Collect the occupied ranges of one staff member that touch the window.

        With ``apply_buffer`` each appointment also occupies the buffer after it.
        """
        buffer_minutes = self.settings.effective_buffer_time
        ranges: List[TimeRange] = []

        for appointment in appointments:
            if appointment.staff_id != staff_id:
                continue
            if self.settings.ignore_cancelled and appointment.is_cancelled:
                continue
            if appointment.end_time <= appointment.start_time:
                continue

            occupied = TimeRange(
                start=appointment.start_time,
                end=appointment.end_time.add(minutes=buffer_minutes),
            )
            if occupied.overlaps(window):
                ranges.append(occupied)

        return sorted(ranges, key=lambda r: r.start)

    def _conflicts(
        self,
        candidate_start: DateTime,
        candidate_end: DateTime,
        busy: List[TimeRange]
    ) -> bool:
        if self.settings.overlap_mode == OverlapMode.START_INSTANT:
            return any(occupied.contains_instant(candidate_start) for occupied in busy)

        candidate_end = candidate_end.add(minutes=self.settings.effective_buffer_time)
        candidate = TimeRange(start=candidate_start, end=candidate_end)

        return any(occupied.overlaps(candidate) for occupied in busy)

    def _earliest_bookable_start(self, now: Optional[DateTime]) -> Optional[DateTime]:
        if not self.settings.enforce_lead_time or now is None:
            return None
        return now.add(hours=self.settings.booking_lead_time)


def compute_available_slots(
    service: Service,
    candidate_staff: Sequence[StaffMember],
    appointments: Iterable[Appointment],
    date: date_type,
    settings: SlotSettings,
    now: Optional[DateTime] = None
) -> List[TimeSlot]:
    """Compute slots for a single day with a throwaway engine."""
    return AvailabilityEngine(settings).compute_available_slots(
        service=service,
        candidate_staff=candidate_staff,
        appointments=appointments,
        date=date,
        now=now,
    )


def find_booking_conflict(
    staff_id: str,
    requested: TimeRange,
    appointments: Iterable[Appointment],
    buffer_minutes: int = 0
) -> Optional[Appointment]:
    """
    Return the first non-cancelled appointment of a staff member that overlaps
    the requested range, or None.

    This is the full interval test used when committing a booking, independent
    of the overlap mode used for display.
    """
    if buffer_minutes:
        requested = TimeRange(start=requested.start, end=requested.end.add(minutes=buffer_minutes))

    for appointment in sorted(appointments, key=lambda a: a.start_time):
        if appointment.staff_id != staff_id or appointment.is_cancelled:
            continue
        if appointment.end_time <= appointment.start_time:
            continue
        occupied = TimeRange(
            start=appointment.start_time,
            end=appointment.end_time.add(minutes=buffer_minutes),
        )
        if occupied.overlaps(requested):
            return appointment

    return None
