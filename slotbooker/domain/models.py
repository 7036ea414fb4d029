"""
Domain models for businesses, staff schedules, appointments and time slots.
"""

from dataclasses import dataclass
from datetime import date as date_type
from datetime import time
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from pendulum import DateTime

from .exceptions import ConfigurationError

WEEKDAY_NAMES = {
    0: "Sunday",
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
}


def sunday_based_weekday(day: date_type) -> int:
    """Return the day of week with 0=Sunday .. 6=Saturday."""
    return day.isoweekday() % 7


def parse_wall_clock(value: str) -> time:
    """
    Parse an ``HH:mm`` wall-clock string.

    Raises:
        ConfigurationError: If the string is not a valid time of day
    """
    try:
        parsed = time.fromisoformat(value.strip())
    except (AttributeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid time of day '{value}', expected HH:mm") from exc
    return parsed.replace(second=0, microsecond=0)


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another (touching ends do not overlap)."""
        return self.start < other.end and self.end > other.start

    def contains_instant(self, instant: DateTime) -> bool:
        """Check if an instant falls inside the half-open range [start, end)."""
        return self.start <= instant < self.end

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class WeeklyAvailability:
    """
    A staff member's working window on one day of the week.

    Overnight windows are not supported: the window must open and close on
    the same day.
    """
    day_of_week: int  # 0=Sunday, 6=Saturday
    start_time: time
    end_time: time

    def __post_init__(self):
        if self.day_of_week not in range(7):
            raise ConfigurationError(
                f"day_of_week must be between 0 (Sunday) and 6 (Saturday), got {self.day_of_week}"
            )
        if self.start_time >= self.end_time:
            raise ConfigurationError(
                f"Availability on {WEEKDAY_NAMES[self.day_of_week]} must start before it ends "
                f"({self.start_time:%H:%M} >= {self.end_time:%H:%M})"
            )

    @classmethod
    def from_strings(cls, day_of_week: int, start_time: str, end_time: str) -> "WeeklyAvailability":
        """Build an entry from ``HH:mm`` strings."""
        return cls(
            day_of_week=day_of_week,
            start_time=parse_wall_clock(start_time),
            end_time=parse_wall_clock(end_time),
        )

    def window_on(self, day: DateTime) -> TimeRange:
        """Anchor this wall-clock window to a concrete day."""
        start = day.set(hour=self.start_time.hour, minute=self.start_time.minute, second=0, microsecond=0)
        end = day.set(hour=self.end_time.hour, minute=self.end_time.minute, second=0, microsecond=0)
        return TimeRange(start=start, end=end)


@dataclass(frozen=True)
class BusinessHours:
    """
    The business's published opening hours on one day of the week.

    Informational only: bookable time comes from each staff member's
    availability.
    """
    day_of_week: int  # 0=Sunday, 6=Saturday
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    is_closed: bool = False

    def __post_init__(self):
        if self.day_of_week not in range(7):
            raise ConfigurationError(
                f"day_of_week must be between 0 (Sunday) and 6 (Saturday), got {self.day_of_week}"
            )
        if self.is_closed:
            return
        if self.open_time is None or self.close_time is None:
            raise ConfigurationError(f"Opening hours on {WEEKDAY_NAMES[self.day_of_week]} need both times")
        if self.open_time >= self.close_time:
            raise ConfigurationError(
                f"Opening hours on {WEEKDAY_NAMES[self.day_of_week]} must open before they close "
                f"({self.open_time:%H:%M} >= {self.close_time:%H:%M})"
            )

    def __str__(self) -> str:
        if self.is_closed:
            return "closed"
        return f"{self.open_time:%H:%M}-{self.close_time:%H:%M}"


@dataclass(frozen=True)
class Service:
    """A bookable service offered by the business."""
    id: str
    name: str
    duration: int  # minutes
    staff_ids: FrozenSet[str] = frozenset()
    is_active: bool = True
    description: str = ""
    price: float = 0.0
    color: str = ""

    def __post_init__(self):
        if isinstance(self.duration, bool) or not isinstance(self.duration, int) or self.duration <= 0:
            raise ConfigurationError(
                f"Service '{self.id}' duration must be a positive number of minutes, got {self.duration!r}"
            )
        # Accept any iterable of ids but always store a frozenset
        object.__setattr__(self, "staff_ids", frozenset(self.staff_ids))


@dataclass(frozen=True)
class StaffMember:
    """A member of staff with a weekly working schedule."""
    id: str
    name: str
    availability: Tuple[WeeklyAvailability, ...] = ()
    is_active: bool = True
    email: str = ""
    phone: str = ""
    role: str = ""
    color: str = ""

    def __post_init__(self):
        entries = tuple(sorted(self.availability, key=lambda entry: entry.day_of_week))
        days = [entry.day_of_week for entry in entries]
        duplicates = sorted({day for day in days if days.count(day) > 1})
        if duplicates:
            names = ", ".join(WEEKDAY_NAMES[day] for day in duplicates)
            raise ConfigurationError(
                f"Staff member '{self.id}' has more than one availability entry for: {names}"
            )
        object.__setattr__(self, "availability", entries)

    def availability_for(self, day_of_week: int) -> Optional[WeeklyAvailability]:
        """Return the working window for a day of week, or None if unavailable."""
        for entry in self.availability:
            if entry.day_of_week == day_of_week:
                return entry
        return None


class AppointmentStatus(str, Enum):
    """Lifecycle state of an appointment."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"


@dataclass(frozen=True)
class Appointment:
    """An existing booking occupying a staff member's time."""
    id: str
    staff_id: str
    start_time: DateTime
    end_time: DateTime
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    service_id: str = ""
    client_id: str = ""
    notes: str = ""

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start_time, end=self.end_time)

    @property
    def is_cancelled(self) -> bool:
        return self.status == AppointmentStatus.CANCELLED


@dataclass(frozen=True)
class Client:
    """A client of the business."""
    id: str
    name: str
    email: str = ""
    phone: str = ""
    notes: str = ""


@dataclass(frozen=True)
class BookingRequest:
    """The data a client submits to book a slot."""
    service_id: str
    staff_id: str
    start_time: DateTime
    end_time: DateTime
    client_name: str
    client_email: str
    client_phone: str = ""
    notes: str = ""
    client_id: Optional[str] = None

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start_time, end=self.end_time)


@dataclass(frozen=True)
class TimeSlot:
    """
    A candidate bookable interval for one staff member.
    """
    start_time: DateTime
    end_time: DateTime
    is_available: bool
    staff_id: str

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start_time, end=self.end_time)

    def duration_minutes(self) -> int:
        return self.time_range.duration_minutes()

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, YYYY-MM-DD | HH:mm - HH:mm
        """
        weekday = WEEKDAY_NAMES[sunday_based_weekday(self.start_time)]
        date_str = self.start_time.format("YYYY-MM-DD")
        time_str = f"{self.start_time.format('HH:mm')} - {self.end_time.format('HH:mm')}"

        return f"{weekday}, {date_str} | {time_str} ({self.duration_minutes()} min)"


class OverlapMode(str, Enum):
    """
    How a candidate slot is tested against existing appointments.

    START_INSTANT only checks whether an appointment covers the slot's start
    instant, which lets a slot run into a later-starting appointment. It is
    kept for parity with existing booking data. INTERVAL is a full
    interval-overlap test.
    """
    START_INSTANT = "start_instant"
    INTERVAL = "interval"


@dataclass(frozen=True)
class SlotSettings:
    """
    Validated business settings that drive slot generation.
    """
    slot_duration: int = 15  # minutes between candidate start times
    buffer_time: int = 0  # minutes required after each appointment
    booking_lead_time: int = 0  # hours of advance notice
    timezone: str = "UTC"
    overlap_mode: OverlapMode = OverlapMode.START_INSTANT
    apply_buffer: bool = False
    enforce_lead_time: bool = False
    ignore_cancelled: bool = False

    def __post_init__(self):
        if self.slot_duration <= 0:
            raise ConfigurationError(f"slot_duration must be greater than zero, got {self.slot_duration}")
        if self.buffer_time < 0:
            raise ConfigurationError(f"buffer_time must not be negative, got {self.buffer_time}")
        if self.booking_lead_time < 0:
            raise ConfigurationError(
                f"booking_lead_time must not be negative, got {self.booking_lead_time}"
            )
        object.__setattr__(self, "overlap_mode", OverlapMode(self.overlap_mode))

    @property
    def effective_buffer_time(self) -> int:
        """Buffer minutes actually enforced, 0 unless ``apply_buffer`` is on."""
        return self.buffer_time if self.apply_buffer else 0


@dataclass(frozen=True)
class AvailabilityInputs:
    """
    Snapshot of everything the availability engine reads for one service and day.
    """
    service: Service
    staff: Tuple[StaffMember, ...]
    appointments: Tuple[Appointment, ...]
