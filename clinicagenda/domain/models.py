"""
Domain models for working hours, appointments and bookable slots.
"""

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum, IntEnum
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

import pendulum
from pendulum import DateTime

from .exceptions import InvalidArgumentError


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Ranges are half-open: ``start`` belongs to the range, ``end`` does not.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidArgumentError(
                f"Time range {self.start} - {self.end} must use timezone-aware datetimes"
            )
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ranges do not overlap."""
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        return f"{self.start.format('DD/MM/YYYY HH:mm')} - {self.end.format('HH:mm')}"


# An interval already taken by an appointment.
BookedInterval = TimeRange


class Weekday(IntEnum):
    """Day of the week, numbered like ``date.weekday()``."""
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def of(cls, day: date) -> "Weekday":
        """Weekday of a calendar day (works for pendulum and stdlib dates)."""
        return cls(day.weekday())

    @classmethod
    def parse(cls, value: "str | int | Weekday") -> "Weekday":
        """
        Parse a weekday from its number, English name or Portuguese name.

        Raises:
            ValueError: If the value does not name a weekday
        """
        if isinstance(value, int):
            return cls(value)

        key = str(value).strip().lower()
        if key.upper() in cls.__members__:
            return cls[key.upper()]
        if key in PORTUGUESE_WEEKDAYS:
            return PORTUGUESE_WEEKDAYS[key]

        raise ValueError(f"Unknown weekday: '{value}'")

    def display_name(self) -> str:
        """Portuguese display name, as shown to clinic staff."""
        return WEEKDAY_DISPLAY_NAMES[self]


PORTUGUESE_WEEKDAYS: Dict[str, Weekday] = {
    "segunda": Weekday.MONDAY,
    "terca": Weekday.TUESDAY,
    "terça": Weekday.TUESDAY,
    "quarta": Weekday.WEDNESDAY,
    "quinta": Weekday.THURSDAY,
    "sexta": Weekday.FRIDAY,
    "sabado": Weekday.SATURDAY,
    "sábado": Weekday.SATURDAY,
    "domingo": Weekday.SUNDAY,
}

WEEKDAY_DISPLAY_NAMES: Dict[Weekday, str] = {
    Weekday.MONDAY: "Segunda-feira",
    Weekday.TUESDAY: "Terça-feira",
    Weekday.WEDNESDAY: "Quarta-feira",
    Weekday.THURSDAY: "Quinta-feira",
    Weekday.FRIDAY: "Sexta-feira",
    Weekday.SATURDAY: "Sábado",
    Weekday.SUNDAY: "Domingo",
}


def parse_time_of_day(value: str) -> time:
    """
    Parse an ``HH:MM`` string into a time object.

    Raises:
        ValueError: If the string is not a valid time of day
    """
    try:
        hours, minutes = (int(part) for part in value.strip().split(":"))
        return time(hour=hours, minute=minutes)
    except (AttributeError, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid time of day '{value}', expected HH:MM") from exc


@dataclass(frozen=True)
class WorkingPeriod:
    """
    A block of working hours within a single day, e.g. 08:00-12:00.

    ``start < end`` is checked by configuration loading, not here: a
    degenerate period can still be represented and simply has no range.
    """
    start: time
    end: time

    @classmethod
    def parse(cls, start: str, end: str) -> "WorkingPeriod":
        """Build a period from two ``HH:MM`` strings."""
        return cls(start=parse_time_of_day(start), end=parse_time_of_day(end))

    def is_valid(self) -> bool:
        return self.start < self.end

    def range_on(self, day: date, timezone: str) -> TimeRange | None:
        """
        Anchor the period on a calendar day.
        Returns None if the period is degenerate.
        """
        if not self.is_valid():
            return None

        start = pendulum.datetime(
            day.year, day.month, day.day,
            self.start.hour, self.start.minute,
            tz=timezone
        )
        end = pendulum.datetime(
            day.year, day.month, day.day,
            self.end.hour, self.end.minute,
            tz=timezone
        )

        return TimeRange(start=start, end=end)

    def __str__(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"


@dataclass(frozen=True)
class WeeklySchedule:
    """
    Working periods per weekday. A missing or empty weekday means closed.
    """
    periods: Mapping[Weekday, Tuple[WorkingPeriod, ...]] = field(default_factory=dict)

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping["str | int | Weekday", Iterable[WorkingPeriod]]
    ) -> "WeeklySchedule":
        """Build a schedule from any weekday key accepted by ``Weekday.parse``."""
        periods: Dict[Weekday, Tuple[WorkingPeriod, ...]] = {}
        for key, day_periods in mapping.items():
            periods[Weekday.parse(key)] = tuple(day_periods)
        return cls(periods=periods)

    def periods_for(self, weekday: Weekday) -> Sequence[WorkingPeriod]:
        return self.periods.get(weekday, ())

    def periods_on(self, day: date) -> Sequence[WorkingPeriod]:
        """Working periods for the weekday of ``day``, in configured order."""
        return self.periods_for(Weekday.of(day))

    def is_open(self, day: date) -> bool:
        return len(self.periods_on(day)) > 0


@dataclass(frozen=True)
class Slot:
    """
    A free, bookable time slot for a doctor.
    """
    time_range: TimeRange
    doctor_id: str | None = None

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    def duration_minutes(self) -> int:
        return self.time_range.duration_minutes()

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Dia da semana, DD/MM/YYYY | HH:MM – HH:MM (N min)
        """
        weekday = Weekday.of(self.start).display_name()
        date_str = self.start.format("DD/MM/YYYY")
        time_str = f"{self.start.format('HH:mm')} – {self.end.format('HH:mm')}"

        return f"{weekday}, {date_str} | {time_str} ({self.duration_minutes()} min)"


class AppointmentStatus(str, Enum):
    """Appointment status, valued as stored in the appointment documents."""
    SCHEDULED = "agendada"
    CONFIRMED = "confirmada"
    COMPLETED = "realizada"
    CANCELLED = "cancelada"
    NO_SHOW = "faltou"

    @property
    def holds_calendar(self) -> bool:
        """Whether an appointment in this status keeps its time occupied."""
        return self in CALENDAR_HOLDING_STATUSES


# Only upcoming appointments block a doctor's time. Cancelled and no-show
# appointments release it; completed ones are in the past.
CALENDAR_HOLDING_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})


@dataclass(frozen=True)
class Appointment:
    """
    A consultation as read from the appointment store.
    """
    id: str
    doctor_id: str
    start: DateTime
    duration_minutes: int
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    patient_id: str | None = None

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError(
                f"Appointment {self.id} has non-positive duration {self.duration_minutes}"
            )

    @property
    def end(self) -> DateTime:
        return self.start.add(minutes=self.duration_minutes)

    @property
    def holds_calendar(self) -> bool:
        return self.status.holds_calendar

    def to_interval(self) -> BookedInterval:
        """The time this appointment occupies."""
        return TimeRange(start=self.start, end=self.end)


def booked_intervals(appointments: Iterable[Appointment]) -> List[BookedInterval]:
    """Intervals of the appointments that still hold the calendar."""
    return [
        appointment.to_interval()
        for appointment in appointments
        if appointment.holds_calendar
    ]
