"""
Core business logic for calculating a doctor's free appointment slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

import logging
from datetime import date, timedelta
from typing import List, Sequence

from .exceptions import InvalidArgumentError
from .models import BookedInterval, Slot, TimeRange, WeeklySchedule

logger = logging.getLogger(__name__)

DEFAULT_SLOT_DURATION_MINUTES = 30
DEFAULT_TIMEZONE = "America/Sao_Paulo"


def resolve_slot_duration(
    slot_duration: int | None,
    default_duration: int = DEFAULT_SLOT_DURATION_MINUTES
) -> int:
    """
    Return the slot duration to use, falling back to ``default_duration``.

    Raises:
        InvalidArgumentError: If the effective duration is not a positive integer
    """
    duration = default_duration if slot_duration is None else slot_duration

    # bool is an int subclass; True minutes is a caller bug
    if isinstance(duration, bool) or not isinstance(duration, int):
        raise InvalidArgumentError(
            f"Slot duration must be an integer number of minutes, got {duration!r}"
        )
    if duration <= 0:
        raise InvalidArgumentError(
            f"Slot duration must be greater than zero, got {duration}"
        )

    return duration


def overlaps_any(candidate: TimeRange, booked: Sequence[BookedInterval]) -> bool:
    """Check whether ``candidate`` overlaps at least one booked interval."""
    return any(candidate.overlaps(interval) for interval in booked)


def _period_slots(
    period_range: TimeRange,
    duration_minutes: int,
    booked: Sequence[BookedInterval]
) -> List[TimeRange]:
    """
    Walk one working period in steps of ``duration_minutes``.

    The grid is anchored at the period start and never shifts: a step that
    hits a booking is dropped and the cursor moves on. A trailing step that
    would run past the period end is discarded.

    Example:
    Period: 09:00 - 10:00, duration 30, booked [09:30-10:00]
    Result: [09:00-09:30]
    """
    slots: List[TimeRange] = []
    if duration_minutes > period_range.duration_minutes():
        return slots

    cursor = period_range.start

    while True:
        candidate_end = cursor.add(minutes=duration_minutes)
        if candidate_end > period_range.end:
            break

        candidate = TimeRange(start=cursor, end=candidate_end)
        if not overlaps_any(candidate, booked):
            slots.append(candidate)

        cursor = candidate_end

    return slots


def compute_availability(
    schedule: WeeklySchedule,
    day: date,
    slot_duration: int | None = None,
    booked: Sequence[BookedInterval] = (),
    *,
    default_duration: int = DEFAULT_SLOT_DURATION_MINUTES,
    timezone: str = DEFAULT_TIMEZONE,
    doctor_id: str | None = None
) -> List[Slot]:
    """
    Compute the free slots of a single day.

    Args:
        schedule: Weekly working periods of the doctor
        day: Calendar day to compute
        slot_duration: Appointment length in minutes; ``None`` uses ``default_duration``
        booked: Intervals already taken on that day, in any order
        default_duration: Fallback duration in minutes
        timezone: Local clock the working periods are expressed in
        doctor_id: Optional doctor identifier stamped on each slot

    Returns:
        Slots in period order, each period's slots in chronological order

    Raises:
        InvalidArgumentError: If the slot duration is not a positive integer
    """
    duration = resolve_slot_duration(slot_duration, default_duration)
    booked = list(booked)

    slots: List[Slot] = []

    for period in schedule.periods_on(day):
        period_range = period.range_on(day, timezone)

        if period_range is None:
            logger.warning(
                "Skipping malformed working period %s on %s: start must be before end",
                period,
                day.isoformat(),
            )
            continue

        slots.extend(
            Slot(time_range=time_range, doctor_id=doctor_id)
            for time_range in _period_slots(period_range, duration, booked)
        )

    return slots


def compute_availability_range(
    schedule: WeeklySchedule,
    start_day: date,
    end_day: date,
    slot_duration: int | None = None,
    booked: Sequence[BookedInterval] = (),
    *,
    default_duration: int = DEFAULT_SLOT_DURATION_MINUTES,
    timezone: str = DEFAULT_TIMEZONE,
    doctor_id: str | None = None
) -> List[Slot]:
    """
    Compute free slots for every day from ``start_day`` to ``end_day`` inclusive.

    ``booked`` may hold intervals of any day in the range.

    Raises:
        InvalidArgumentError: If the range is reversed or the duration is invalid
    """
    if end_day < start_day:
        raise InvalidArgumentError(
            f"End day {end_day.isoformat()} is before start day {start_day.isoformat()}"
        )

    duration = resolve_slot_duration(slot_duration, default_duration)
    slots: List[Slot] = []

    current = start_day
    while current <= end_day:
        slots.extend(
            compute_availability(
                schedule,
                current,
                duration,
                booked,
                timezone=timezone,
                doctor_id=doctor_id,
            )
        )
        current = current + timedelta(days=1)

    return slots


class AvailabilityCalculator:
    """
    Calculates a doctor's free slots from their weekly schedule.

    Algorithm:
    1. Resolve the working periods of the requested weekday
    2. Walk each period in fixed steps equal to the appointment duration
    3. Drop every step that overlaps a booked interval
    4. Return the remaining steps in period order
    """

    def __init__(
        self,
        schedule: WeeklySchedule,
        default_duration_minutes: int = DEFAULT_SLOT_DURATION_MINUTES,
        timezone: str = DEFAULT_TIMEZONE,
        doctor_id: str | None = None
    ):
        self.schedule = schedule
        self.default_duration_minutes = resolve_slot_duration(default_duration_minutes)
        self.timezone = timezone
        self.doctor_id = doctor_id

    def find_available_slots(
        self,
        day: date,
        booked: Sequence[BookedInterval] = (),
        slot_duration_minutes: int | None = None
    ) -> List[Slot]:
        """Free slots of a single day."""
        return compute_availability(
            self.schedule,
            day,
            slot_duration_minutes,
            booked,
            default_duration=self.default_duration_minutes,
            timezone=self.timezone,
            doctor_id=self.doctor_id,
        )

    def find_available_slots_in_range(
        self,
        start_day: date,
        end_day: date,
        booked: Sequence[BookedInterval] = (),
        slot_duration_minutes: int | None = None
    ) -> List[Slot]:
        """Free slots of every day in an inclusive range."""
        return compute_availability_range(
            self.schedule,
            start_day,
            end_day,
            slot_duration_minutes,
            booked,
            default_duration=self.default_duration_minutes,
            timezone=self.timezone,
            doctor_id=self.doctor_id,
        )

    def is_open(self, day: date) -> bool:
        return self.schedule.is_open(day)
