"""
Application services for finding a doctor's free appointment slots.

The service coordinates fetching existing appointments via an appointment
source adapter and delegates the slot calculation to the domain-level
``AvailabilityCalculator``. This keeps the CLI thin and lets the store be
replaced by a stub in tests through a simple protocol.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta
from typing import List, Protocol, Sequence

from pendulum import DateTime

from ..config import AppConfig, DoctorConfig
from ..domain.availability import AvailabilityCalculator, overlaps_any, resolve_slot_duration
from ..domain.exceptions import InvalidArgumentError
from ..domain.models import Appointment, BookedInterval, Slot, booked_intervals

logger = logging.getLogger(__name__)


class AppointmentSourceProtocol(Protocol):
    """Protocol describing the appointment store behaviour needed by the service."""

    async def get_appointments(self, doctor_id: str, day: date) -> List[Appointment]:
        """Return the doctor's appointments starting on ``day``."""


class AvailabilityService:
    """
    Orchestrates appointment retrieval and slot calculation.

    Availability is advisory: two callers may see the same free slot.
    Preventing a double booking is up to the store's write path.
    """

    def __init__(
        self,
        appointment_source: AppointmentSourceProtocol,
        config: AppConfig,
    ) -> None:
        self._appointment_source = appointment_source
        self._config = config

    def calculator_for(self, doctor: DoctorConfig) -> AvailabilityCalculator:
        """Availability calculator bound to a doctor's schedule and duration."""
        return AvailabilityCalculator(
            schedule=doctor.schedule(),
            default_duration_minutes=doctor.appointment_duration(self._config.defaults),
            timezone=self._config.timezone,
            doctor_id=doctor.id,
        )

    async def fetch_booked_intervals(self, *, doctor_id: str, day: date) -> List[BookedInterval]:
        """Intervals held by the doctor's scheduled or confirmed appointments on ``day``."""
        appointments = await self._appointment_source.get_appointments(doctor_id, day)
        intervals = booked_intervals(appointments)

        logger.debug(
            "Doctor %s on %s: %d appointments, %d holding the calendar",
            doctor_id,
            day.isoformat(),
            len(appointments),
            len(intervals),
        )
        return intervals

    async def find_slots(
        self,
        *,
        doctor: str,
        day: date,
        duration_minutes: int | None = None,
        now: DateTime | None = None,
    ) -> List[Slot]:
        """
        Retrieve the day's bookings and compute the doctor's free slots.

        Args:
            doctor: Doctor id or name
            day: Calendar day
            duration_minutes: Appointment length; defaults to the doctor's own
            now: Current time; slots starting within the clinic's minimum lead
                time are dropped. ``None`` keeps every slot.

        Raises:
            DoctorNotFoundError: If the doctor is not configured
            InvalidArgumentError: If the duration is not a positive integer
        """
        doctor_config = self._config.resolve_doctor(doctor)
        calculator = self.calculator_for(doctor_config)
        duration = resolve_slot_duration(duration_minutes, calculator.default_duration_minutes)

        if not calculator.is_open(day):
            # Closed day, nothing to fetch
            return []

        booked = await self.fetch_booked_intervals(doctor_id=doctor_config.id, day=day)
        slots = calculator.find_available_slots(day, booked, duration)

        return self._apply_lead_time(slots, now)

    async def find_slots_for_range(
        self,
        *,
        doctor: str,
        start_day: date,
        end_day: date,
        duration_minutes: int | None = None,
        now: DateTime | None = None,
    ) -> List[Slot]:
        """
        Free slots for every day from ``start_day`` to ``end_day`` inclusive.

        Raises:
            DoctorNotFoundError: If the doctor is not configured
            InvalidArgumentError: If the range is reversed or the duration is invalid
        """
        if end_day < start_day:
            raise InvalidArgumentError(
                f"End day {end_day.isoformat()} is before start day {start_day.isoformat()}"
            )

        days: List[date] = []
        current = start_day
        while current <= end_day:
            days.append(current)
            current = current + timedelta(days=1)

        per_day = await asyncio.gather(*(
            self.find_slots(doctor=doctor, day=day, duration_minutes=duration_minutes, now=now)
            for day in days
        ))

        return [slot for day_slots in per_day for slot in day_slots]

    async def is_still_available(self, *, slot: Slot) -> bool:
        """
        Re-check a previously offered slot against current bookings.

        Meant to be called right before persisting an appointment. The answer
        can still be stale by the time the write happens.
        """
        if slot.doctor_id is None:
            raise InvalidArgumentError("Slot has no doctor_id to check against")

        booked = await self.fetch_booked_intervals(
            doctor_id=slot.doctor_id,
            day=slot.start.date(),
        )
        return not overlaps_any(slot.time_range, booked)

    def _apply_lead_time(self, slots: Sequence[Slot], now: DateTime | None) -> List[Slot]:
        """Drop slots that start before ``now`` plus the minimum lead time."""
        if now is None:
            return list(slots)

        earliest = now.add(hours=self._config.defaults.min_lead_hours)
        return [slot for slot in slots if slot.start >= earliest]
