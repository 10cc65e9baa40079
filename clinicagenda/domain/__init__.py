"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityCalculator, compute_availability, compute_availability_range
from .models import (
    Appointment,
    AppointmentStatus,
    BookedInterval,
    Slot,
    TimeRange,
    WeeklySchedule,
    Weekday,
    WorkingPeriod,
)

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "AvailabilityCalculator",
    "BookedInterval",
    "Slot",
    "TimeRange",
    "WeeklySchedule",
    "Weekday",
    "WorkingPeriod",
    "compute_availability",
    "compute_availability_range",
]
