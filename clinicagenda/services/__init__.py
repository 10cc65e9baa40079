"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability_service import AppointmentSourceProtocol, AvailabilityService

__all__ = ["AppointmentSourceProtocol", "AvailabilityService"]
