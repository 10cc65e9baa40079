"""
Adapters layer - External integrations (Firestore appointment store).
"""

from .firestore_client import FirestoreAppointmentClient
from .mock_appointment_client import MockAppointmentClient

__all__ = ["FirestoreAppointmentClient", "MockAppointmentClient"]
