"""
Mock appointment source for running without a Firestore project.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List

from ..domain.exceptions import AppointmentSourceError
from ..domain.models import Appointment
from .appointment_documents import appointment_from_document

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_appointments.json"


class MockAppointmentClient:
    """
    Mock client that serves appointments from a JSON file.

    By default it loads mock_appointments.json shipped next to this module,
    which holds documents in the same shape as the ``consultas`` collection
    plus an ``id`` field. All statuses are returned, as a real store read
    without a status filter would.
    """

    def __init__(self, data_file: Path | None = None, timezone: str = "America/Sao_Paulo"):
        """
        Initialize the mock client.

        Args:
            data_file: Optional path to a JSON list of appointment documents
            timezone: Clinic timezone for naive timestamps
        """
        self.data_file = data_file or DEFAULT_DATA_FILE
        self.timezone = timezone
        self.documents: List[Dict[str, Any]] = self._load_documents()

    def _load_documents(self) -> List[Dict[str, Any]]:
        """Load mock appointment documents from JSON file."""
        if not self.data_file.exists():
            logger.warning("Mock appointment file %s not found; serving no appointments", self.data_file)
            return []

        try:
            with open(self.data_file, "r", encoding="utf-8") as f:
                documents = json.load(f)
        except (OSError, ValueError) as e:
            raise AppointmentSourceError(f"Could not read mock appointments from {self.data_file}: {e}") from e

        if not isinstance(documents, list):
            raise AppointmentSourceError(f"Mock appointment file {self.data_file} must hold a JSON list")

        return documents

    async def get_appointments(self, doctor_id: str, day: date) -> List[Appointment]:
        """
        Appointments of a doctor starting on the given day.

        Args:
            doctor_id: Doctor document id
            day: Calendar day in the clinic's timezone

        Returns:
            List of Appointment objects
        """
        appointments: List[Appointment] = []

        for document in self.documents:
            if document.get("medicoId") != doctor_id:
                continue

            try:
                appointment = appointment_from_document(
                    str(document.get("id", "")),
                    document,
                    self.timezone
                )
            except (KeyError, ValueError) as e:
                logger.warning("Skipping invalid mock appointment %s: %s", document.get("id"), e)
                continue

            if appointment.start.date() == day:
                appointments.append(appointment)

        return appointments
