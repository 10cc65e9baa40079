"""
Firestore REST client for reading a doctor's appointments.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, List

import pendulum
import requests

from ..domain.exceptions import AppointmentSourceError
from ..domain.models import CALENDAR_HOLDING_STATUSES, Appointment
from .appointment_documents import appointment_from_document, decode_firestore_fields

logger = logging.getLogger(__name__)


class FirestoreAppointmentClient:
    """
    Client for the Firestore ``documents:runQuery`` endpoint.

    Only appointments whose status holds the calendar are requested; the
    store does the filtering so cancelled appointments never cross the wire.
    """

    FIRESTORE_API_ENDPOINT = "https://firestore.googleapis.com/v1"

    def __init__(
        self,
        project_id: str,
        database: str = "(default)",
        collection: str = "consultas",
        timezone: str = "America/Sao_Paulo",
        access_token: str = "",
        api_key: str = "",
        timeout: int = 30
    ):
        """
        Initialize the Firestore client.

        Args:
            project_id: Google Cloud project id
            database: Firestore database id
            collection: Collection holding the appointment documents
            timezone: Clinic timezone used for day boundaries
            access_token: Optional OAuth bearer token
            api_key: Optional API key (for rules-based access)
            timeout: Request timeout in seconds
        """
        if not project_id:
            raise ValueError("Firestore project_id must not be empty")

        self.project_id = project_id
        self.database = database
        self.collection = collection
        self.timezone = timezone
        self.api_key = api_key
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json"}
        if access_token:
            self.headers["Authorization"] = f"Bearer {access_token}"

    @property
    def query_url(self) -> str:
        return (
            f"{self.FIRESTORE_API_ENDPOINT}/projects/{self.project_id}"
            f"/databases/{self.database}/documents:runQuery"
        )

    async def get_appointments(self, doctor_id: str, day: date) -> List[Appointment]:
        """
        Get the calendar-holding appointments of a doctor on a day.

        Raises:
            AppointmentSourceError: If the API call fails
        """
        payload = self._build_query(doctor_id, day)
        data = await asyncio.to_thread(self._run_query, payload)
        return self._parse_query_response(data)

    def _build_query(self, doctor_id: str, day: date) -> Dict[str, Any]:
        """Structured query for one doctor and one local day."""
        day_start = pendulum.datetime(day.year, day.month, day.day, tz=self.timezone)
        day_end = day_start.add(days=1)

        def field_filter(field_path: str, op: str, value: Dict[str, Any]) -> Dict[str, Any]:
            return {
                "fieldFilter": {
                    "field": {"fieldPath": field_path},
                    "op": op,
                    "value": value,
                }
            }

        statuses = sorted(status.value for status in CALENDAR_HOLDING_STATUSES)

        return {
            "structuredQuery": {
                "from": [{"collectionId": self.collection}],
                "where": {
                    "compositeFilter": {
                        "op": "AND",
                        "filters": [
                            field_filter("medicoId", "EQUAL", {"stringValue": doctor_id}),
                            field_filter(
                                "dataHora",
                                "GREATER_THAN_OR_EQUAL",
                                {"timestampValue": day_start.in_timezone("UTC").to_iso8601_string()},
                            ),
                            field_filter(
                                "dataHora",
                                "LESS_THAN",
                                {"timestampValue": day_end.in_timezone("UTC").to_iso8601_string()},
                            ),
                            field_filter(
                                "status",
                                "IN",
                                {"arrayValue": {"values": [{"stringValue": s} for s in statuses]}},
                            ),
                        ],
                    }
                },
                "orderBy": [{"field": {"fieldPath": "dataHora"}, "direction": "ASCENDING"}],
            }
        }

    def _run_query(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        params = {"key": self.api_key} if self.api_key else None

        try:
            response = requests.post(
                self.query_url,
                headers=self.headers,
                params=params,
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()

        except requests.exceptions.RequestException as e:
            raise AppointmentSourceError(f"Failed to fetch appointments from Firestore: {e}") from e
        except ValueError as e:
            raise AppointmentSourceError(f"Firestore returned invalid JSON: {e}") from e

    def _parse_query_response(self, response_data: List[Dict[str, Any]]) -> List[Appointment]:
        """
        Parse the runQuery response into our domain model.

        Response format:
        [
            {
                "document": {
                    "name": "projects/p/databases/(default)/documents/consultas/abc",
                    "fields": {
                        "medicoId": {"stringValue": "dr-ana"},
                        "dataHora": {"timestampValue": "2024-11-25T13:00:00Z"},
                        "duracao": {"integerValue": "30"},
                        "status": {"stringValue": "agendada"}
                    }
                },
                "readTime": "..."
            }
        ]
        """
        appointments: List[Appointment] = []

        for entry in response_data:
            document = entry.get("document")
            if not document:
                # Entries without a document only carry progress information
                continue

            document_id = document.get("name", "").rsplit("/", 1)[-1]

            try:
                data = decode_firestore_fields(document.get("fields", {}))
                appointments.append(
                    appointment_from_document(document_id, data, self.timezone)
                )
            except (KeyError, ValueError) as e:
                logger.warning("Skipping unparseable appointment document %s: %s", document_id, e)
                continue

        return appointments
