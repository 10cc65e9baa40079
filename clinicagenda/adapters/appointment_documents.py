"""
Conversion of stored appointment documents into domain appointments.

Appointment documents (collection ``consultas``) look like:
{
    "medicoId": "dr-ana",
    "pacienteId": "p-001",
    "dataHora": "2024-11-25T10:00:00-03:00",
    "duracao": 30,
    "status": "agendada"
}
"""

from typing import Any, Dict, Mapping

import pendulum
from pendulum import DateTime

from ..domain.availability import DEFAULT_SLOT_DURATION_MINUTES
from ..domain.models import Appointment, AppointmentStatus


def parse_document_datetime(value: Any, timezone: str) -> DateTime:
    """
    Parse a stored timestamp into the clinic's local timezone.

    Naive timestamps are read as local clinic time.

    Raises:
        ValueError: If the value is not a datetime
    """
    dt = pendulum.parse(str(value), tz=timezone)

    if isinstance(dt, DateTime):
        return dt.in_timezone(timezone)

    raise ValueError(f"Could not parse datetime: {value}")


def appointment_from_document(
    document_id: str,
    data: Mapping[str, Any],
    timezone: str,
    default_duration: int = DEFAULT_SLOT_DURATION_MINUTES
) -> Appointment:
    """
    Build an Appointment from a plain appointment document.

    Raises:
        KeyError: If a required field is missing
        ValueError: If a field has an invalid value
    """
    duration = data.get("duracao")

    return Appointment(
        id=document_id,
        doctor_id=str(data["medicoId"]),
        start=parse_document_datetime(data["dataHora"], timezone),
        duration_minutes=int(duration) if duration is not None else default_duration,
        status=AppointmentStatus(data.get("status", AppointmentStatus.SCHEDULED.value)),
        patient_id=data.get("pacienteId"),
    )


def decode_firestore_value(value: Mapping[str, Any]) -> Any:
    """
    Decode one Firestore REST typed value, e.g. ``{"integerValue": "30"}``.

    Raises:
        ValueError: If the value type is not supported
    """
    if "stringValue" in value:
        return value["stringValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "timestampValue" in value:
        return value["timestampValue"]
    if "nullValue" in value:
        return None
    if "mapValue" in value:
        return decode_firestore_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_firestore_value(item) for item in value["arrayValue"].get("values", [])]

    raise ValueError(f"Unsupported Firestore value: {sorted(value)}")


def decode_firestore_fields(fields: Mapping[str, Mapping[str, Any]]) -> Dict[str, Any]:
    """Decode the ``fields`` map of a Firestore REST document."""
    return {name: decode_firestore_value(value) for name, value in fields.items()}
