"""
Tests for the appointment source adapters.
"""

import asyncio
import json
from unittest.mock import MagicMock, patch

import pendulum
import pytest
import requests

from clinicagenda.adapters.appointment_documents import (
    appointment_from_document,
    decode_firestore_fields,
)
from clinicagenda.adapters.firestore_client import FirestoreAppointmentClient
from clinicagenda.adapters.mock_appointment_client import MockAppointmentClient
from clinicagenda.domain.exceptions import AppointmentSourceError
from clinicagenda.domain.models import AppointmentStatus

TZ = "America/Sao_Paulo"
MONDAY = pendulum.date(2024, 11, 25)


def _firestore_document(doc_id, fields):
    return {
        "document": {
            "name": f"projects/clinica/databases/(default)/documents/consultas/{doc_id}",
            "fields": fields,
        },
        "readTime": "2024-11-20T12:00:00Z",
    }


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestAppointmentDocuments:
    """Tests for document conversion helpers."""

    def test_decode_firestore_fields(self):
        fields = {
            "medicoId": {"stringValue": "dr-ana"},
            "duracao": {"integerValue": "45"},
            "valor": {"doubleValue": 150.5},
            "ativo": {"booleanValue": True},
            "observacao": {"nullValue": None},
            "dataHora": {"timestampValue": "2024-11-25T13:00:00Z"},
            "endereco": {"mapValue": {"fields": {"cidade": {"stringValue": "Teresópolis"}}}},
            "tags": {"arrayValue": {"values": [{"stringValue": "retorno"}]}},
        }

        assert decode_firestore_fields(fields) == {
            "medicoId": "dr-ana",
            "duracao": 45,
            "valor": 150.5,
            "ativo": True,
            "observacao": None,
            "dataHora": "2024-11-25T13:00:00Z",
            "endereco": {"cidade": "Teresópolis"},
            "tags": ["retorno"],
        }

    def test_decode_unsupported_value(self):
        with pytest.raises(ValueError, match="Unsupported Firestore value"):
            decode_firestore_fields({"local": {"geoPointValue": {}}})

    def test_appointment_from_document_converts_to_local_time(self):
        appointment = appointment_from_document(
            "c-1",
            {"medicoId": "dr-ana", "dataHora": "2024-11-25T13:00:00Z", "duracao": 30, "status": "confirmada"},
            TZ,
        )

        assert appointment.start == pendulum.datetime(2024, 11, 25, 10, 0, tz=TZ)
        assert appointment.start.timezone_name == TZ
        assert appointment.duration_minutes == 30
        assert appointment.status is AppointmentStatus.CONFIRMED

    def test_missing_duration_and_status_use_defaults(self):
        appointment = appointment_from_document(
            "c-2", {"medicoId": "dr-ana", "dataHora": "2024-11-25T09:00:00"}, TZ
        )

        assert appointment.duration_minutes == 30
        assert appointment.status is AppointmentStatus.SCHEDULED

    def test_missing_start_raises_key_error(self):
        with pytest.raises(KeyError):
            appointment_from_document("c-3", {"medicoId": "dr-ana"}, TZ)


class TestFirestoreAppointmentClient:
    """Tests for FirestoreAppointmentClient."""

    def _client(self, **kwargs):
        return FirestoreAppointmentClient(project_id="clinica", timezone=TZ, **kwargs)

    def test_requires_project_id(self):
        with pytest.raises(ValueError, match="project_id"):
            FirestoreAppointmentClient(project_id="")

    def test_query_filters_doctor_day_and_status(self):
        client = self._client(access_token="token-123")

        with patch("clinicagenda.adapters.firestore_client.requests.post", return_value=_response([])) as post:
            asyncio.run(client.get_appointments("dr-ana", MONDAY))

        args, kwargs = post.call_args
        assert args[0] == (
            "https://firestore.googleapis.com/v1/projects/clinica/databases/(default)/documents:runQuery"
        )
        assert kwargs["headers"]["Authorization"] == "Bearer token-123"
        assert kwargs["params"] is None

        query = kwargs["json"]["structuredQuery"]
        assert query["from"] == [{"collectionId": "consultas"}]

        filters = [f["fieldFilter"] for f in query["where"]["compositeFilter"]["filters"]]
        by_op = {(f["field"]["fieldPath"], f["op"]): f["value"] for f in filters}

        assert by_op[("medicoId", "EQUAL")] == {"stringValue": "dr-ana"}
        # Local midnight in Sao Paulo is 03:00 UTC
        assert by_op[("dataHora", "GREATER_THAN_OR_EQUAL")] == {"timestampValue": "2024-11-25T03:00:00Z"}
        assert by_op[("dataHora", "LESS_THAN")] == {"timestampValue": "2024-11-26T03:00:00Z"}
        statuses = [v["stringValue"] for v in by_op[("status", "IN")]["arrayValue"]["values"]]
        assert sorted(statuses) == ["agendada", "confirmada"]

    def test_api_key_is_sent_as_query_parameter(self):
        client = self._client(api_key="key-abc")

        with patch("clinicagenda.adapters.firestore_client.requests.post", return_value=_response([])) as post:
            asyncio.run(client.get_appointments("dr-ana", MONDAY))

        assert post.call_args.kwargs["params"] == {"key": "key-abc"}
        assert "Authorization" not in post.call_args.kwargs["headers"]

    def test_parses_documents_and_skips_invalid_ones(self, caplog):
        payload = [
            {"readTime": "2024-11-20T12:00:00Z"},
            _firestore_document("abc", {
                "medicoId": {"stringValue": "dr-ana"},
                "pacienteId": {"stringValue": "p-9"},
                "dataHora": {"timestampValue": "2024-11-25T13:00:00Z"},
                "duracao": {"integerValue": "45"},
                "status": {"stringValue": "agendada"},
            }),
            _firestore_document("broken", {
                "medicoId": {"stringValue": "dr-ana"},
                "status": {"stringValue": "agendada"},
            }),
            _firestore_document("odd-status", {
                "medicoId": {"stringValue": "dr-ana"},
                "dataHora": {"timestampValue": "2024-11-25T15:00:00Z"},
                "status": {"stringValue": "pendente"},
            }),
        ]
        client = self._client()

        with patch("clinicagenda.adapters.firestore_client.requests.post", return_value=_response(payload)):
            appointments = asyncio.run(client.get_appointments("dr-ana", MONDAY))

        assert len(appointments) == 1
        appointment = appointments[0]
        assert appointment.id == "abc"
        assert appointment.patient_id == "p-9"
        assert appointment.start == pendulum.datetime(2024, 11, 25, 10, 0, tz=TZ)
        assert appointment.end == pendulum.datetime(2024, 11, 25, 10, 45, tz=TZ)
        assert "broken" in caplog.text
        assert "odd-status" in caplog.text

    def test_http_error_raises_source_error(self):
        client = self._client()
        response = _response([])
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("403 Forbidden")

        with patch("clinicagenda.adapters.firestore_client.requests.post", return_value=response):
            with pytest.raises(AppointmentSourceError, match="403 Forbidden"):
                asyncio.run(client.get_appointments("dr-ana", MONDAY))

    def test_connection_error_raises_source_error(self):
        client = self._client()

        with patch(
            "clinicagenda.adapters.firestore_client.requests.post",
            side_effect=requests.exceptions.ConnectionError("unreachable"),
        ):
            with pytest.raises(AppointmentSourceError, match="unreachable"):
                asyncio.run(client.get_appointments("dr-ana", MONDAY))


class TestMockAppointmentClient:
    """Tests for MockAppointmentClient."""

    def test_bundled_data_filters_doctor_and_day(self):
        client = MockAppointmentClient(timezone=TZ)

        appointments = asyncio.run(client.get_appointments("dr-ana", MONDAY))

        assert [a.id for a in appointments] == ["c-1001", "c-1002", "c-1003"]
        assert appointments[1].status is AppointmentStatus.CANCELLED

    def test_custom_file_and_invalid_entries(self, tmp_path):
        data_file = tmp_path / "appointments.json"
        data_file.write_text(json.dumps([
            {"id": "ok", "medicoId": "dr-x", "dataHora": "2024-11-25T08:00:00", "duracao": 20, "status": "agendada"},
            {"id": "bad-duration", "medicoId": "dr-x", "dataHora": "2024-11-25T09:00:00", "duracao": 0},
            {"id": "no-date", "medicoId": "dr-x"},
            {"id": "other-day", "medicoId": "dr-x", "dataHora": "2024-11-26T08:00:00"},
        ]), encoding="utf-8")
        client = MockAppointmentClient(data_file=data_file, timezone=TZ)

        appointments = asyncio.run(client.get_appointments("dr-x", MONDAY))

        assert [a.id for a in appointments] == ["ok"]
        assert appointments[0].duration_minutes == 20

    def test_missing_file_serves_nothing(self, tmp_path):
        client = MockAppointmentClient(data_file=tmp_path / "none.json", timezone=TZ)

        assert asyncio.run(client.get_appointments("dr-ana", MONDAY)) == []

    def test_unreadable_file_raises_source_error(self, tmp_path):
        data_file = tmp_path / "appointments.json"
        data_file.write_text("{not json", encoding="utf-8")

        with pytest.raises(AppointmentSourceError, match="Could not read mock appointments"):
            MockAppointmentClient(data_file=data_file, timezone=TZ)

    def test_non_list_file_raises_source_error(self, tmp_path):
        data_file = tmp_path / "appointments.json"
        data_file.write_text('{"id": "c-1"}', encoding="utf-8")

        with pytest.raises(AppointmentSourceError, match="must hold a JSON list"):
            MockAppointmentClient(data_file=data_file, timezone=TZ)
