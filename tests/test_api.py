import json

import pytest
from fastapi.testclient import TestClient

from app import app, get_extractor, get_gateway
from certitrust.errors import OracleFailure
from config import settings, DIGILOCKER_KEY

from conftest import FakeExtractor, make_extraction

DATA_URI = "data:image/png;base64,iVBORw0KGgo="
AUTH = {"x-api-key": settings.INSTITUTION_API_KEY}
NEW_RECORD = {"name": "Ishaan Mehta", "rollNumber": "DL-2023-55102", "certificateId": None}


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def client(gateway, extractor):
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_extractor] = lambda: extractor
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_verify_with_data_uri(client, extractor, aarav):
    extractor.result = make_extraction(aarav, explanation="Clean scan.")
    response = client.post("/verify", data={"image_data_uri": DATA_URI})

    assert response.status_code == 200
    body = response.json()
    assert body["verdict"] == "Valid"
    assert body["trustScore"] == 100
    assert body["details"]["source"]["name"] == "Blockchain"
    assert body["details"]["tampering"]["explanation"] == "Clean scan."
    assert body["details"]["ocr"]["data"]["name"] == "Aarav Sharma"


def test_verify_requires_input(client):
    assert client.post("/verify", data={}).status_code == 400


def test_verify_rejects_non_image(client):
    response = client.post("/verify", data={"image_data_uri": "data:text/plain;base64,aGk="})
    assert response.status_code == 400
    assert "Invalid file format" in response.json()["error"]


def test_verify_rejects_unsupported_upload(client):
    response = client.post("/verify", files={"file": ("notes.txt", b"hello", "text/plain")})
    assert response.status_code == 400


@pytest.mark.parametrize("kind,status", [
    (OracleFailure.QUOTA, 429),
    (OracleFailure.OVERLOADED, 503),
    (OracleFailure.INCOMPLETE, 422),
    (OracleFailure.GENERIC, 502),
])
def test_verify_oracle_failures(client, extractor, kind, status):
    extractor.error = OracleFailure("model said no", kind=kind)
    response = client.post("/verify", data={"image_data_uri": DATA_URI})
    assert response.status_code == status
    assert response.json()["error"] == "model said no"


def test_add_record_requires_api_key(client):
    assert client.post("/api/add-record", json=NEW_RECORD).status_code == 401
    assert client.post("/api/add-record", json=NEW_RECORD, headers={"x-api-key": "wrong"}).status_code == 401


def test_add_record_created_then_conflict(client):
    created = client.post("/api/add-record", json=NEW_RECORD, headers=AUTH)
    assert created.status_code == 201
    assert created.json()["success"] is True
    assert len(created.json()["shellId"]) == 64

    again = client.post("/api/add-record", json=NEW_RECORD, headers=AUTH)
    assert again.status_code == 409
    assert again.json()["message"] == "This certificate is already on the blockchain."


def test_add_record_invalid(client):
    response = client.post("/api/add-record", json={"rollNumber": "1"}, headers=AUTH)
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid data format."


def test_non_object_body_is_invalid_data(client):
    response = client.post("/api/add-record", json=[{"name": "X"}], headers=AUTH)
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid data format."}

    response = client.post("/blockchain/records", json="Aarav Sharma")
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid data format."


def test_add_to_blockchain_user_action(client):
    assert client.post("/blockchain/records", json=NEW_RECORD).status_code == 201
    assert client.post("/blockchain/records", json=NEW_RECORD).status_code == 409


def test_digilocker_bulk_upload(client, gateway):
    payload = json.dumps([{"Student Name": "New Student", "Roll Number": "1"}]).encode()
    response = client.post(
        "/admin/digilocker-records",
        files={"json_file": ("records.json", payload, "application/json")},
        headers=AUTH,
    )
    assert response.status_code == 200
    assert "1 records" in response.json()["message"]
    assert len(gateway.get_all(DIGILOCKER_KEY)) == 5


def test_digilocker_bulk_upload_rejects_bad_files(client):
    not_json = client.post(
        "/admin/digilocker-records",
        files={"json_file": ("records.txt", b"[]", "text/plain")},
        headers=AUTH,
    )
    assert not_json.status_code == 400

    broken = client.post(
        "/admin/digilocker-records",
        files={"json_file": ("records.json", b"[{", "application/json")},
        headers=AUTH,
    )
    assert broken.status_code == 400

    not_array = client.post(
        "/admin/digilocker-records",
        files={"json_file": ("records.json", b"{}", "application/json")},
        headers=AUTH,
    )
    assert not_array.status_code == 400
    assert not_array.json()["message"] == "JSON file must contain an array of records."

    not_utf8 = client.post(
        "/admin/digilocker-records",
        files={"json_file": ("records.json", b"[\xff\xfe\x00]", "application/json")},
        headers=AUTH,
    )
    assert not_utf8.status_code == 400
    assert "Invalid JSON format" in not_utf8.json()["message"]


def test_digilocker_bulk_upload_requires_api_key(client):
    response = client.post(
        "/admin/digilocker-records",
        files={"json_file": ("records.json", b"[]", "application/json")},
    )
    assert response.status_code == 401
