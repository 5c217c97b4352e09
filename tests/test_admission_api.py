"""API endpoint tests using TestClient.

The admission service is swapped in through dependency_overrides with real
filesystem storage under tmp_path and a mocked record repository, so no
database connection is needed.
"""
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from invoice_gate.core.config import Settings
from invoice_gate.core.dependencies import get_admission_service
from invoice_gate.core.file_validation import FileValidator
from invoice_gate.core.threat_scan import EICAR_TEST_SIGNATURE
from invoice_gate.main import app
from invoice_gate.services.admission_service import AdmissionService
from invoice_gate.services.storage_service import LocalObjectStorage

VALID_PDF = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n%%EOF"


@pytest.fixture
def mock_record_repo() -> MagicMock:
    repo = MagicMock()
    repo.create = AsyncMock(side_effect=lambda record: record)
    repo.update = AsyncMock(side_effect=lambda record: record)
    repo.get_by_upload_id = AsyncMock(return_value=None)
    repo.get_paginated = AsyncMock(return_value=([], 0))
    repo.get_by_fingerprint = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def client(tmp_path: Path, mock_record_repo: MagicMock):
    notifier = MagicMock()
    notifier.notify = AsyncMock()
    service = AdmissionService(
        LocalObjectStorage(tmp_path),
        mock_record_repo,
        notifier,
        FileValidator(),
        Settings(STORAGE_ROOT=tmp_path),
    )
    app.dependency_overrides[get_admission_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root_returns_app_info(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "app_name" in data
    assert "app_version" in data
    assert data["validation"]["max_file_size_bytes"] > 0
    assert "application/pdf" in data["validation"]["allowed_content_types"]
    assert data["storage"]["incoming_prefix"] == "invoices/"
    assert data["storage"]["quarantine_prefix"] == "invoices/quarantine/"


def test_upload_valid_pdf(client: TestClient) -> None:
    response = client.post(
        "/api/v1/admissions/upload",
        files={"file": ("invoice.pdf", VALID_PDF, "application/pdf")},
        data={"invoice_type": "supplier"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "passed"
    assert data["final_key"].startswith("invoices/validated/")
    assert data["result"]["is_valid"] is True
    assert len(data["result"]["fingerprint"]) == 64


def test_upload_disallowed_type_is_quarantined(client: TestClient) -> None:
    response = client.post(
        "/api/v1/admissions/upload",
        files={"file": ("bad.exe", b"MZ binary content", "application/octet-stream")},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "failed"
    assert data["final_key"].startswith("invoices/quarantine/")
    assert "MIME type application/octet-stream is not allowed" in data["result"]["errors"]


def test_validate_reports_threat(client: TestClient) -> None:
    response = client.post(
        "/api/v1/admissions/validate",
        files={"file": ("note.txt", b"hi " + EICAR_TEST_SIGNATURE, "text/plain")},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["is_valid"] is False
    assert "MIME type text/plain is not allowed" in data["errors"]
    assert "Threat detected: EICAR-Test-Signature" in data["errors"]


def test_upload_requires_file(client: TestClient) -> None:
    response = client.post("/api/v1/admissions/upload")
    assert response.status_code == 422


def test_list_records(client: TestClient) -> None:
    response = client.get("/api/v1/admissions/?skip=0&limit=10")
    assert response.status_code == 200
    assert response.json() == {"total": 0, "records": []}


def test_get_unknown_record_returns_404(client: TestClient) -> None:
    response = client.get("/api/v1/admissions/does-not-exist")
    assert response.status_code == 404


def test_upload_with_dot_dot_filename_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/api/v1/admissions/upload",
        files={"file": ("..", VALID_PDF, "application/pdf")},
    )
    assert response.status_code == 400

    follow_up = client.post(
        "/api/v1/admissions/upload",
        files={"file": ("invoice.pdf", VALID_PDF, "application/pdf")},
    )
    assert follow_up.status_code == 201
    assert follow_up.json()["status"] == "passed"
