"""
Tests for the extraction API endpoints.

Gemini and file sniffing are mocked; the repair pipeline runs for real.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from app.main import app
from app.models.exam import ExamRecord, Question
from app.services.tolerant_parser import ResponseParseError


@pytest.fixture
def client() -> TestClient:
    """Create FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def upload():
    return {"file": ("prova.pdf", b"%PDF-1.4 exam", "application/pdf")}


def _record(texts) -> ExamRecord:
    return ExamRecord(title="Prova", questions=[Question(id=str(i), text=t) for i, t in enumerate(texts)])


@pytest.fixture
def mock_upload_valid():
    with patch(
        "app.routers.extraction.validate_upload",
        new_callable=AsyncMock,
        return_value=(b"%PDF-1.4 exam", "application/pdf", "prova.pdf"),
    ) as mock_validate:
        yield mock_validate


# POST /api/extract


@patch("app.routers.extraction.get_gemini_client")
@patch("app.routers.extraction.extract_exam", new_callable=AsyncMock)
def test_extract_success(mock_extract, mock_gemini, mock_upload_valid, client, upload):
    """Test a successful extraction returns the record in wire format."""
    mock_extract.return_value = _record(["Primeira questão", "Segunda questão"])

    response = client.post("/api/extract", files=upload)

    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Prova"
    assert len(data["questions"]) == 2
    assert "supportTexts" in data
    assert response.headers["X-Question-Count"] == "2"

    kwargs = mock_extract.call_args.kwargs
    assert kwargs["mime_type"] == "application/pdf"
    assert kwargs["model"] == "gemini-2.5-flash"
    assert kwargs["lookahead_window"] == 20
    assert kwargs["max_retries"] == 3


@patch("app.routers.extraction.get_gemini_client")
@patch("app.routers.extraction.extract_exam", new_callable=AsyncMock)
def test_extract_lookahead_from_settings(mock_extract, mock_gemini, mock_upload_valid, client, upload, monkeypatch):
    monkeypatch.setenv("REPAIR_LOOKAHEAD_WINDOW", "35")
    mock_extract.return_value = _record([])

    client.post("/api/extract", files=upload)

    assert mock_extract.call_args.kwargs["lookahead_window"] == 35


@patch("app.routers.extraction.get_gemini_client")
@patch("app.routers.extraction.extract_exam", new_callable=AsyncMock)
def test_extract_unparseable_response(mock_extract, mock_gemini, mock_upload_valid, client, upload):
    """Test a parse failure is reported as 422 with its position."""
    mock_extract.side_effect = ResponseParseError("Could not parse model response", line=3, column=7)

    response = client.post("/api/extract", files=upload)

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["error"] == "Could not parse model response"
    assert detail["line"] == 3
    assert detail["column"] == 7


@patch("app.routers.extraction.get_gemini_client")
@patch("app.routers.extraction.extract_exam", new_callable=AsyncMock)
def test_extract_incomplete_exam(mock_extract, mock_gemini, mock_upload_valid, client, upload):
    """Test an extraction with mostly empty questions is rejected."""
    mock_extract.return_value = _record(["", "", "Questão ok"])

    response = client.post("/api/extract", files=upload)

    assert response.status_code == 422
    assert "2/3" in response.json()["detail"]


@patch("app.routers.extraction.get_gemini_client")
@patch("app.routers.extraction.extract_exam", new_callable=AsyncMock)
def test_extract_gemini_failure(mock_extract, mock_gemini, mock_upload_valid, client, upload):
    """Test unexpected errors become 500."""
    mock_extract.side_effect = RuntimeError("quota exceeded")

    response = client.post("/api/extract", files=upload)

    assert response.status_code == 500
    assert "quota exceeded" in response.json()["detail"]


@patch("app.routers.extraction.validate_upload", new_callable=AsyncMock)
def test_extract_invalid_file(mock_validate, client, upload):
    """Test file validation errors are passed through."""
    mock_validate.side_effect = HTTPException(status_code=400, detail="Invalid file type")

    response = client.post("/api/extract", files=upload)

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid file type"


def test_extract_without_file(client):
    response = client.post("/api/extract")
    assert response.status_code == 422


# POST /api/extract/parse


def test_parse_model_output(client):
    """Test raw model text is repaired and parsed."""
    raw = (
        '```json\n{"title": "Prova", "supportTexts": [{"id": "T", "associatedQuestions": ["1", "2"]}], '
        '"questions": [{"id": "1", "text": "Qual\nartigo?", "options": {"A": "um", "B": "dois"}}]}\n```'
    )

    response = client.post("/api/extract/parse", json={"raw_text": raw})

    assert response.status_code == 200
    data = response.json()
    assert data["questions"][0]["text"] == "Qual\nartigo?"
    assert data["questions"][0]["options"] == ["um", "dois"]
    assert data["supportTexts"][0]["associatedQuestions"] == "1, 2"


def test_parse_model_output_unreadable(client):
    response = client.post("/api/extract/parse", json={"raw_text": '{"title": {"broken": 1}'})

    assert response.status_code == 422
    assert response.json()["detail"]["error"]


def test_parse_model_output_bad_field_types_use_defaults(client):
    """Test mistyped scalars degrade to defaults instead of failing the parse."""
    raw = '{"title": null, "metadata": "CESPE", "questions": [{"id": "1", "text": "Qual?", "confidence": "alta"}]}'

    response = client.post("/api/extract/parse", json={"raw_text": raw})

    assert response.status_code == 200
    data = response.json()
    assert data["title"] == ""
    assert data["metadata"] is None
    assert data["questions"][0]["confidence"] == 0.0
    assert data["questions"][0]["text"] == "Qual?"


def test_parse_model_output_empty_text(client):
    response = client.post("/api/extract/parse", json={"raw_text": ""})
    assert response.status_code == 422
