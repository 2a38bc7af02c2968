"""
Tests for Gemini exam extraction with mocked API client.
"""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.services.exam_extractor import EXAM_EXTRACTION_PROMPT, extract_exam
from app.services.tolerant_parser import ResponseParseError


VALID_RESPONSE = (
    '```json\n{"title": "Prova de Direito", "course": "Direito", '
    '"questions": [{"id": "1", "text": "Qual o prazo?", "options": {"A": "5 dias", "B": "10 dias"}}]}\n```'
)


def _mock_client(*responses) -> MagicMock:
    client = MagicMock()
    client.models.generate_content.side_effect = list(responses)
    return client


def _text_response(text: str) -> MagicMock:
    response = MagicMock()
    response.text = text
    return response


@pytest.mark.asyncio
async def test_extract_exam_success():
    """Test a successful extraction returns a normalized record."""
    client = _mock_client(_text_response(VALID_RESPONSE))

    record = await extract_exam(client, b"%PDF-1.4 content", model="gemini-test")

    assert record.title == "Prova de Direito"
    assert record.questions[0].options == ["5 dias", "10 dias"]

    call = client.models.generate_content.call_args
    assert call.kwargs["model"] == "gemini-test"
    assert call.kwargs["contents"][0] == EXAM_EXTRACTION_PROMPT


@pytest.mark.asyncio
async def test_extract_exam_parse_failure_is_logged_and_raised(caplog):
    """Test unreadable output is logged with position and not retried."""
    client = _mock_client(_text_response('{"title": "x", "questions": [{"id": 1'))

    with caplog.at_level(logging.ERROR, logger="app.services.exam_extractor"):
        with pytest.raises(ResponseParseError):
            await extract_exam(client, b"%PDF", max_retries=3)

    assert client.models.generate_content.call_count == 1
    assert any("could not be parsed" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_extract_exam_empty_response():
    """Test empty Gemini output raises ValueError without retrying."""
    client = _mock_client(_text_response(""))

    with pytest.raises(ValueError, match="empty response"):
        await extract_exam(client, b"%PDF")

    assert client.models.generate_content.call_count == 1


@pytest.mark.asyncio
async def test_extract_exam_retries_overloaded_model():
    """Test a 503 from Gemini is retried with backoff."""
    client = _mock_client(
        Exception("503 UNAVAILABLE. The model is overloaded."),
        _text_response(VALID_RESPONSE),
    )

    with patch("app.utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        record = await extract_exam(client, b"%PDF", max_retries=2)

    assert record.title == "Prova de Direito"
    assert client.models.generate_content.call_count == 2
    mock_sleep.assert_awaited_once()


@pytest.mark.asyncio
async def test_extract_exam_gives_up_after_max_retries():
    """Test retries stop after max_retries and the last error propagates."""
    client = _mock_client(*[Exception("429 RESOURCE_EXHAUSTED")] * 3)

    with patch("app.utils.retry.asyncio.sleep", new_callable=AsyncMock):
        with pytest.raises(Exception, match="RESOURCE_EXHAUSTED"):
            await extract_exam(client, b"%PDF", max_retries=2)

    assert client.models.generate_content.call_count == 3


@pytest.mark.asyncio
async def test_extract_exam_does_not_retry_client_errors():
    """Test a 400 error is raised immediately."""
    error = Exception("invalid argument")
    error.status_code = 400
    client = _mock_client(error)

    with pytest.raises(Exception, match="invalid argument"):
        await extract_exam(client, b"%PDF")

    assert client.models.generate_content.call_count == 1
