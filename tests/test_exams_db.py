"""
Tests for exam and question-bank database functions.
"""

from unittest.mock import MagicMock

import pytest

from app.db.exams import create_exam, create_questions, delete_exam, list_recent_exams
from app.models.exam import ExamRecord, Question


@pytest.fixture
def mock_supabase_client():
    """Create mock Supabase client."""
    return MagicMock()


@pytest.fixture
def record() -> ExamRecord:
    return ExamRecord(title="Prova", course="Direito", questions=[Question(id="1", text="Qual?")])


@pytest.mark.asyncio
async def test_create_exam_success(mock_supabase_client, record):
    """Test successful exam creation."""
    mock_response = MagicMock()
    mock_response.data = [{"id": "exam-123"}]
    mock_supabase_client.table.return_value.insert.return_value.execute.return_value = mock_response

    exam_id = await create_exam(mock_supabase_client, record, "prova.pdf", "user-1")

    assert exam_id == "exam-123"
    mock_supabase_client.table.assert_called_once_with("exams")
    row = mock_supabase_client.table.return_value.insert.call_args.args[0]
    assert row["status"] == "review_required"
    assert row["question_count"] == 1
    assert row["file_name"] == "prova.pdf"
    assert row["extracted_data"]["questions"][0]["text"] == "Qual?"
    assert "supportTexts" in row["extracted_data"]


@pytest.mark.asyncio
async def test_create_exam_invalid_status(mock_supabase_client, record):
    with pytest.raises(ValueError, match="Invalid status"):
        await create_exam(mock_supabase_client, record, "prova.pdf", "user-1", status="draft")


@pytest.mark.asyncio
async def test_create_exam_insert_fails(mock_supabase_client, record):
    """Test database errors are wrapped."""
    mock_supabase_client.table.return_value.insert.return_value.execute.side_effect = Exception("connection lost")

    with pytest.raises(RuntimeError, match="Failed to insert exam: connection lost"):
        await create_exam(mock_supabase_client, record, "prova.pdf", "user-1")


@pytest.mark.asyncio
async def test_create_exam_no_data(mock_supabase_client, record):
    mock_response = MagicMock()
    mock_response.data = []
    mock_supabase_client.table.return_value.insert.return_value.execute.return_value = mock_response

    with pytest.raises(RuntimeError, match="no data"):
        await create_exam(mock_supabase_client, record, "prova.pdf", "user-1")


@pytest.mark.asyncio
async def test_create_questions_upserts(mock_supabase_client):
    documents = [{"id": "e_q0"}, {"id": "e_q1"}]

    count = await create_questions(mock_supabase_client, documents)

    assert count == 2
    mock_supabase_client.table.assert_called_once_with("questions")
    mock_supabase_client.table.return_value.upsert.assert_called_once_with(documents)


@pytest.mark.asyncio
async def test_create_questions_empty(mock_supabase_client):
    assert await create_questions(mock_supabase_client, []) == 0
    mock_supabase_client.table.assert_not_called()


@pytest.mark.asyncio
async def test_create_questions_fails(mock_supabase_client):
    mock_supabase_client.table.return_value.upsert.return_value.execute.side_effect = Exception("boom")

    with pytest.raises(RuntimeError, match="Failed to store questions"):
        await create_questions(mock_supabase_client, [{"id": "e_q0"}])


@pytest.mark.asyncio
async def test_delete_exam_removes_questions_then_exam(mock_supabase_client):
    """Test question-bank documents are deleted before the exam row."""
    await delete_exam(mock_supabase_client, "exam-1")

    tables = [c.args[0] for c in mock_supabase_client.table.call_args_list]
    assert tables == ["questions", "exams"]
    delete = mock_supabase_client.table.return_value.delete.return_value
    assert [c.args for c in delete.eq.call_args_list] == [("exam_id", "exam-1"), ("id", "exam-1")]


@pytest.mark.asyncio
async def test_delete_exam_fails(mock_supabase_client):
    delete = mock_supabase_client.table.return_value.delete.return_value
    delete.eq.return_value.execute.side_effect = Exception("timeout")

    with pytest.raises(RuntimeError, match="Failed to delete exam: timeout"):
        await delete_exam(mock_supabase_client, "exam-1")


@pytest.mark.asyncio
async def test_list_recent_exams(mock_supabase_client):
    """Test recent exams are selected newest first with a limit."""
    rows = [{"id": "a", "user_id": "u", "extracted_data": {}}]
    query = mock_supabase_client.table.return_value.select.return_value
    query.order.return_value.limit.return_value.execute.return_value = MagicMock(data=rows)

    result = await list_recent_exams(mock_supabase_client, limit=10)

    assert result == rows
    mock_supabase_client.table.return_value.select.assert_called_once_with("id, user_id, extracted_data")
    query.order.assert_called_once_with("created_at", desc=True)
    query.order.return_value.limit.assert_called_once_with(10)


@pytest.mark.asyncio
async def test_list_recent_exams_empty(mock_supabase_client):
    query = mock_supabase_client.table.return_value.select.return_value
    query.order.return_value.limit.return_value.execute.return_value = MagicMock(data=None)

    assert await list_recent_exams(mock_supabase_client) == []
