"""Database functions for exams and question-bank documents.

Exams are stored whole (the wire-format record in ``extracted_data``) and
each question is fanned out into the ``questions`` table for the question
bank. Supabase calls are blocking, so they run in a worker thread.
"""

import asyncio
from typing import Any, Dict, List

from supabase import Client

from app.models.exam import ExamRecord

EXAMS_TABLE = "exams"
QUESTIONS_TABLE = "questions"

VALID_STATUSES = ("review_required", "approved", "rejected")


async def create_exam(
    client: Client,
    record: ExamRecord,
    file_name: str,
    user_id: str,
    status: str = "review_required",
) -> str:
    """Insert a new exam.

    Args:
        client: Supabase client instance
        record: Normalized exam record
        file_name: Original (sanitized) file name
        user_id: Id of the submitting user
        status: Review status of the exam

    Returns:
        str: Id of the created exam

    Raises:
        ValueError: If status is invalid
        RuntimeError: If the insert fails
    """
    if status not in VALID_STATUSES:
        raise ValueError(f"Invalid status '{status}'. Must be one of: {', '.join(VALID_STATUSES)}")

    row = {
        "user_id": user_id,
        "file_name": file_name,
        "status": status,
        "title": record.title,
        "course": record.course,
        "question_count": len(record.questions),
        "extracted_data": record.to_wire(),
    }

    try:
        response = await asyncio.to_thread(
            lambda: client.table(EXAMS_TABLE).insert(row).execute()
        )
    except Exception as e:
        raise RuntimeError(f"Failed to insert exam: {str(e)}") from e

    if not response.data:
        raise RuntimeError("Failed to insert exam: insert returned no data")
    return str(response.data[0]["id"])


async def create_questions(client: Client, documents: List[Dict[str, Any]]) -> int:
    """Upsert question-bank documents (ids are deterministic per exam).

    Returns:
        int: Number of documents written

    Raises:
        RuntimeError: If the upsert fails
    """
    if not documents:
        return 0

    try:
        await asyncio.to_thread(
            lambda: client.table(QUESTIONS_TABLE).upsert(documents).execute()
        )
    except Exception as e:
        raise RuntimeError(f"Failed to store questions: {str(e)}") from e

    return len(documents)


async def delete_exam(client: Client, exam_id: str) -> None:
    """Delete an exam and any question-bank documents stored for it.

    Raises:
        RuntimeError: If either delete fails
    """
    try:
        await asyncio.to_thread(
            lambda: client.table(QUESTIONS_TABLE).delete().eq("exam_id", exam_id).execute()
        )
        await asyncio.to_thread(
            lambda: client.table(EXAMS_TABLE).delete().eq("id", exam_id).execute()
        )
    except Exception as e:
        raise RuntimeError(f"Failed to delete exam: {str(e)}") from e


async def list_recent_exams(client: Client, limit: int = 50) -> List[Dict[str, Any]]:
    """Return the most recent exams with their extracted data, newest first."""
    response = await asyncio.to_thread(
        lambda: client.table(EXAMS_TABLE)
        .select("id, user_id, extracted_data")
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return list(response.data or [])
