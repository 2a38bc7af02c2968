"""
Exam submission endpoint.

Stores a reviewed extraction and fans its questions out into the question
bank, after rejecting incomplete extractions and near-duplicates of exams
already in the system.
"""

import logging
from pathlib import Path
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.config import get_settings
from app.db.exams import create_exam, create_questions, delete_exam, list_recent_exams
from app.db.supabase_client import get_supabase_client
from app.middleware.rate_limit import RATE_LIMITS, get_limiter
from app.services.duplicate_detector import find_duplicate
from app.services.exam_validator import IncompleteExamError, check_completeness
from app.services.file_validator import ALLOWED_MIME_TYPES, sanitize_filename
from app.services.question_bank import build_question_documents
from app.services.shape_normalizer import normalize_exam

router = APIRouter(prefix="/api", tags=["exams"])
limiter = get_limiter()
logger = logging.getLogger(__name__)


class ExamSubmission(BaseModel):
    """An extracted exam submitted for storage."""
    exam: Dict[str, Any] = Field(..., description="ExamRecord in wire (camelCase) format")
    file_name: str = Field(default="exam.pdf", description="Name of the uploaded file")
    user_id: str = Field(..., min_length=1, description="Submitting user")
    skip_duplicate_check: bool = Field(
        default=False,
        description="Store even if a similar exam exists (user confirmed)"
    )


@router.post("/exams", status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["exams"])  # type: ignore[untyped-decorator]
async def submit_exam(request: Request, submission: ExamSubmission) -> Response:
    """
    Store an exam and its question-bank documents.

    Returns:
        201: {"exam_id", "question_count"}
        409: A similar exam already exists (match details in detail)
        422: Incomplete exam
        500: Database error
    """
    settings = get_settings()

    record = normalize_exam(submission.exam)

    try:
        check_completeness(record, settings.max_empty_question_ratio)
    except IncompleteExamError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    supabase_client = get_supabase_client()
    extension = Path(submission.file_name).suffix.lower()
    if extension not in ALLOWED_MIME_TYPES.values():
        extension = ".pdf"
    file_name = sanitize_filename(submission.file_name, extension)

    if not submission.skip_duplicate_check:
        try:
            recent = await list_recent_exams(supabase_client, limit=settings.duplicate_scan_limit)
        except Exception as e:
            # Never blocks storing
            logger.error(f"Duplicate check failed: {e}")
            recent = []

        duplicate = find_duplicate(record, recent, threshold=settings.duplicate_similarity_threshold)
        if duplicate is not None:
            logger.info(
                f"Submission by {submission.user_id} matches exam {duplicate.exam_id} "
                f"({duplicate.similarity:.0%})"
            )
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={
                    "message": "A similar exam already exists",
                    "exam_id": duplicate.exam_id,
                    "title": duplicate.title,
                    "similarity": round(duplicate.similarity, 4),
                    "user_id": duplicate.user_id,
                },
            )

    exam_id = None
    try:
        exam_id = await create_exam(supabase_client, record, file_name, submission.user_id)
        documents = build_question_documents(
            record, exam_id, created_by=submission.user_id, fallback_title=file_name
        )
        question_count = await create_questions(supabase_client, documents)
    except Exception as e:
        if exam_id is not None:
            # Exam row already written; remove it so no exam is left without questions
            try:
                await delete_exam(supabase_client, exam_id)
            except Exception as cleanup_error:
                logger.error(f"Could not remove partially stored exam {exam_id}: {cleanup_error}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Database error: {str(e)}"
        )

    return JSONResponse(
        content={"exam_id": exam_id, "question_count": question_count},
        status_code=status.HTTP_201_CREATED,
        headers={"X-Question-Count": str(question_count)},
    )
