"""
Exam extraction API endpoints.

Provides endpoints for extracting an exam from an uploaded document and for
running only the repair pipeline on text a model already produced.
"""

import logging

from fastapi import APIRouter, File, HTTPException, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.config import get_settings
from app.middleware.rate_limit import RATE_LIMITS, get_limiter
from app.models.exam import ExamRecord
from app.services.exam_extractor import extract_exam
from app.services.exam_pipeline import parse_exam_response
from app.services.exam_validator import IncompleteExamError, check_completeness
from app.services.file_validator import validate_upload
from app.services.gemini_client import get_gemini_client
from app.services.tolerant_parser import ResponseParseError

router = APIRouter(prefix="/api", tags=["extraction"])
limiter = get_limiter()
logger = logging.getLogger(__name__)


class RawResponseRequest(BaseModel):
    """Model output to run through the repair pipeline."""
    raw_text: str = Field(..., min_length=1, description="Raw text returned by the model")


def _record_response(record: ExamRecord, status_code: int) -> Response:
    return JSONResponse(
        content=record.to_wire(),
        status_code=status_code,
        headers={"X-Question-Count": str(len(record.questions))},
    )


def _parse_failure(e: ResponseParseError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={
            "message": "The AI response could not be read as an exam. Please try the extraction again.",
            "error": e.message,
            "line": e.line,
            "column": e.column,
        },
    )


@router.post("/extract", status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["extract"])  # type: ignore[untyped-decorator]
async def extract_exam_document(
    request: Request,
    file: UploadFile = File(..., description="Exam PDF or image"),
) -> Response:
    """
    Extract a structured exam from an uploaded document.

    This endpoint:
    1. Validates the uploaded file (size, PDF/image type)
    2. Sends it to Gemini and repairs/parses the response
    3. Rejects extractions with too many empty questions

    Returns:
        201: ExamRecord (camelCase JSON), X-Question-Count header
        400: Invalid file
        413: File too large
        422: Unreadable model output or incomplete extraction
        500: Processing error
    """
    settings = get_settings()
    content, mime_type, filename = await validate_upload(
        file, max_file_size=settings.max_upload_size_mb * 1024 * 1024
    )
    logger.info(f"Extracting exam from {filename} ({mime_type}, {len(content)} bytes)")

    try:
        record = await extract_exam(
            get_gemini_client(),
            content,
            mime_type=mime_type,
            model=settings.model_name,
            lookahead_window=settings.repair_lookahead_window,
            max_retries=settings.gemini_max_retries,
        )
    except ResponseParseError as e:
        raise _parse_failure(e)
    except Exception as e:
        logger.error(f"Extraction of {filename} failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Processing error: {str(e)}"
        )

    try:
        check_completeness(record, settings.max_empty_question_ratio)
    except IncompleteExamError as e:
        logger.warning(f"Rejected {filename}: {e.empty}/{e.total} empty questions")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    return _record_response(record, status.HTTP_201_CREATED)


@router.post("/extract/parse")
@limiter.limit(RATE_LIMITS["parse"])  # type: ignore[untyped-decorator]
async def parse_model_output(request: Request, payload: RawResponseRequest) -> Response:
    """
    Run the repair-and-parse pipeline on raw model text (no Gemini call).

    Returns:
        200: ExamRecord (camelCase JSON)
        422: Text could not be repaired into a valid exam
    """
    settings = get_settings()
    try:
        record = parse_exam_response(payload.raw_text, settings.repair_lookahead_window)
    except ResponseParseError as e:
        logger.warning(f"Raw text could not be parsed at line {e.line}, column {e.column}: {e.message}")
        raise _parse_failure(e)

    return _record_response(record, status.HTTP_200_OK)
