"""Repair-and-parse pipeline turning raw model text into an ExamRecord.

    raw text -> extract_json_block -> repair_json_text
             -> parse_relaxed_json -> normalize_exam -> ExamRecord

Every stage is a pure function, so the pipeline is safe to run concurrently
for independent requests.
"""

from app.models.exam import ExamRecord
from app.services.response_repair import (
    DEFAULT_LOOKAHEAD_WINDOW,
    extract_json_block,
    repair_json_text,
)
from app.services.shape_normalizer import normalize_exam
from app.services.tolerant_parser import parse_relaxed_json


def parse_exam_response(raw: str, lookahead_window: int = DEFAULT_LOOKAHEAD_WINDOW) -> ExamRecord:
    """Turn a raw model response into a structured exam record.

    Args:
        raw: Text returned by the document-AI model
        lookahead_window: Characters inspected after an in-string quote

    Returns:
        ExamRecord with canonical field shapes

    Raises:
        ResponseParseError: If the repaired text cannot be parsed. Not
            retried here; the caller decides whether to log and re-run
            the extraction.

    Example:
        >>> record = parse_exam_response('```json\\n{"title": "Prova", "questions": []}\\n```')
        >>> record.title
        'Prova'
    """
    block = extract_json_block(raw)
    repaired = repair_json_text(block, lookahead_window)
    value = parse_relaxed_json(repaired)
    return normalize_exam(value)
