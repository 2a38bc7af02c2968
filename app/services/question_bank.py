"""Fan-out of an exam record into individually addressable question documents.

Each question of an exam becomes its own document in the question bank,
carrying its support text (resolved from the ``associatedQuestions`` ranges)
and the exam metadata used for filtering.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.models.exam import ExamRecord
from app.services.exam_validator import infer_question_type

_RANGE_SEPARATORS = re.compile(r"[,;]")
_LEADING_INT = re.compile(r"^\s*(-?\d+)")


def _parse_int(value: str) -> Optional[int]:
    # Leading integer, like JavaScript parseInt: "12a" -> 12, "a" -> None
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else None


def parse_question_range(expression: str) -> List[int]:
    """Expand a range expression into question numbers.

    Parts are separated by ``,`` or ``;``. ``"N"`` is a single question and
    ``"N-M"`` an inclusive range. Unparseable parts are ignored.

    Example:
        >>> parse_question_range("1-3, 5; 7")
        [1, 2, 3, 5, 7]
    """
    numbers: List[int] = []
    for part in _RANGE_SEPARATORS.split(expression or ""):
        bounds = part.strip().split("-")
        if len(bounds) == 2:
            start = _parse_int(bounds[0])
            end = _parse_int(bounds[1])
            if start is not None and end is not None:
                numbers.extend(range(start, end + 1))
        elif len(bounds) == 1:
            number = _parse_int(bounds[0])
            if number is not None:
                numbers.append(number)
    return numbers


def build_support_text_map(record: ExamRecord) -> Dict[int, str]:
    """Map 1-based question numbers to the content of their support text.

    When ranges overlap, the later support text wins.
    """
    support_map: Dict[int, str] = {}
    for support_text in record.support_texts:
        for number in parse_question_range(support_text.associated_questions):
            support_map[number] = support_text.content
    return support_map


def build_question_documents(
    record: ExamRecord,
    exam_id: str,
    created_by: str,
    fallback_title: str = "",
) -> List[Dict[str, Any]]:
    """Build one question-bank document per question of ``record``.

    Document ids are deterministic (``{exam_id}_q{index}``) so that
    re-saving an exam after review overwrites instead of duplicating.

    Args:
        record: Normalized exam record
        exam_id: Id of the stored exam
        created_by: Id of the submitting user
        fallback_title: Used when the exam has no title (usually the file name)

    Returns:
        List of documents ready for insertion
    """
    metadata = record.metadata
    support_map = build_support_text_map(record)
    now = datetime.now(timezone.utc)

    subject = (metadata.subject if metadata else None) or record.course or ""
    year = (metadata.year if metadata else None) or now.year

    documents: List[Dict[str, Any]] = []
    for index, question in enumerate(record.questions):
        documents.append({
            "id": f"{exam_id}_q{index}",
            # Question data
            "text": question.text,
            "options": list(question.options),
            "correct_answer": question.correct_answer,
            "has_graphic": bool(question.has_graphic),
            "support_text": support_map.get(index + 1),
            # Source exam reference
            "exam_id": exam_id,
            "exam_title": record.title or fallback_title,
            "question_index": index,
            # Filters
            "contest": (metadata.contest if metadata else None) or "",
            "board": (metadata.board if metadata else None) or "",
            "position": (metadata.position if metadata else None) or "",
            "level": (metadata.level if metadata else None) or "",
            "subject": subject,
            "subject_area": (metadata.subject_area if metadata else None) or "",
            "year": year,
            "state": (metadata.state if metadata else None) or "",
            "municipality": (metadata.municipality if metadata else None) or "",
            "question_type": infer_question_type(question, metadata).value,
            # System
            "created_at": now.isoformat(),
            "created_by": created_by,
        })
    return documents
