"""Near-duplicate detection between exams by question text overlap."""

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Set

from app.models.exam import ExamRecord

DEFAULT_SIMILARITY_THRESHOLD = 0.7
MIN_TOKEN_LENGTH = 3

_NON_WORD = re.compile(r"[^\w\s]")


@dataclass
class DuplicateMatch:
    """An existing exam that looks like the one being submitted."""
    exam_id: str
    title: str
    similarity: float
    user_id: Optional[str] = None


def tokenize(text: str) -> Set[str]:
    """Lowercase word set of ``text``, ignoring punctuation and short words."""
    cleaned = _NON_WORD.sub("", text.lower())
    return {word for word in cleaned.split() if len(word) >= MIN_TOKEN_LENGTH}


def jaccard_similarity(text_a: str, text_b: str) -> float:
    """Token-set Jaccard similarity in [0, 1]; 0 when both texts are empty."""
    tokens_a = tokenize(text_a)
    tokens_b = tokenize(text_b)
    union = len(tokens_a | tokens_b)
    if union == 0:
        return 0.0
    return len(tokens_a & tokens_b) / union


def exam_text(questions: Iterable[Any]) -> str:
    """Concatenate question texts; accepts Question models or stored dicts."""
    parts = []
    for question in questions:
        text = question.get("text") if isinstance(question, dict) else getattr(question, "text", None)
        if text:
            parts.append(str(text))
    return " ".join(parts)


def find_duplicate(
    record: ExamRecord,
    candidates: Iterable[Dict[str, Any]],
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> Optional[DuplicateMatch]:
    """Return the first stored exam whose questions overlap ``record`` enough.

    Args:
        record: Exam being submitted
        candidates: Stored exam rows with ``id``, ``user_id`` and
            ``extracted_data`` (the exam in wire format)
        threshold: Minimum similarity to report a duplicate

    Returns:
        DuplicateMatch for the first candidate at or above threshold, else None
    """
    new_text = exam_text(record.questions)

    for candidate in candidates:
        extracted = candidate.get("extracted_data")
        if not isinstance(extracted, Mapping):
            continue
        questions = extracted.get("questions")
        if not isinstance(questions, list) or not questions:
            continue

        similarity = jaccard_similarity(new_text, exam_text(questions))
        if similarity >= threshold:
            return DuplicateMatch(
                exam_id=str(candidate.get("id")),
                title=extracted.get("title") or "Existing exam",
                similarity=similarity,
                user_id=candidate.get("user_id"),
            )

    return None
