"""Submission checks on extracted exam records.

An extraction where many questions came back without text usually means the
wrong file was uploaded or the scan is unreadable; such exams are rejected
as a whole instead of being stored partially.
"""

import re
from typing import Optional

from app.models.exam import ExamMetadata, ExamRecord, Question, QuestionType

MIN_QUESTION_TEXT_LENGTH = 5
MAX_EMPTY_QUESTION_RATIO = 0.4

_TRUE_FALSE_OPTION = re.compile(r"certo|errado", re.IGNORECASE)


class IncompleteExamError(ValueError):
    """Raised when too many extracted questions have no usable text.

    Attributes:
        empty: Number of questions with near-empty text
        total: Number of questions in the record
    """

    def __init__(self, empty: int, total: int):
        super().__init__(
            "The uploaded file looks incomplete or unreadable "
            f"({empty}/{total} questions could not be identified). "
            "Check that you are sending the correct exam PDF."
        )
        self.empty = empty
        self.total = total


def is_empty_question(question: Question) -> bool:
    return len(question.text.strip()) < MIN_QUESTION_TEXT_LENGTH


def count_empty_questions(record: ExamRecord) -> int:
    return sum(1 for q in record.questions if is_empty_question(q))


def check_completeness(record: ExamRecord, max_empty_ratio: float = MAX_EMPTY_QUESTION_RATIO) -> None:
    """Reject a record whose share of empty questions exceeds ``max_empty_ratio``.

    Records without questions pass; there is nothing to measure.

    Raises:
        IncompleteExamError: If empty / total > max_empty_ratio
    """
    total = len(record.questions)
    if total == 0:
        return

    empty = count_empty_questions(record)
    if empty / total > max_empty_ratio:
        raise IncompleteExamError(empty, total)


def infer_question_type(question: Question, metadata: Optional[ExamMetadata] = None) -> QuestionType:
    """Answer format of ``question``.

    The exam-level metadata wins when set. Otherwise two options where one
    reads "certo"/"errado" mean true/false; anything else is multiple choice.
    """
    if metadata is not None and metadata.question_type is not None:
        return metadata.question_type

    if len(question.options) == 2 and any(_TRUE_FALSE_OPTION.search(o) for o in question.options):
        return QuestionType.TRUE_FALSE

    return QuestionType.MULTIPLE_CHOICE
