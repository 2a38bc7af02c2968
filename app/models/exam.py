"""Pydantic models for extracted exam records.

The wire format (what the model is asked to emit and what the persistence
layer stores) uses camelCase keys; Python code uses snake_case attributes.
Both are accepted on input.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)
from pydantic.alias_generators import to_camel


class QuestionType(str, Enum):
    """Answer format of the questions in an exam."""
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"


# Legacy / prompt spellings used by stored records
_QUESTION_TYPE_ALIASES: Dict[str, QuestionType] = {
    "multiple_choice": QuestionType.MULTIPLE_CHOICE,
    "multipla_escolha": QuestionType.MULTIPLE_CHOICE,
    "true_false": QuestionType.TRUE_FALSE,
    "certo_errado": QuestionType.TRUE_FALSE,
}


class ExamModel(BaseModel):
    """Base model for exam records.

    Unknown keys emitted by the model are kept, and numeric ids/options are
    accepted as strings, since the upstream JSON shape is untrusted.
    A value that cannot be coerced to its field type (a null title or a
    "high" confidence) falls back to the field default.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    @field_validator("*", mode="wrap")
    @classmethod
    def default_on_invalid(
        cls, v: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        try:
            return handler(v)
        except ValidationError:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)

    def to_wire(self) -> Dict[str, Any]:
        """Dump using camelCase keys, as stored and returned by the API."""
        return self.model_dump(by_alias=True, mode="json")


class ExamMetadata(ExamModel):
    """Free-form exam classification used for question bank filters."""
    contest: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("contest", "concurso"),
        description="Contest / public tender name"
    )
    board: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("board", "banca"),
        description="Examining board"
    )
    position: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("position", "cargo"),
        description="Position the exam selects for"
    )
    level: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("level", "nivel"),
        description="Education level"
    )
    subject: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("subject", "disciplina"),
    )
    subject_area: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("subject_area", "subjectArea", "areaDisciplina"),
    )
    year: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("year", "ano"),
    )
    state: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("state", "estado"),
    )
    municipality: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("municipality", "municipio"),
    )
    question_type: Optional[QuestionType] = Field(
        default=None,
        validation_alias=AliasChoices("question_type", "questionType", "tipoQuestao"),
    )

    @field_validator("year", mode="before")
    @classmethod
    def parse_year(cls, v: Any) -> Optional[int]:
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, float):
            return int(v) if v.is_integer() else None
        try:
            return int(str(v).strip())
        except ValueError:
            return None

    @field_validator("question_type", mode="before")
    @classmethod
    def parse_question_type(cls, v: Any) -> Optional[QuestionType]:
        if isinstance(v, QuestionType):
            return v
        if not isinstance(v, str):
            return None
        return _QUESTION_TYPE_ALIASES.get(v.strip().lower())


class SupportText(ExamModel):
    """A shared reading passage referenced by a range of questions."""
    id: str = Field(default="", description="Label of the text, e.g. 'Texto I'")
    content: str = Field(default="", description="Passage text with markdown formatting")
    associated_questions: str = Field(
        default="",
        description="Question numbers the text applies to, e.g. '1-5' or '10, 11'"
    )


class Question(ExamModel):
    """A single extracted question."""
    id: str = Field(default="", description="Question number as printed")
    text: str = Field(default="", description="Question statement with markdown formatting")
    options: List[str] = Field(default_factory=list, description="Answer options in order")
    correct_answer: Optional[str] = Field(default=None, description="Answer key letter, if found")
    confidence: float = Field(default=0.0, description="Model confidence for this question")
    has_graphic: Optional[bool] = Field(
        default=None,
        description="True when the question refers to an image, chart or figure"
    )


class ExamRecord(ExamModel):
    """Complete, strictly typed extraction result for one exam document."""
    title: str = Field(default="", description="Exam title")
    course: str = Field(default="", description="Course / discipline name")
    description: Optional[str] = Field(default=None)
    metadata: Optional[ExamMetadata] = Field(default=None)
    support_texts: List[SupportText] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)
