"""Coerce a parsed model response into the canonical exam record shape.

Structural validity is already established when this runs; only field
shapes can still be wrong. The model sometimes emits ``options`` as an
object keyed by letter and ``associatedQuestions`` as a list. Both are
coerced here instead of rejected.
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Union

from app.models.exam import ExamRecord


class OptionsShape(str, Enum):
    """Shapes the ``options`` field arrives in."""
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    UNKNOWN = "unknown"


def classify_options(raw: Any) -> OptionsShape:
    if isinstance(raw, (list, tuple)):
        return OptionsShape.SEQUENCE
    if isinstance(raw, Mapping):
        return OptionsShape.MAPPING
    return OptionsShape.UNKNOWN


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _option_text(item: Any) -> str:
    # {"label": "A", "text": "..."} style items
    if isinstance(item, Mapping):
        if "text" in item and item["text"] is not None:
            return _stringify(item["text"])
        return " ".join(_stringify(v) for v in item.values() if v is not None)
    return _stringify(item)


def coerce_options(raw: Any) -> List[str]:
    """Return ``options`` as a list of strings.

    Sequences are kept in order, mappings are projected to their values in
    insertion order (keys discarded), anything else becomes an empty list.
    """
    shape = classify_options(raw)
    if shape is OptionsShape.SEQUENCE:
        items = list(raw)
    elif shape is OptionsShape.MAPPING:
        items = list(raw.values())
    else:
        return []
    return [_option_text(item) for item in items if item is not None]


def coerce_associated_questions(raw: Any) -> str:
    """Return ``associatedQuestions`` as a range expression string.

    ``["1", "2", "3"]`` becomes ``"1, 2, 3"``; numbers are stringified;
    missing values become ``""``.
    """
    if isinstance(raw, str):
        return raw
    if raw is None:
        return ""
    if isinstance(raw, (list, tuple)):
        return ", ".join(_stringify(item) for item in raw if item is not None)
    if isinstance(raw, Mapping):
        return ", ".join(_stringify(item) for item in raw.values() if item is not None)
    return _stringify(raw)


def _entries(raw: Any) -> List[Dict[str, Any]]:
    if not isinstance(raw, (list, tuple)):
        return []
    return [dict(entry) for entry in raw if isinstance(entry, Mapping)]


def normalize_exam_data(value: Mapping[str, Any]) -> Dict[str, Any]:
    """Apply shape coercions to a parsed response, returning a new dict.

    Only ``questions[].options`` and ``supportTexts[].associatedQuestions``
    are coerced; every other field is passed through unchanged. Never fails.
    """
    data = dict(value)

    # Accept snake_case keys from already-normalized records
    support_key = "support_texts" if "support_texts" in data and "supportTexts" not in data else "supportTexts"
    support_texts = _entries(data.pop(support_key, None))
    for entry in support_texts:
        key = (
            "associated_questions"
            if "associated_questions" in entry and "associatedQuestions" not in entry
            else "associatedQuestions"
        )
        entry[key] = coerce_associated_questions(entry.get(key))
    data[support_key] = support_texts

    questions = _entries(data.get("questions"))
    for entry in questions:
        entry["options"] = coerce_options(entry.get("options"))
    data["questions"] = questions

    return data


def normalize_exam(value: Union[Mapping[str, Any], ExamRecord]) -> ExamRecord:
    """Normalize a parsed response (or an existing record) into an ExamRecord.

    Idempotent: normalizing the wire dump of a normalized record yields an
    equal record. Scalars that cannot be coerced (e.g. ``confidence: "high"``)
    take the field default.
    """
    if isinstance(value, ExamRecord):
        value = value.to_wire()
    return ExamRecord.model_validate(normalize_exam_data(value))
