"""Relaxed JSON parsing of repaired model output.

Parsing is delegated to json5, which accepts trailing commas, single-quoted
strings and unquoted keys. Failures are raised as ResponseParseError with the
position reported by json5; logging is left to the caller.
"""

import re
from typing import Any, Dict, Optional

import json5

# json5 reports errors as '<string>:LINE Unexpected "X" at column COL'
_POSITION_PATTERN = re.compile(r":(\d+) .*at column (\d+)")

SNIPPET_RADIUS = 80
SNIPPET_FALLBACK_LENGTH = 500


class ResponseParseError(ValueError):
    """Raised when repaired model output still cannot be parsed.

    Attributes:
        message: Human-readable description of the failure
        line: 1-based line of the failure, if reported by the parser
        column: 1-based column of the failure, if reported by the parser
        snippet: Text surrounding the failure position
    """

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
        snippet: str = "",
    ):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column
        self.snippet = snippet

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "line": self.line,
            "column": self.column,
            "snippet": self.snippet,
        }


def _error_position(error_message: str) -> tuple[Optional[int], Optional[int]]:
    match = _POSITION_PATTERN.search(error_message)
    if not match:
        return None, None
    return int(match.group(1)), int(match.group(2))


def error_snippet(text: str, line: Optional[int], column: Optional[int]) -> str:
    """Return the text around ``line``/``column`` (or the start of ``text``)."""
    if line is None or column is None:
        return text[:SNIPPET_FALLBACK_LENGTH]

    lines = text.splitlines(keepends=True)
    if not 1 <= line <= len(lines):
        return text[:SNIPPET_FALLBACK_LENGTH]

    offset = sum(len(chunk) for chunk in lines[:line - 1]) + column - 1
    start = max(0, offset - SNIPPET_RADIUS)
    return text[start:offset + SNIPPET_RADIUS]


def parse_relaxed_json(text: str) -> Dict[str, Any]:
    """Parse repaired text into a value tree.

    Args:
        text: Output of the repair scanner

    Returns:
        Parsed top-level object

    Raises:
        ResponseParseError: If the text is not parseable, or its top level
            is not an object
    """
    if not text.strip():
        raise ResponseParseError("Model response contains no JSON content")

    try:
        value = json5.loads(text, strict=False)
    except ValueError as e:
        line, column = _error_position(str(e))
        raise ResponseParseError(
            f"Could not parse model response: {e}",
            line=line,
            column=column,
            snippet=error_snippet(text, line, column),
        ) from e

    if not isinstance(value, dict):
        raise ResponseParseError(
            f"Model response is not a JSON object (got {type(value).__name__})",
            snippet=text[:SNIPPET_FALLBACK_LENGTH],
        )

    return value
