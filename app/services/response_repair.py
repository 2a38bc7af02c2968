"""Repair of near-JSON text returned by the document-AI model.

Models asked to emit large structured documents routinely produce JSON with
broken string escaping: raw line breaks inside string values, unescaped
quotation marks used in prose, and stray backslashes. This module isolates
the JSON-like block of a response and rewrites its string tokens so that a
relaxed JSON parser can read it.

The scanner is a small state machine over characters:

    OUTSIDE            structural JSON, passed through untouched
    IN_STRING          inside a double-quoted string literal
    IN_STRING_ESCAPED  the previous character was an escape lead-in

A quote met while IN_STRING is ambiguous. It closes the string only when the
first non-whitespace character after it (within a short lookahead window) is
one of ``, } ] :``; otherwise it is prose and gets escaped.

All functions are pure.
"""

import re
from enum import Enum
from typing import List, Tuple

DEFAULT_LOOKAHEAD_WINDOW = 20

# Characters that follow a quote which really terminates a string
BOUNDARY_CHARS = frozenset(",}]:")

# Characters that may follow a backslash in a JSON string
ESCAPE_LETTERS = frozenset('btnfr"\\/')

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

_FENCE_PATTERN = re.compile(r"```json|```")

_ELLIPSIS_TOKEN = r'(?:"(?:\.{3}|\(\.{3}\)|…)"|\.{3}|\(\.{3}\)|…)'

# ", ..." right before a closing bracket/brace
_TRAILING_ELLIPSIS = re.compile(r",\s*" + _ELLIPSIS_TOKEN + r"\s*(?=[\]}])")

# "..." as a list item followed by more items
_INNER_ELLIPSIS = re.compile(r"(?<=[\[,])\s*" + _ELLIPSIS_TOKEN + r"\s*,")


class ScanState(str, Enum):
    """Lexical position of the repair scanner."""
    OUTSIDE = "outside"
    IN_STRING = "in_string"
    IN_STRING_ESCAPED = "in_string_escaped"


def extract_json_block(raw: str) -> str:
    """Isolate the JSON-like part of a model response.

    Returns the text from the first ``{`` to the last ``}`` inclusive. When
    there is no such pair, markdown code fences are stripped and the trimmed
    remainder is returned. Never fails.

    Example:
        >>> extract_json_block('Here it is:\\n```json\\n{"a": 1}\\n```')
        '{"a": 1}'
    """
    start = raw.find("{")
    end = raw.rfind("}")
    if start != -1 and end > start:
        return raw[start:end + 1]
    return _FENCE_PATTERN.sub("", raw).strip()


def is_string_boundary(text: str, index: int, window: int = DEFAULT_LOOKAHEAD_WINDOW) -> bool:
    """Decide whether the quote at ``text[index]`` closes the current string.

    Looks at up to ``window`` characters after the quote, skipping
    whitespace. The first non-whitespace character decides: a boundary
    character means the quote closes the string. Anything else, or running
    out of window/text, means the quote is literal content.
    """
    for char in text[index + 1:index + 1 + window]:
        if char.isspace():
            continue
        return char in BOUNDARY_CHARS
    return False


def _is_escape_lead_in(text: str, index: int) -> bool:
    """True when the backslash at ``text[index]`` starts a valid escape."""
    following = text[index + 1:index + 2]
    if following and following in ESCAPE_LETTERS:
        return True
    if following == "u":
        digits = text[index + 2:index + 6]
        return len(digits) == 4 and all(c in _HEX_DIGITS for c in digits)
    return False


def scan_step(
    state: ScanState,
    text: str,
    index: int,
    lookahead_window: int = DEFAULT_LOOKAHEAD_WINDOW,
) -> Tuple[ScanState, str]:
    """Process ``text[index]`` in ``state``.

    Args:
        state: Scanner state before this character
        text: Full block being repaired (needed for lookahead)
        index: Position of the current character
        lookahead_window: Characters inspected by the quote boundary check

    Returns:
        Tuple of (next state, text to emit for this character)
    """
    char = text[index]

    if state is ScanState.OUTSIDE:
        if char == '"':
            return ScanState.IN_STRING, char
        return state, char

    if state is ScanState.IN_STRING_ESCAPED:
        # Lead-in was already validated, emit the escaped char as-is
        return ScanState.IN_STRING, char

    if char == '"':
        if is_string_boundary(text, index, lookahead_window):
            return ScanState.OUTSIDE, char
        return state, '\\"'

    if char in ("\n", "\r"):
        # A CRLF pair yields two escapes
        return state, "\\n"

    if char == "\\":
        if _is_escape_lead_in(text, index):
            return ScanState.IN_STRING_ESCAPED, char
        return state, "\\\\"

    return state, char


def strip_ellipsis_artifacts(text: str) -> str:
    """Remove ellipsis placeholders a truncating model puts in lists/objects.

    ``["a", "b", ...]`` and ``["a", "b", …]`` become ``["a", "b"]``;
    ``["a", "...", "b"]`` becomes ``["a", "b"]``. Not string-aware.
    """
    text = _TRAILING_ELLIPSIS.sub("", text)
    return _INNER_ELLIPSIS.sub("", text)


def repair_json_text(block: str, lookahead_window: int = DEFAULT_LOOKAHEAD_WINDOW) -> str:
    """Rewrite string tokens of ``block`` so it is closer to valid JSON.

    Single left-to-right pass:
    - raw line breaks inside strings become ``\\n`` escapes
    - quotes inside strings not followed by a boundary character are escaped
    - backslashes that do not start a valid escape are doubled
    followed by removal of ellipsis artifacts.

    Args:
        block: Output of :func:`extract_json_block`
        lookahead_window: Characters inspected after an in-string quote

    Returns:
        Repaired text
    """
    state = ScanState.OUTSIDE
    output: List[str] = []

    for index in range(len(block)):
        state, emitted = scan_step(state, block, index, lookahead_window)
        output.append(emitted)

    return strip_ellipsis_artifacts("".join(output))
