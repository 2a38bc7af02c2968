"""Exam extraction through the Gemini document-understanding API.

Sends an exam document (PDF or image) with a fixed instruction prompt and
turns the free-text answer into an ExamRecord via the repair pipeline.
"""

import asyncio
import logging
from typing import Optional

from google import genai
from google.genai import types

from app.models.exam import ExamRecord
from app.services.exam_pipeline import parse_exam_response
from app.services.response_repair import DEFAULT_LOOKAHEAD_WINDOW
from app.services.tolerant_parser import ResponseParseError
from app.utils.retry import MAX_RETRIES, retry_with_backoff

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"

# Instruction sent with every document. Exams are in Portuguese and must
# stay in Portuguese.
EXAM_EXTRACTION_PROMPT = """Analyze the following exam document (PDF/Image) which is in **Portuguese**.
Extract the structured data maintaining the original language (Portuguese) for titles, texts, and options.

**CRITICAL INSTRUCTIONS**:
1. **Structure**: Identify Title, Course, and **Support Texts**.
   - Search for support texts **throughout the entire document**, not just at the beginning.
   - Look for texts interspersed between questions (e.g., "Leia o texto a seguir para responder as questões X a Y", "Texto para a questão 26").
   - Link them to the correct questions in 'associatedQuestions' as a string range: "1-3", "10, 11" or "26".
2. **Questions**: Extract all questions.
   - **options**: Always a JSON array of strings, in order, e.g. ["a) ...", "b) ..."]. Never an object.
   - **hasGraphic**: Set to true if the question refers to an image, graph, map, or figure (e.g., "observe a figura", "o gráfico mostra").
3. **Answer Key (Gabarito)**: Look for an answer key at the end of the document. If found, set 'correctAnswer' for each question. If not found, leave null.
4. **Metadata**: From the cover page, fill 'metadata' with concurso, banca, cargo, nivel, disciplina, areaDisciplina, ano, estado, municipio and tipoQuestao ("multipla_escolha" or "certo_errado"). Omit unknown fields.
5. **TEXT FORMATTING - VERY IMPORTANT**:
   - Preserve text formatting using Markdown syntax:
     - **Bold text** -> use **text** (double asterisks)
     - *Italic text* -> use *text* (single asterisks)
     - Underlined text -> use <u>text</u> (HTML underline tag)
   - Apply this to question texts, options, and support texts.

Return a valid JSON object with the following schema:
{
  "title": "Titulo da Prova",
  "course": "Nome da Disciplina",
  "metadata": { "banca": "...", "ano": 2024, "tipoQuestao": "multipla_escolha" },
  "supportTexts": [
    { "id": "Texto I", "content": "Full text with **formatting**...", "associatedQuestions": "1-3" }
  ],
  "questions": [
    {
      "id": "1",
      "text": "Texto da questão com **negrito** e *itálico*...",
      "options": ["a) Opção com **destaque**...", "b) ..."],
      "correctAnswer": "a",
      "hasGraphic": true,
      "confidence": 0.95
    }
  ]
}

Ensure strict JSON output without markdown code fences. Escape all special characters in strings.
"""


async def _generate_exam_text(
    client: genai.Client,
    content: bytes,
    mime_type: str,
    model: str,
) -> str:
    """Call Gemini with the document and return the raw response text."""
    document = types.Part.from_bytes(data=content, mime_type=mime_type)

    response = await asyncio.to_thread(
        lambda: client.models.generate_content(
            model=model,
            contents=[EXAM_EXTRACTION_PROMPT, document],
        )
    )

    response_text = response.text
    if not response_text:
        raise ValueError("Gemini API returned empty response")
    return response_text


async def extract_exam(
    client: genai.Client,
    content: bytes,
    mime_type: str = "application/pdf",
    model: str = DEFAULT_MODEL,
    lookahead_window: int = DEFAULT_LOOKAHEAD_WINDOW,
    max_retries: int = MAX_RETRIES,
) -> ExamRecord:
    """Extract a structured exam record from a document.

    Transient Gemini failures (overloaded, rate limited) are retried with
    backoff. A response that still cannot be parsed after repair is logged
    and re-raised; it is never retried here.

    Args:
        client: Gemini API client
        content: Raw document bytes
        mime_type: Declared media type of the document
        model: Gemini model name
        lookahead_window: Repair scanner lookahead (see response_repair)
        max_retries: Retries for overloaded or rate limited Gemini calls

    Returns:
        ExamRecord with canonical field shapes

    Raises:
        ResponseParseError: If the model output cannot be repaired into JSON
        ValueError: If Gemini returns an empty response
        Exception: For non-retryable Gemini API errors

    Example:
        >>> client = get_gemini_client()
        >>> record = await extract_exam(client, pdf_bytes)
        >>> print(len(record.questions))
    """
    logger.info(f"Sending {len(content)} bytes ({mime_type}) to {model}")
    generate = retry_with_backoff(max_retries=max_retries)(_generate_exam_text)
    raw_text = await generate(client, content, mime_type, model)
    logger.info(f"Received {len(raw_text)} characters from {model}")

    try:
        record = parse_exam_response(raw_text, lookahead_window)
    except ResponseParseError as e:
        logger.error(
            f"Model response could not be parsed at line {_position(e.line)}, "
            f"column {_position(e.column)}: {e.message}. Context: {e.snippet!r}"
        )
        raise

    logger.info(
        f"Parsed exam '{record.title}': {len(record.questions)} questions, "
        f"{len(record.support_texts)} support texts"
    )
    return record


def _position(value: Optional[int]) -> str:
    return str(value) if value is not None else "?"
